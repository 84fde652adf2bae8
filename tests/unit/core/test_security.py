"""Tests for bearer tokens, PII masking and audit logging."""

import json
import logging
from datetime import timedelta

import jwt
import pytest

from core.config import settings
from core.security import (
    Identity,
    create_access_token,
    decode_access_token,
    log_audit_event,
    mask_pii,
)


class TestTokens:
    """Test token issue and verification."""

    def test_round_trip_identity(self):
        token = create_access_token("user-1", "abc123@cornell.edu")
        assert decode_access_token(token) == Identity(id="user-1", email="abc123@cornell.edu")

    def test_expired_token(self):
        token = create_access_token("user-1", "a@cornell.edu", expires_in=timedelta(seconds=-5))
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_wrong_secret(self):
        token = create_access_token("user-1", "a@cornell.edu", secret="x" * 40)
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)

    def test_missing_email_claim(self):
        token = jwt.encode(
            {"sub": "user-1", "exp": 9999999999},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="email"):
            decode_access_token(token)

    def test_missing_subject(self):
        token = jwt.encode(
            {"email": "a@cornell.edu", "exp": 9999999999},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)

    def test_audience_checked_when_configured(self):
        token = create_access_token("user-1", "a@cornell.edu", audience="portal")
        assert decode_access_token(token, audience="portal").id == "user-1"
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token, audience="other")


class TestMaskPii:
    """Test PII masking for audit events."""

    def test_masks_known_fields(self):
        masked = mask_pii({"email": "abc123@cornell.edu", "netid": "abc123", "status": "accepted"})
        assert masked["email"] == "a***[18]"
        assert masked["netid"] == "a***[6]"
        assert masked["status"] == "accepted"

    def test_non_string_pii_masked(self):
        assert mask_pii({"gpa": 3.9})["gpa"] == "[MASKED]"

    def test_nested_and_depth_limit(self):
        masked = mask_pii({"applicant": {"full_name": "Alan Turing"}})
        assert masked["applicant"]["full_name"] == "A***[11]"
        assert mask_pii({"a": 1}, depth=11) == "[MAX_DEPTH]"


class TestAuditLog:
    """Test audit event emission."""

    def test_audit_event_is_json(self, caplog):
        with caplog.at_level(logging.INFO, logger="security.audit"):
            log_audit_event(
                "reviewer_added", "team", resource_id="team-1", actor_id="user-1",
                details={"email": "rv12@cornell.edu"},
            )
        event = json.loads(caplog.records[-1].getMessage())
        assert event["action"] == "reviewer_added"
        assert event["resource_id"] == "team-1"
        assert event["details"]["email"] == "r***[16]"
