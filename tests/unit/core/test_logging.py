"""
Tests for logging middleware.
Tests secret redaction, PII masking and request events.
"""

import json
import logging
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    get_client_ip,
    is_sensitive_field,
    mask_headers,
    mask_sensitive_data,
    should_log_request,
)


class TestSensitiveFieldDetection:
    @pytest.mark.parametrize("field_name,expected", [
        ("password", True),
        ("access_token", True),
        ("Authorization", True),
        ("api-key", True),
        ("cookie", True),
        ("session_id", True),
        ("netid", False),
        ("status", False),
        ("body", False),
    ])
    def test_is_sensitive_field(self, field_name, expected):
        assert is_sensitive_field(field_name) is expected


class TestMasking:
    """Test masking of nested payloads and headers."""

    def test_secret_keys_redacted(self):
        masked = mask_sensitive_data({"token": "abc", "status": "accepted"})
        assert masked == {"token": "[REDACTED]", "status": "accepted"}

    def test_pii_in_free_text(self):
        masked = mask_sensitive_data({"identifier": "abc123@cornell.edu"})
        assert masked["identifier"] == "[EMAIL]"

    def test_nested_lists(self):
        masked = mask_sensitive_data({"items": [{"secret": "x"}, "call 607-555-1234"]})
        assert masked["items"][0]["secret"] == "[REDACTED]"
        assert masked["items"][1] == "call [PHONE]"

    def test_depth_limit(self):
        data = {"a": 1}
        for _ in range(15):
            data = {"nested": data}
        assert "[MAX_DEPTH_EXCEEDED]" in json.dumps(mask_sensitive_data(data))

    def test_authorization_keeps_scheme(self):
        masked = mask_headers({"Authorization": "Bearer abc.def.ghi", "Accept": "*/*"})
        assert masked == {"Authorization": "Bearer [REDACTED]", "Accept": "*/*"}

    def test_cookie_fully_redacted(self):
        assert mask_headers({"Cookie": "sid=1"}) == {"Cookie": "[REDACTED]"}


class TestRequestHelpers:
    @pytest.mark.parametrize("path,expected", [
        ("/health", False),
        ("/ready", False),
        ("/api/v1/teams", True),
    ])
    def test_should_log_request(self, path, expected):
        assert should_log_request(path) is expected

    def test_client_ip_masked(self):
        request = Mock()
        request.headers = {"x-forwarded-for": "10.1.2.3, 172.16.0.1"}
        assert get_client_ip(request) == "10.1.2.xxx"

    def test_client_ip_unknown(self):
        request = Mock()
        request.headers = {}
        request.client = None
        assert get_client_ip(request) == "unknown"


class TestStructuredLoggingMiddleware:
    """Test request events emitted by the middleware."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(StructuredLoggingMiddleware)

        @app.get("/api/v1/teams")
        async def teams():
            return {"teams": []}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        return TestClient(app)

    def _events(self, caplog):
        return [
            json.loads(r.getMessage())
            for r in caplog.records
            if r.name == "core.middleware.logging" and r.getMessage().startswith("{")
        ]

    def test_request_id_generated_and_echoed(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="core.middleware.logging"):
            response = client.get("/api/v1/teams", headers={"Authorization": "Bearer a.b.c"})
        assert response.headers["x-request-id"]
        events = self._events(caplog)
        assert [e["event"] for e in events] == ["request_started", "request_completed"]
        assert events[0]["headers"]["authorization"] == "Bearer [REDACTED]"
        assert events[1]["status_code"] == 200

    def test_caller_request_id_kept(self, client):
        response = client.get("/api/v1/teams", headers={"x-request-id": "abc"})
        assert response.headers["x-request-id"] == "abc"

    def test_health_not_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="core.middleware.logging"):
            client.get("/health")
        assert self._events(caplog) == []


class TestStructuredFormatter:
    def test_formats_json(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
