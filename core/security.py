"""
Security utilities.

Bearer-token handling for identities issued by the hosted identity provider,
plus PII masking for audit-style log lines.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Set

import jwt

from core.config import settings

logger = logging.getLogger("security.audit")


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "netid", "full_name", "name", "gpa", "resume_url",
}


@dataclass(frozen=True)
class Identity:
    """The authenticated caller: identity-provider id and email."""

    id: str
    email: str


def create_access_token(
    subject: str,
    email: str,
    expires_in: timedelta = timedelta(hours=1),
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    audience: Optional[str] = None,
) -> str:
    """
    Issue a signed token in the identity provider's format.

    Used by tests and local tooling; production tokens come from the provider.
    """
    issued_at = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + expires_in,
    }
    audience = audience or settings.jwt_audience
    if audience:
        payload["aud"] = audience
    return jwt.encode(
        payload,
        secret or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def decode_access_token(
    token: str,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    audience: Optional[str] = None,
) -> Identity:
    """
    Verify a bearer token and return the identity it carries.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the signature, audience or claims are invalid
    """
    audience = audience or settings.jwt_audience
    payload = jwt.decode(
        token,
        secret or settings.jwt_secret_key,
        algorithms=[algorithm or settings.jwt_algorithm],
        audience=audience,
        options={"require": ["sub", "exp"], "verify_aud": audience is not None},
    )
    email = payload.get("email")
    if not email:
        raise jwt.InvalidTokenError("Token missing email claim")
    return Identity(id=str(payload["sub"]), email=email)


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if key.lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    # Partial masking: show first char and length indicator
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data[:5]]  # Limit list items
    else:
        return data


def log_audit_event(
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> None:
    """
    Log an audit event for state changes that matter to applicants
    (status decisions, reviewer grants).
    """
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": "AUDIT",
        "action": action,
        "resource_type": resource_type,
        "resource_id": str(resource_id) if resource_id else None,
        "actor_id": actor_id,
        "details": mask_pii(details) if details else None,
    }
    logger.info(json.dumps(event))
