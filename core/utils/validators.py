"""Validation utilities for common data types."""

import re
from typing import Optional

from email_validator import validate_email as _validate_email, EmailNotValidError


NETID_PATTERN = re.compile(r"^[a-z]{2,3}[0-9]{1,4}$")


def validate_email(email: str) -> tuple[bool, Optional[str]]:
    """
    Validate email address format.

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        _validate_email(email, check_deliverability=False)
        return True, None
    except EmailNotValidError as e:
        return False, str(e)


def validate_institution_email(email: str, domain: str) -> tuple[bool, Optional[str]]:
    """
    Validate that an email is well formed and belongs to the institution.

    Args:
        email: Email address to check
        domain: Institution domain without the leading "@"

    Returns:
        Tuple of (is_valid, error_message)
    """
    is_valid, _ = validate_email(email)
    if not is_valid:
        return False, "Invalid email address"
    if not email.endswith(f"@{domain}"):
        return False, f"Must be a @{domain} email"
    return True, None


def validate_netid(netid: str) -> tuple[bool, Optional[str]]:
    """
    Validate a campus NetID (2-3 lowercase letters followed by 1-4 digits).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not NETID_PATTERN.match(netid or ""):
        return False, "Invalid NetID format"
    return True, None


def validate_url(url: str) -> tuple[bool, Optional[str]]:
    """
    Validate URL format.

    Returns:
        Tuple of (is_valid, error_message)
    """
    pattern = r'^https?://[^\s/$.?#].[^\s]*$'
    if re.match(pattern, url, re.IGNORECASE):
        return True, None
    return False, "Invalid URL"


def looks_like_email(identifier: str) -> bool:
    """Reviewer lookups treat any identifier containing "@" as an email."""
    return "@" in identifier
