"""
Result dict helpers shared by the service layer.

Services never raise for expected failures. They return either
``{"success": True, ...}`` or ``{"success": False, "error": msg, "code": code}``
and the route layer turns the code into an HTTP status.
"""

from enum import Enum
from typing import Any

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError


class ErrorCode(str, Enum):
    AUTHENTICATION_REQUIRED = "authentication_required"
    NOT_FOUND = "not_found"
    NOT_AUTHORIZED = "not_authorized"
    VALIDATION_FAILED = "validation_failed"
    DEADLINE_PASSED = "deadline_passed"
    CONFLICT = "conflict"
    STORE_FAILURE = "store_failure"


ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.AUTHENTICATION_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.DEADLINE_PASSED: 422,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.STORE_FAILURE: status.HTTP_502_BAD_GATEWAY,
}


def ok(**payload: Any) -> dict[str, Any]:
    return {"success": True, **payload}


def fail(code: ErrorCode, error: str) -> dict[str, Any]:
    return {"success": False, "error": error, "code": code}


def store_failure(exc: SQLAlchemyError) -> dict[str, Any]:
    """Pass the store's own message through to the caller."""
    return fail(ErrorCode.STORE_FAILURE, str(getattr(exc, "orig", None) or exc))


def http_status_for(result: dict[str, Any]) -> int:
    return ERROR_STATUS.get(result.get("code"), status.HTTP_400_BAD_REQUEST)
