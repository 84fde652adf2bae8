"""
Error rendering for the API.

Every failure leaves the service as the same envelope::

    {"error": {"code": ..., "message": ..., "path": ..., "method": ...}}

Messages pass through ``sanitize_error_message`` first so bearer tokens and
other secrets never reach a client or a log line.
"""

import logging
import re
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# Starlette renamed the 422 constant; the number is stable
HTTP_422 = 422

SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'bearer\s+[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+', re.IGNORECASE),
    re.compile(r'\b\d{16}\b'),  # card number
]

# Status of an HTTPException raised by a route -> envelope code
HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "AUTHENTICATION_REQUIRED",
    status.HTTP_403_FORBIDDEN: "NOT_AUTHORIZED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    HTTP_422: "VALIDATION_FAILED",
    status.HTTP_502_BAD_GATEWAY: "STORE_FAILURE",
}


@dataclass
class ErrorInfo:
    status_code: int
    code: str
    message: str
    details: Optional[Any] = None


# Store errors escaping a service, most specific first
STORE_ERRORS: list[tuple[type[SQLAlchemyError], ErrorInfo]] = [
    (IntegrityError, ErrorInfo(
        status.HTTP_409_CONFLICT, "CONFLICT", "Database integrity constraint violated"
    )),
    (OperationalError, ErrorInfo(
        status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_UNAVAILABLE",
        "Database service temporarily unavailable",
    )),
    (SQLAlchemyError, ErrorInfo(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR", "A database error occurred"
    )),
]


def sanitize_error_message(message: Any) -> str:
    """Replace anything that looks like a credential with ``[REDACTED]``."""
    sanitized = message if isinstance(message, str) else str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def http_error_code(status_code: int) -> str:
    return HTTP_ERROR_CODES.get(status_code, "HTTP_EXCEPTION")


def get_safe_error_details(exc: Exception, include_traceback: bool = False) -> dict[str, Any]:
    """Exception type and sanitized message, for debug responses only."""
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_traceback:
        details["traceback"] = traceback.format_exc()
    return details


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """
    One entry per failing request field.

    The offending input is echoed back only when it is a scalar that does not
    look like a secret.
    """
    errors = []
    for error in exc.errors():
        entry = {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        value = error.get("input")
        if isinstance(value, (str, int, float, bool)):
            if not any(pattern.search(str(value)) for pattern in SENSITIVE_PATTERNS):
                entry["input"] = value
        errors.append(entry)
    return errors


def classify_exception(exc: Exception, debug: bool = False) -> ErrorInfo:
    """
    Map an exception to the status, code and message a client sees.

    Args:
        exc: Exception that escaped a route
        debug: Attach exception details for store and unhandled errors

    Returns:
        ErrorInfo for the response envelope
    """
    if isinstance(exc, StarletteHTTPException):
        return ErrorInfo(
            exc.status_code,
            http_error_code(exc.status_code),
            sanitize_error_message(exc.detail),
        )

    if isinstance(exc, RequestValidationError):
        return ErrorInfo(
            HTTP_422,
            "VALIDATION_FAILED",
            "Request validation failed",
            format_validation_errors(exc),
        )

    for exc_type, info in STORE_ERRORS:
        if isinstance(exc, exc_type):
            details = get_safe_error_details(exc, include_traceback=True) if debug else None
            return ErrorInfo(info.status_code, info.code, info.message, details)

    if isinstance(exc, TimeoutError):
        return ErrorInfo(status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT", "The request timed out")

    return ErrorInfo(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        get_safe_error_details(exc, include_traceback=True) if debug else None,
    )


def _error_body(
    info: ErrorInfo, path: str, method: str, request_id: Optional[str] = None
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": info.code,
        "message": info.message,
        "path": path,
        "method": method,
    }
    if info.details is not None:
        error["details"] = info.details
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def _log_failure(info: ErrorInfo, exc: Exception, method: str, path: str) -> None:
    summary = f"{method} {path} -> {info.status_code} {info.code}"
    if info.status_code < 500:
        logger.warning(f"{summary}: {info.message}")
    else:
        logger.error(
            f"{summary}: {type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=True,
        )


class ErrorHandlingMiddleware:
    """
    Outermost ASGI layer.

    Catches whatever the exception handlers let through (store errors,
    timeouts, bugs) and renders it as the standard envelope, echoing the
    caller's ``x-request-id`` when one was sent.
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._render(exc, scope)
            await response(scope, receive, send)

    def _render(self, exc: Exception, scope: dict) -> Response:
        path = scope.get("path", "unknown")
        method = scope.get("method", "unknown")
        info = classify_exception(exc, self.debug)
        _log_failure(info, exc, method, path)

        headers = dict(scope.get("headers") or [])
        request_id = headers.get(b"x-request-id")
        body = _error_body(
            info, path, method, request_id.decode() if request_id else None
        )
        return JSONResponse(status_code=info.status_code, content=body)


def setup_error_handlers(app, debug: bool = False):
    """
    Register the envelope renderers on a FastAPI app.

    Args:
        app: FastAPI application instance
        debug: Include exception details in 500 responses
    """

    async def render(request: Request, exc: Exception) -> JSONResponse:
        info = classify_exception(exc, debug)
        if not isinstance(exc, StarletteHTTPException):
            _log_failure(info, exc, request.method, request.url.path)
        return JSONResponse(
            status_code=info.status_code,
            content=_error_body(info, str(request.url.path), request.method),
            headers=getattr(exc, "headers", None),
        )

    app.add_exception_handler(StarletteHTTPException, render)
    app.add_exception_handler(RequestValidationError, render)
    app.add_exception_handler(Exception, render)
