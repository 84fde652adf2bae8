"""
Structured request logging with secret and PII masking.

Each request produces a ``request_started`` and a ``request_completed`` event,
written as single-line JSON. Bearer tokens, cookies and applicant contact
details are masked before anything is logged.
"""

import json
import logging
import re
import time
import traceback
import uuid
from typing import Any, Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Keys whose values are dropped entirely
SENSITIVE_FIELD_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'password', r'token', r'api[_-]?key', r'secret',
        r'authorization', r'cookie', r'session', r'private[_-]?key',
    )
]

# Free-text replacements
PII_PATTERNS = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    (re.compile(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b'), '[PHONE]'),
    (re.compile(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b'), '[IP]'),
]

# Probes hit these every few seconds
SKIP_PATHS = ['/health', '/ready']

BODY_METHODS = {'POST', 'PUT', 'PATCH'}


def is_sensitive_field(field_name: str) -> bool:
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_text(value: str) -> str:
    for pattern, replacement in PII_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Mask a JSON-like structure for logging.

    Values under secret-looking keys are replaced outright; other strings
    have emails, phone numbers and IPs swapped for placeholders.

    Args:
        data: Payload to mask
        depth: Current recursion depth
        max_depth: Nesting level past which the rest is cut off

    Returns:
        A masked copy of ``data``
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"
    if isinstance(data, dict):
        return {
            key: REDACTED if is_sensitive_field(str(key))
            else mask_sensitive_data(value, depth + 1, max_depth)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]
    if isinstance(data, str):
        return mask_text(data)
    return data


def mask_headers(headers: dict) -> dict:
    """Redact sensitive headers. Authorization keeps its scheme ("Bearer [REDACTED]")."""
    masked = {}
    for key, value in headers.items():
        if not is_sensitive_field(key):
            masked[key] = value
        elif key.lower() == 'authorization' and isinstance(value, str) and ' ' in value:
            masked[key] = f"{value.split(' ', 1)[0]} {REDACTED}"
        else:
            masked[key] = REDACTED
    return masked


def should_log_request(path: str) -> bool:
    return not any(path.startswith(skip) for skip in SKIP_PATHS)


def get_client_ip(request: Request) -> str:
    """First forwarded address (or the peer), IPv4 only, last octet hidden."""
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        ip = forwarded_for.split(',')[0].strip()
    else:
        ip = request.client.host if request.client else ''

    parts = ip.split('.')
    if len(parts) != 4:
        return 'unknown'
    return '.'.join(parts[:3] + ['xxx'])


def _actor_id(request: Request) -> Optional[str]:
    identity = request.scope.get("identity")
    return identity.id if identity is not None else None


def _emit(event: dict[str, Any], status_code: Optional[int] = None) -> None:
    line = json.dumps(event)
    if status_code is not None and status_code >= 500:
        logger.error(line)
    elif status_code is not None and status_code >= 400:
        logger.warning(line)
    else:
        logger.info(line)


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every API request as a pair of JSON events.

    The ``x-request-id`` header is taken from the caller (or generated) and
    echoed on the response, so client reports can be matched to log lines.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        max_body_size: int = 1024,
    ):
        """
        Args:
            app: The ASGI application
            log_request_body: Also log masked JSON bodies of writes
            max_body_size: Bodies larger than this are summarized by size
        """
        super().__init__(app)
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        request.state.request_id = request_id
        path = request.url.path

        if not should_log_request(path):
            response = await call_next(request)
            response.headers['x-request-id'] = request_id
            return response

        base = {'request_id': request_id, 'method': request.method, 'path': path}
        started = {
            'event': 'request_started',
            **base,
            'query_params': mask_sensitive_data(dict(request.query_params)),
            'client_ip': get_client_ip(request),
            'headers': mask_headers(dict(request.headers)),
        }
        if self.log_request_body and request.method in BODY_METHODS:
            body = await self._read_body(request)
            if body is not None:
                started['body'] = mask_sensitive_data(body)
        _emit(started)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            _emit(
                {
                    'event': 'request_completed',
                    **base,
                    'actor_id': _actor_id(request),
                    'duration_ms': self._elapsed_ms(start_time),
                    'status_code': 500,
                    'error': {'type': type(exc).__name__},
                },
                500,
            )
            raise

        _emit(
            {
                'event': 'request_completed',
                **base,
                'actor_id': _actor_id(request),
                'duration_ms': self._elapsed_ms(start_time),
                'status_code': response.status_code,
            },
            response.status_code,
        )
        response.headers['x-request-id'] = request_id
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)

    async def _read_body(self, request: Request) -> Any:
        content_type = request.headers.get('content-type', '')
        if 'application/json' not in content_type:
            # Resume uploads and the like: note the type, skip the bytes
            return {'_content_type': content_type} if content_type else None

        raw = await request.body()
        if len(raw) > self.max_body_size:
            return {'_truncated': True, '_size': len(raw)}
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.debug(f"Unparseable request body: {e}")
            return None


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        request_id = getattr(record, 'request_id', None)
        if request_id:
            payload['request_id'] = request_id
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            payload['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': traceback.format_exception(exc_type, exc_value, exc_tb),
            }
        return json.dumps(payload)


# Libraries that are noisy at INFO
QUIET_LOGGERS = ('uvicorn.access', 'sqlalchemy.engine', 'botocore', 'aiobotocore', 'celery')


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Replace the root logger's handlers with a single console handler.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        json_logs: Use StructuredFormatter instead of the plain text format
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        StructuredFormatter() if json_logs
        else logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
