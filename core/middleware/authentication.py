"""
Bearer-token authentication.

The hosted identity provider issues HS256 JWTs carrying ``sub`` and
``email``. This middleware verifies them and puts the caller's Identity in
the ASGI scope. Routes that need a caller go through
``api.dependencies.require_identity``.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

import jwt
from fastapi import Request, status
from fastapi.responses import JSONResponse

from core.security import Identity, decode_access_token

logger = logging.getLogger(__name__)

# Served without a token (a token that is sent is still read)
PUBLIC_ENDPOINTS = ["/", "/health", "/ready", "/docs", "/redoc", "/openapi.json"]
PUBLIC_PREFIXES = ["/health", "/docs", "/redoc", "/openapi"]

BEARER_PREFIX = "Bearer "


class AuthenticationError(Exception):
    """A bearer token was present but could not be accepted."""

    code = "TOKEN_INVALID"
    message = "Invalid authentication token."


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "Authentication token has expired. Please sign in again."


class TokenInvalidError(AuthenticationError):
    pass


class AuthenticationMiddleware:
    """
    Resolves the caller for every HTTP request.

    - No token on a public path: passed through anonymously.
    - No token elsewhere: 401 ``AUTHENTICATION_REQUIRED``.
    - Bad or expired token anywhere: 401 ``TOKEN_INVALID`` / ``TOKEN_EXPIRED``.
    """

    def __init__(
        self,
        app: Callable,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_audience: Optional[str] = None,
        public_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            app: ASGI application
            jwt_secret: Shared secret with the identity provider
            jwt_algorithm: JWT signing algorithm
            jwt_audience: Expected ``aud`` claim, if the provider sets one
            public_paths: Extra paths (exact or prefix) served without a token
        """
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_audience = jwt_audience
        self.public_paths = public_paths or []

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        token = self._extract_token(request)

        if token is None:
            if self._is_public_endpoint(request.url.path):
                await self.app(scope, receive, send)
            else:
                await self._reject(
                    scope, receive, send, "AUTHENTICATION_REQUIRED", "Authentication required."
                )
            return

        result = self._authenticate(token)
        if isinstance(result, AuthenticationError):
            await self._reject(scope, receive, send, result.code, result.message)
            return

        scope["identity"] = result
        await self.app(scope, receive, send)

    def _authenticate(self, token: str) -> Union[Identity, AuthenticationError]:
        try:
            return decode_access_token(
                token,
                secret=self.jwt_secret,
                algorithm=self.jwt_algorithm,
                audience=self.jwt_audience,
            )
        except jwt.ExpiredSignatureError:
            return TokenExpiredError()
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return TokenInvalidError(str(e))

    def _is_public_endpoint(self, path: str) -> bool:
        if path in PUBLIC_ENDPOINTS or path in self.public_paths:
            return True
        return any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES + self.public_paths)

    @staticmethod
    def _extract_token(request: Request) -> Optional[str]:
        header = request.headers.get("Authorization", "")
        if header.startswith(BEARER_PREFIX):
            return header[len(BEARER_PREFIX):]
        return None

    @staticmethod
    async def _reject(scope: dict, receive: Callable, send: Callable, code: str, message: str) -> None:
        response = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "error": {
                    "code": code,
                    "message": message,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
        await response(scope, receive, send)


def get_current_identity(request: Request) -> Optional[Identity]:
    """The authenticated caller, or None on a public path reached without a token."""
    return request.scope.get("identity")
