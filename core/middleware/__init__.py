"""
Core middleware package.

This package provides the middleware components of the API:
- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Bearer-token authentication
- Team-scoped authorization predicates
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
    get_logger,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    AuthenticationError,
    get_current_identity,
)

from core.middleware.authorization import (
    Permission,
    TeamAccess,
    get_team_access,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    "get_logger",
    # Authentication
    "AuthenticationMiddleware",
    "AuthenticationError",
    "get_current_identity",
    # Authorization
    "Permission",
    "TeamAccess",
    "get_team_access",
]
