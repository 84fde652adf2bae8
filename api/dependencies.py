"""FastAPI dependencies for dependency injection."""

from typing import Any, Dict

from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.results import http_status_for
from api.services.users import ensure_user
from core.middleware.authentication import get_current_identity
from core.security import Identity
from core.storage.s3 import S3Storage, get_resume_storage
from database.engine import AsyncSessionLocal, get_db


async def require_identity(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Identity:
    """
    Require an authenticated caller and keep their local user row current.

    The authentication middleware has already rejected bad tokens; this only
    guards routes reached without one.
    """
    identity = get_current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await ensure_user(db, identity.id, identity.email)
    return identity


def get_storage() -> S3Storage:
    """Resume bucket, overridable in tests."""
    return get_resume_storage()


def raise_for_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn a failed service result into an HTTPException.

    Returns:
        The result unchanged when it succeeded
    """
    if not result.get("success"):
        raise HTTPException(
            status_code=http_status_for(result),
            detail=result.get("error", "Request failed"),
        )
    return result


def get_session_factory() -> async_sessionmaker:
    """Session factory for long-lived responses that outlive the request session."""
    return AsyncSessionLocal
