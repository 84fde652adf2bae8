"""
Profile service functions for API endpoints.

A student fills in one reusable profile, which every team they apply to
sees. Resumes live in S3 under ``<user id>/resume.pdf``.
"""

from typing import Any, Dict, Optional
import logging

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import parse_model
from api.schemas.profiles import ProfileCreate, ProfileUpdate
from api.services.results import ErrorCode, fail, ok, store_failure
from core.config import settings
from core.storage.s3 import S3Storage
from core.utils.datetime import isoformat
from database.models.profiles import Profile

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
PROFILE_NOT_FOUND_MESSAGE = "Profile not found"
IDENTITY_TAKEN_MESSAGE = "That NetID or email is already used by another profile"


def serialize_profile(profile: Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "netid": profile.netid,
        "email": profile.email,
        "full_name": profile.full_name,
        "major": profile.major,
        "grad_year": profile.grad_year,
        "gpa": profile.gpa,
        "resume_url": profile.resume_url,
        "class_standing": profile.class_standing.value if profile.class_standing else None,
        "created_at": isoformat(profile.created_at),
        "updated_at": isoformat(profile.updated_at),
    }


def resume_key(user_id: str) -> str:
    return f"{user_id}/resume.pdf"


async def _identity_taken(
    session: AsyncSession,
    actor_id: str,
    netid: Optional[str],
    email: Optional[str],
) -> bool:
    """Whether another profile already holds this netid or email."""
    clauses = []
    if netid is not None:
        clauses.append(Profile.netid == netid)
    if email is not None:
        clauses.append(Profile.email == email)
    if not clauses:
        return False
    result = await session.execute(
        select(Profile.id).where(or_(*clauses), Profile.id != actor_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_profile(session: AsyncSession, actor_id: str) -> Dict[str, Any]:
    profile = await session.get(Profile, actor_id)
    if not profile:
        return fail(ErrorCode.NOT_FOUND, PROFILE_NOT_FOUND_MESSAGE)
    return ok(profile=serialize_profile(profile))


async def create_profile(
    session: AsyncSession, actor_id: str, values: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Create the caller's profile.

    Args:
        session: Database session
        actor_id: Caller identity id, becomes the profile id
        values: Raw form values; empty optional fields are stored as null

    Returns:
        Result dict carrying the new profile
    """
    data, error = parse_model(ProfileCreate, values)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    if await session.get(Profile, actor_id):
        return fail(ErrorCode.CONFLICT, "Profile already exists")

    if await _identity_taken(session, actor_id, data.netid, data.email):
        return fail(ErrorCode.CONFLICT, IDENTITY_TAKEN_MESSAGE)

    profile = Profile(id=actor_id, **data.model_dump())
    session.add(profile)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return fail(ErrorCode.CONFLICT, IDENTITY_TAKEN_MESSAGE)
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Profile created for user {actor_id}")
    return ok(profile=serialize_profile(profile))


async def update_profile(
    session: AsyncSession, actor_id: str, values: Dict[str, Any]
) -> Dict[str, Any]:
    """Change the fields that were sent on the caller's own profile."""
    data, error = parse_model(ProfileUpdate, values)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    profile = await session.get(Profile, actor_id)
    if not profile:
        return fail(ErrorCode.NOT_FOUND, PROFILE_NOT_FOUND_MESSAGE)

    changes = data.model_dump(exclude_unset=True)
    if await _identity_taken(
        session, actor_id, changes.get("netid"), changes.get("email")
    ):
        return fail(ErrorCode.CONFLICT, IDENTITY_TAKEN_MESSAGE)

    for field, value in changes.items():
        setattr(profile, field, value)

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return fail(ErrorCode.CONFLICT, IDENTITY_TAKEN_MESSAGE)
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    return ok(profile=serialize_profile(profile))


# ==================== Resumes ==================== #
async def upload_resume(
    session: AsyncSession,
    actor_id: str,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
    storage: S3Storage,
) -> Dict[str, Any]:
    """
    Store the caller's resume and point their profile at it.

    A new upload replaces the previous file under the same key.

    Args:
        session: Database session
        actor_id: Caller identity id
        filename: Client-side file name, only logged
        content_type: Declared MIME type, must be application/pdf
        data: File contents
        storage: Resume bucket

    Returns:
        Result dict carrying the public resume_url
    """
    if content_type != PDF_CONTENT_TYPE:
        return fail(ErrorCode.VALIDATION_FAILED, "Only PDF files are allowed.")
    if len(data) > settings.resume_max_bytes:
        max_mb = settings.resume_max_bytes // (1024 * 1024)
        return fail(ErrorCode.VALIDATION_FAILED, f"File size must be under {max_mb} MB.")

    profile = await session.get(Profile, actor_id)
    if not profile:
        return fail(ErrorCode.NOT_FOUND, PROFILE_NOT_FOUND_MESSAGE)

    key = resume_key(actor_id)
    try:
        await storage.upload(data, key, content_type=PDF_CONTENT_TYPE)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Resume upload failed for user {actor_id}: {e}")
        return fail(ErrorCode.STORE_FAILURE, str(e))

    profile.resume_url = storage.public_url(key)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Resume {filename or key} stored for user {actor_id}")
    return ok(resume_url=profile.resume_url)


async def delete_resume(
    session: AsyncSession, actor_id: str, storage: S3Storage
) -> Dict[str, Any]:
    """Remove the stored resume and clear the link. A missing resume is not an error."""
    profile = await session.get(Profile, actor_id)
    if not profile:
        return fail(ErrorCode.NOT_FOUND, PROFILE_NOT_FOUND_MESSAGE)

    if profile.resume_url:
        try:
            await storage.delete(resume_key(actor_id))
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Resume delete failed for user {actor_id}: {e}")
            return fail(ErrorCode.STORE_FAILURE, str(e))

        profile.resume_url = None
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            return store_failure(e)

    return ok(resume_url=None)
