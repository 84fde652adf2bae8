"""
Student profile endpoints.

Provides REST API for the caller's own profile and resume file.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_storage, raise_for_result, require_identity
from api.schemas.profiles import ProfileResult, ResumeResponse
from api.services import profiles as profile_service
from core.security import Identity
from core.storage.s3 import S3Storage
from database.engine import get_db

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResult, summary="Get My Profile")
async def get_profile(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return raise_for_result(await profile_service.get_profile(db, identity.id))


@router.post(
    "",
    status_code=201,
    response_model=ProfileResult,
    summary="Create Profile",
    description="Create the caller's profile. Each account has at most one.",
)
async def create_profile(
    values: Dict[str, Any] = Body(..., description="Profile fields"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await profile_service.create_profile(db, identity.id, values)
    return raise_for_result(result)


@router.patch("", response_model=ProfileResult, summary="Update Profile")
async def update_profile(
    values: Dict[str, Any] = Body(..., description="Fields to change"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await profile_service.update_profile(db, identity.id, values)
    return raise_for_result(result)


@router.post(
    "/resume",
    response_model=ResumeResponse,
    summary="Upload Resume",
    description="Upload a PDF resume (5 MB max). Replaces any earlier upload.",
)
async def upload_resume(
    file: UploadFile = File(..., description="Resume PDF"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    data = await file.read()
    result = await profile_service.upload_resume(
        db,
        identity.id,
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        storage=storage,
    )
    return raise_for_result(result)


@router.delete("/resume", response_model=ResumeResponse, summary="Delete Resume")
async def delete_resume(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    result = await profile_service.delete_resume(db, identity.id, storage)
    return raise_for_result(result)
