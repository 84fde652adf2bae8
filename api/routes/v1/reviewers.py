"""Reviewer membership endpoints. Owner only."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import raise_for_result, require_identity
from api.schemas.teams import ReviewerAdd
from api.services import reviewers as reviewer_service
from core.security import Identity
from database.engine import get_db

router = APIRouter(prefix="/teams/{team_id}/reviewers", tags=["reviewers"])


@router.get("", summary="List Reviewers")
async def list_reviewers(
    team_id: str = Path(..., description="Team ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await reviewer_service.list_reviewers(db, identity.id, team_id)
    return raise_for_result(result)


@router.post(
    "",
    status_code=201,
    summary="Add Reviewer",
    description="Grant reviewer access by NetID or email.",
)
async def add_reviewer(
    payload: ReviewerAdd,
    team_id: str = Path(..., description="Team ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await reviewer_service.add_reviewer(
        db, identity.id, team_id, payload.identifier
    )
    return raise_for_result(result)


@router.delete("/{user_id}", summary="Remove Reviewer")
async def remove_reviewer(
    team_id: str = Path(..., description="Team ID"),
    user_id: str = Path(..., description="Reviewer user ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await reviewer_service.remove_reviewer(db, identity.id, team_id, user_id)
    return raise_for_result(result)
