"""
Team registry endpoints.

Students browse teams here; owners set deadlines. Team-scoped application
lists live under the same prefix.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import raise_for_result, require_identity
from api.schemas.teams import DeadlinesUpdate
from api.services import applications as application_service
from api.services import teams as team_service
from core.security import Identity
from database.engine import get_db

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("", summary="List Teams")
async def list_teams(
    category: Optional[str] = Query(None, description="Filter by category"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.list_teams(db, category=category)


@router.get("/categories", summary="List Team Categories")
async def list_categories(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.list_categories(db)


@router.get(
    "/managed",
    summary="List Managed Teams",
    description="Teams the caller owns or reviews for.",
)
async def list_managed_teams(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.list_managed_teams(db, identity.id)


@router.get("/{team_id}", summary="Get Team")
async def get_team(
    team_id: str = Path(..., description="Team ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await team_service.get_team(db, team_id, actor_id=identity.id)
    return raise_for_result(result)


@router.put(
    "/{team_id}/deadlines",
    summary="Set Deadlines",
    description="Replace both application deadlines. Owner only.",
)
async def update_deadlines(
    payload: DeadlinesUpdate,
    team_id: str = Path(..., description="Team ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await team_service.update_deadlines(
        db, identity.id, team_id, payload.model_dump()
    )
    return raise_for_result(result)


@router.get(
    "/{team_id}/applications",
    summary="List Team Applications",
    description="Submitted applications with status counts. Owner or reviewer.",
)
async def list_team_applications(
    team_id: str = Path(..., description="Team ID"),
    status: Optional[str] = Query(None, description="Filter by status"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.list_team_applications(
        db, identity.id, team_id, status=status
    )
    return raise_for_result(result)


@router.get(
    "/{team_id}/applications/mine",
    summary="Get My Application To Team",
)
async def get_my_application(
    team_id: str = Path(..., description="Team ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.get_my_application(db, identity.id, team_id)
    return raise_for_result(result)
