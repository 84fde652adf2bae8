"""
Application workflow endpoints.

Students create, edit and submit drafts; the team owner moves submitted
applications through review.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import raise_for_result, require_identity
from api.schemas.applications import AnswersUpdate, ApplicationCreate, StatusUpdate
from api.services import applications as application_service
from api.services.notifications import Notifier, get_notifier
from core.security import Identity
from database.engine import get_db

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "",
    status_code=201,
    summary="Start Application",
    description="Create a draft application to a team before its deadline.",
)
async def create_application(
    payload: ApplicationCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.create_application(
        db, identity.id, payload.team_id, answers=payload.answers
    )
    return raise_for_result(result)


@router.get("", summary="List My Applications")
async def list_my_applications(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.list_my_applications(db, identity.id)


@router.get(
    "/{application_id}",
    summary="Get Application Details",
    description="Review view with questions and applicant profile. Owner or reviewer.",
)
async def get_application(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.get_application_detail(
        db, identity.id, application_id
    )
    return raise_for_result(result)


@router.put("/{application_id}/answers", summary="Save Draft Answers")
async def update_answers(
    payload: AnswersUpdate,
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.update_answers(
        db, identity.id, application_id, payload.answers
    )
    return raise_for_result(result)


@router.post(
    "/{application_id}/submit",
    summary="Submit Application",
    description="Submit a draft. Required questions must be answered before the deadline.",
)
async def submit_application(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.submit_application(db, identity.id, application_id)
    return raise_for_result(result)


@router.put(
    "/{application_id}/status",
    summary="Update Application Status",
    description="Move a submitted application through review. Team owner only.",
)
async def update_status(
    payload: StatusUpdate,
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    result = await application_service.update_status(
        db, identity.id, application_id, payload.status, notifier=notifier
    )
    return raise_for_result(result)
