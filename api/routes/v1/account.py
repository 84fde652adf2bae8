"""Account context endpoint used by the frontend to route a signed-in user."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_identity, raise_for_result
from api.services import users as user_service
from core.security import Identity
from database.engine import get_db

router = APIRouter(tags=["account"])


@router.get(
    "/me",
    summary="Get Account Context",
    description="Report whether the caller is a team account, a student, or still needs a profile.",
)
async def get_me(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.get_account_context(db, identity.id)
    return raise_for_result(result)
