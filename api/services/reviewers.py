"""Reviewer membership service functions. Owner-only throughout."""

from typing import Any, Dict
import logging

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.results import ErrorCode, fail, ok, store_failure
from core.middleware.authorization import Permission, get_team_access
from core.security import log_audit_event
from core.utils.validators import looks_like_email
from database.models.profiles import Profile
from database.models.teams import Team, TeamMember, TeamRole

logger = logging.getLogger(__name__)

OWNER_ONLY_MESSAGE = "Only the team owner can manage reviewers"
DUPLICATE_MESSAGE = "This person is already a reviewer"


async def _owned_team(session: AsyncSession, actor_id: str, team_id: str):
    team = await session.get(Team, team_id)
    if not team:
        return None, fail(ErrorCode.NOT_FOUND, "Team not found")
    access = await get_team_access(session, team, actor_id)
    if not access.can(Permission.REVIEWERS_MANAGE):
        if access.team_side:
            return None, fail(ErrorCode.NOT_AUTHORIZED, OWNER_ONLY_MESSAGE)
        return None, fail(ErrorCode.NOT_FOUND, "Team not found")
    return team, None


async def add_reviewer(
    session: AsyncSession, actor_id: str, team_id: str, identifier: str
) -> Dict[str, Any]:
    """
    Grant reviewer access to the person with this NetID or email.

    Args:
        session: Database session
        actor_id: Caller, must own the team
        team_id: Team to add the reviewer to
        identifier: NetID, or an email if it contains "@"

    Returns:
        Result dict carrying the reviewer summary
    """
    team, error = await _owned_team(session, actor_id, team_id)
    if error:
        return error

    identifier = (identifier or "").strip()
    if not identifier:
        return fail(ErrorCode.VALIDATION_FAILED, "Enter a NetID or email")

    column = Profile.email if looks_like_email(identifier) else Profile.netid
    result = await session.execute(select(Profile).where(column == identifier))
    profile = result.scalar_one_or_none()
    if not profile:
        return fail(ErrorCode.NOT_FOUND, f'No account found for "{identifier}"')

    if profile.id == actor_id:
        return fail(ErrorCode.VALIDATION_FAILED, "You can't add yourself as a reviewer")

    existing = await session.execute(
        select(TeamMember.id).where(
            TeamMember.team_id == team.id,
            TeamMember.user_id == profile.id,
        )
    )
    if existing.scalar_one_or_none():
        return fail(ErrorCode.CONFLICT, DUPLICATE_MESSAGE)

    session.add(TeamMember(team_id=team.id, user_id=profile.id, role=TeamRole.REVIEWER))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return fail(ErrorCode.CONFLICT, DUPLICATE_MESSAGE)
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    log_audit_event(
        "reviewer_added", "team", resource_id=team.id, actor_id=actor_id,
        details={"user_id": profile.id},
    )
    return ok(reviewer=profile.summary())


async def remove_reviewer(
    session: AsyncSession, actor_id: str, team_id: str, user_id: str
) -> Dict[str, Any]:
    """Revoke reviewer access. Removing someone who isn't a reviewer succeeds."""
    team, error = await _owned_team(session, actor_id, team_id)
    if error:
        return error

    try:
        await session.execute(
            delete(TeamMember).where(
                TeamMember.team_id == team.id,
                TeamMember.user_id == user_id,
            )
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    log_audit_event(
        "reviewer_removed", "team", resource_id=team.id, actor_id=actor_id,
        details={"user_id": user_id},
    )
    return ok()


async def list_reviewers(
    session: AsyncSession, actor_id: str, team_id: str
) -> Dict[str, Any]:
    """Current reviewers in the order they were added."""
    team, error = await _owned_team(session, actor_id, team_id)
    if error:
        return error

    result = await session.execute(
        select(Profile)
        .join(TeamMember, TeamMember.user_id == Profile.id)
        .where(TeamMember.team_id == team.id)
        .order_by(TeamMember.created_at.asc())
    )
    return ok(reviewers=[p.summary() for p in result.scalars().all()])
