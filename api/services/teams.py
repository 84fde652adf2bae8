"""
Team registry service functions.

Teams are provisioned out of band and browsed by students. The owner sets
the two application deadlines.
"""

from typing import Any, Dict, Optional
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import parse_model
from api.schemas.teams import DeadlinesUpdate, TeamProvision
from api.services.results import ErrorCode, fail, ok, store_failure
from core.middleware.authorization import Permission, get_reviewer_team_ids, get_team_access
from core.security import log_audit_event
from core.utils.datetime import isoformat, now as utcnow
from core import workflow
from database.models.profiles import Profile
from database.models.teams import Team
from database.models.users import User

logger = logging.getLogger(__name__)


def serialize_team(team: Team) -> Dict[str, Any]:
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "category": team.category,
        "website": team.website,
        "upperclassman_deadline": isoformat(team.upperclassman_deadline),
        "lowerclassman_deadline": isoformat(team.lowerclassman_deadline),
    }


async def list_teams(
    session: AsyncSession, category: Optional[str] = None
) -> Dict[str, Any]:
    """All teams by name, optionally narrowed to one category."""
    query = select(Team)
    if category:
        query = query.where(Team.category == category)
    result = await session.execute(query.order_by(Team.name.asc()))
    teams = [serialize_team(t) for t in result.scalars().all()]
    return ok(teams=teams, total=len(teams))


async def list_categories(session: AsyncSession) -> Dict[str, Any]:
    result = await session.execute(
        select(Team.category)
        .where(Team.category.is_not(None))
        .distinct()
        .order_by(Team.category.asc())
    )
    return ok(categories=list(result.scalars().all()))


async def get_team(
    session: AsyncSession,
    team_id: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Public view of a team with its questions.

    When the caller has a profile, the deadline that applies to their class
    standing is included along with whether it has passed or is close.
    """
    team = await session.get(Team, team_id)
    if not team:
        return fail(ErrorCode.NOT_FOUND, "Team not found")

    data = serialize_team(team)
    data["questions"] = [q.model_dump() for q in workflow.parse_questions(team.custom_questions)]

    if actor_id:
        profile = await session.get(Profile, actor_id)
        if profile:
            reference = now or utcnow()
            deadline = workflow.applicable_deadline(team, profile.class_standing)
            data["deadline"] = isoformat(deadline)
            data["deadline_passed"] = workflow.deadline_passed(deadline, reference)
            data["deadline_soon"] = workflow.deadline_soon(deadline, reference)

    return ok(team=data)


async def provision_team(
    session: AsyncSession, values: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Create a team from an operator-supplied definition.

    Args:
        session: Database session
        values: Team fields; ``custom_questions`` must have unique ids and
            select questions need at least one option

    Returns:
        Result dict carrying the new team
    """
    data, error = parse_model(TeamProvision, values)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    if data.owner_id and not await session.get(User, data.owner_id):
        return fail(ErrorCode.NOT_FOUND, "Owner account not found")

    team = Team(
        name=data.name,
        description=data.description,
        category=data.category,
        website=data.website,
        owner_id=data.owner_id,
        custom_questions=[q.model_dump() for q in data.custom_questions],
        upperclassman_deadline=data.upperclassman_deadline,
        lowerclassman_deadline=data.lowerclassman_deadline,
    )
    session.add(team)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Team {team.id} provisioned: {team.name}")
    return ok(team=serialize_team(team))


async def update_deadlines(
    session: AsyncSession,
    actor_id: str,
    team_id: str,
    values: Dict[str, Any],
) -> Dict[str, Any]:
    """Replace both deadlines. Owner only."""
    team = await session.get(Team, team_id)
    if not team:
        return fail(ErrorCode.NOT_FOUND, "Team not found")

    access = await get_team_access(session, team, actor_id)
    if not access.can(Permission.DEADLINES_MANAGE):
        if access.team_side:
            return fail(ErrorCode.NOT_AUTHORIZED, "Only the team owner can set deadlines")
        return fail(ErrorCode.NOT_FOUND, "Team not found")

    data, error = parse_model(DeadlinesUpdate, values)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    team.upperclassman_deadline = data.upperclassman_deadline
    team.lowerclassman_deadline = data.lowerclassman_deadline
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    log_audit_event(
        "deadlines_updated", "team", resource_id=team.id, actor_id=actor_id,
        details={
            "upperclassman_deadline": isoformat(team.upperclassman_deadline),
            "lowerclassman_deadline": isoformat(team.lowerclassman_deadline),
        },
    )
    return ok(team=serialize_team(team))


async def list_managed_teams(session: AsyncSession, actor_id: str) -> Dict[str, Any]:
    """Teams the caller owns or reviews for, by name, each tagged with the role."""
    reviewer_ids = await get_reviewer_team_ids(session, actor_id)
    query = select(Team).where(
        (Team.owner_id == actor_id) | Team.id.in_(reviewer_ids)
    )
    result = await session.execute(query.order_by(Team.name.asc()))

    teams = []
    for team in result.scalars().all():
        item = serialize_team(team)
        item["role"] = "owner" if team.owner_id == actor_id else "reviewer"
        teams.append(item)
    return ok(teams=teams)


async def get_owned_team(session: AsyncSession, actor_id: str) -> Optional[Team]:
    """The first team (by name) owned by the caller, if any."""
    result = await session.execute(
        select(Team).where(Team.owner_id == actor_id).order_by(Team.name.asc()).limit(1)
    )
    return result.scalar_one_or_none()
