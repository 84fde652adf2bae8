"""
User mirror service functions.

The identity provider owns accounts. A local ``users`` row is kept in step
with each authenticated request so foreign keys and team-account emails
resolve.
"""

from typing import Any, Dict
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.profiles import serialize_profile
from api.services.results import ok
from api.services.teams import get_owned_team
from database.models.profiles import Profile
from database.models.users import User

logger = logging.getLogger(__name__)


async def ensure_user(session: AsyncSession, user_id: str, email: str) -> User:
    """
    Insert or refresh the local row for an authenticated identity.

    Args:
        session: Database session
        user_id: Identity provider subject
        email: Email claim from the token

    Returns:
        The persisted User
    """
    user = await session.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            # A concurrent request inserted the same identity first
            await session.rollback()
            user = await session.get(User, user_id)
        else:
            logger.info(f"Registered user {user_id}")
        return user

    if email and user.email != email:
        user.email = email
        await session.commit()
    return user


async def get_account_context(session: AsyncSession, user_id: str) -> Dict[str, Any]:
    """
    Say what kind of account the caller holds and where they belong.

    ``team`` when they own a team, else ``student`` when they have a profile,
    else ``needs_profile``.
    """
    team = await get_owned_team(session, user_id)
    if team:
        return ok(
            kind="team",
            team_id=team.id,
            team_name=team.name,
            redirect=f"/admin/{team.id}",
        )

    profile = await session.get(Profile, user_id)
    if profile:
        return ok(kind="student", profile=serialize_profile(profile), redirect="/dashboard")

    return ok(kind="needs_profile", redirect="/profile/create")
