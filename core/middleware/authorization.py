"""
Authorization predicates for team-scoped access control.

Access levels are computed, never stored:
1. Owner: the caller is ``team.owner_id``
2. Reviewer: a ``team_members`` row exists for (team, caller)
3. Team-side actor: owner or reviewer
4. Applicant: the caller is ``application.student_id``

Services ask for a TeamAccess and check permissions against it. A caller
with no access to a team is told the resource does not exist. Draft
applications do not exist for the team side either.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.applications import Application, ApplicationStatus
from database.models.teams import Team, TeamMember

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """Team-scoped permissions."""

    # Applications
    APPLICATION_READ = "application:read"
    APPLICATION_DECIDE = "application:decide"

    # Notes
    NOTE_READ = "note:read"
    NOTE_WRITE = "note:write"

    # Messages
    MESSAGE_READ = "message:read"
    MESSAGE_SEND_AS_TEAM = "message:send_team"
    MESSAGE_SEND_AS_APPLICANT = "message:send_applicant"

    # Team management
    REVIEWERS_MANAGE = "team:manage_reviewers"
    DEADLINES_MANAGE = "team:manage_deadlines"


class AccessRole(str, Enum):
    OWNER = "owner"
    REVIEWER = "reviewer"
    APPLICANT = "applicant"


# Role to permission mapping
ROLE_PERMISSIONS: dict[AccessRole, Set[Permission]] = {
    AccessRole.OWNER: {
        Permission.APPLICATION_READ, Permission.APPLICATION_DECIDE,
        Permission.NOTE_READ, Permission.NOTE_WRITE,
        Permission.MESSAGE_READ, Permission.MESSAGE_SEND_AS_TEAM,
        Permission.REVIEWERS_MANAGE, Permission.DEADLINES_MANAGE,
    },
    AccessRole.REVIEWER: {
        # Read-only on status and messaging
        Permission.APPLICATION_READ,
        Permission.NOTE_READ, Permission.NOTE_WRITE,
        Permission.MESSAGE_READ,
    },
    AccessRole.APPLICANT: {
        # Only ever checked against the caller's own application
        Permission.APPLICATION_READ,
        Permission.MESSAGE_READ, Permission.MESSAGE_SEND_AS_APPLICANT,
    },
}


@dataclass
class TeamAccess:
    """What the caller may do on one team (and optionally one application)."""

    team_id: str
    actor_id: str
    is_owner: bool = False
    is_reviewer: bool = False
    is_applicant: bool = False
    roles: Set[AccessRole] = field(default_factory=set)

    @property
    def team_side(self) -> bool:
        return self.is_owner or self.is_reviewer

    @property
    def permissions(self) -> Set[Permission]:
        granted: Set[Permission] = set()
        for role in self.roles:
            granted |= ROLE_PERMISSIONS.get(role, set())
        return granted

    def can(self, permission: Permission) -> bool:
        return permission in self.permissions


def is_owner(team: Team, actor_id: Optional[str]) -> bool:
    return actor_id is not None and team.owner_id is not None and team.owner_id == actor_id


def is_applicant(application: Application, actor_id: Optional[str]) -> bool:
    return actor_id is not None and application.student_id == actor_id


def hidden_from_team(application: Application) -> bool:
    """Drafts belong to the applicant until submitted."""
    return application.status == ApplicationStatus.DRAFT


async def is_reviewer(session: AsyncSession, team_id: str, actor_id: str) -> bool:
    """Check for a membership row for (team, actor)."""
    result = await session.execute(
        select(TeamMember.id).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == actor_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def get_team_access(
    session: AsyncSession,
    team: Team,
    actor_id: str,
    application: Optional[Application] = None,
) -> TeamAccess:
    """
    Compute the caller's access to a team.

    Args:
        session: Database session
        team: Team being accessed
        actor_id: Caller identity id
        application: When given, also checks whether the caller is its applicant

    Returns:
        TeamAccess with roles and derived permissions
    """
    access = TeamAccess(team_id=team.id, actor_id=actor_id)

    if is_owner(team, actor_id):
        access.is_owner = True
        access.roles.add(AccessRole.OWNER)
    elif await is_reviewer(session, team.id, actor_id):
        access.is_reviewer = True
        access.roles.add(AccessRole.REVIEWER)

    if application is not None and is_applicant(application, actor_id):
        access.is_applicant = True
        access.roles.add(AccessRole.APPLICANT)

    if not access.roles:
        logger.debug(f"Actor {actor_id} has no access to team {team.id}")

    return access


async def get_reviewer_team_ids(session: AsyncSession, actor_id: str) -> list[str]:
    """Teams where the caller holds a membership row."""
    result = await session.execute(
        select(TeamMember.team_id).where(TeamMember.user_id == actor_id)
    )
    return list(result.scalars().all())
