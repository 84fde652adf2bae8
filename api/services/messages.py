"""
Messaging service functions.

Each application has one append-only thread between the applicant and the
team. Only the applicant and the team owner may write; reviewers read.
"""

import asyncio
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.notifications import (
    EmailNotification,
    Notifier,
    dispatch,
    unique_recipients,
)
from api.services.results import ErrorCode, fail, ok, store_failure
from core.config import settings
from core.integrations.email import EmailTemplates
from core.middleware.authorization import Permission, get_team_access, hidden_from_team
from core.utils.datetime import isoformat
from database.models.applications import Application
from database.models.communications import Message, SenderType
from database.models.profiles import Profile
from database.models.teams import Team, TeamMember
from database.models.users import User

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def serialize_message(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "application_id": message.application_id,
        "sender_id": message.sender_id,
        "sender_type": message.sender_type.value,
        "body": message.body,
        "created_at": isoformat(message.created_at),
    }


def validate_message_body(body: Optional[str]) -> Optional[str]:
    if not body:
        return "Message cannot be empty"
    if len(body) > MAX_MESSAGE_LENGTH:
        return f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters"
    return None


async def send_message(
    session: AsyncSession,
    actor_id: str,
    application_id: str,
    body: str,
    notifier: Optional[Notifier] = None,
) -> Dict[str, Any]:
    """
    Append a message to an application's thread.

    The sender side is derived from the caller: the applicant writes as
    ``applicant``, the team owner as ``team``. Reviewers and everyone else
    are refused.

    Args:
        session: Database session
        actor_id: Caller identity id
        application_id: Thread to write to
        body: Message text, 1 to 2000 characters
        notifier: Receives the email for the other side of the thread

    Returns:
        Result dict carrying the stored message
    """
    error = validate_message_body(body)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    application = await session.get(Application, application_id)
    if not application:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    team = await session.get(Team, application.team_id)
    access = await get_team_access(session, team, actor_id, application)

    if access.can(Permission.MESSAGE_SEND_AS_APPLICANT):
        sender_type = SenderType.APPLICANT
    elif hidden_from_team(application):
        return fail(ErrorCode.NOT_FOUND, "Application not found")
    elif access.can(Permission.MESSAGE_SEND_AS_TEAM):
        sender_type = SenderType.TEAM
    elif access.roles:
        return fail(
            ErrorCode.NOT_AUTHORIZED,
            "Not authorized to send messages on this application",
        )
    else:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    message = Message(
        application_id=application.id,
        sender_id=actor_id,
        sender_type=sender_type,
        body=body,
    )
    session.add(message)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(
        f"Message {message.id} ({sender_type.value}) posted on application {application.id}"
    )

    if notifier is not None:
        if sender_type == SenderType.TEAM:
            build = _team_to_applicant(session, application, team, body)
            kind = "team_message"
        else:
            build = _applicant_to_team(session, application, team, body)
            kind = "applicant_message"
        await dispatch(notifier, build, kind=kind)

    return ok(message=serialize_message(message))


def _team_to_applicant(
    session: AsyncSession, application: Application, team: Team, body: str
) -> Callable:
    async def build() -> Optional[EmailNotification]:
        profile = await session.get(Profile, application.student_id)
        if not profile or not profile.email:
            return None
        template = EmailTemplates.team_message(
            applicant_name=profile.full_name or "Applicant",
            team_name=team.name,
            message=body,
        )
        return EmailNotification(
            to=[profile.email], subject=template["subject"], html=template["html"]
        )

    return build


def _applicant_to_team(
    session: AsyncSession, application: Application, team: Team, body: str
) -> Callable:
    async def build() -> Optional[EmailNotification]:
        if not team.owner_id:
            return None

        # Team accounts have no profile; their address lives on the user row
        owner = await session.get(User, team.owner_id)
        reviewer_rows = await session.execute(
            select(Profile.email)
            .join(TeamMember, TeamMember.user_id == Profile.id)
            .where(TeamMember.team_id == team.id)
            .order_by(TeamMember.created_at)
        )
        recipients = unique_recipients(
            [owner.email if owner else None] + list(reviewer_rows.scalars().all())
        )
        if not recipients:
            return None

        sender = await session.get(Profile, application.student_id)
        template = EmailTemplates.applicant_message(
            applicant_name=sender.full_name if sender else "An applicant",
            team_name=team.name,
            message=body,
            team_id=team.id,
            application_id=application.id,
        )
        return EmailNotification(
            to=recipients, subject=template["subject"], html=template["html"]
        )

    return build


async def list_messages(
    session: AsyncSession, actor_id: str, application_id: str
) -> Dict[str, Any]:
    """Thread for the applicant or a team-side actor, oldest first."""
    application = await session.get(Application, application_id)
    if not application:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    team = await session.get(Team, application.team_id)
    access = await get_team_access(session, team, actor_id, application)
    if not access.can(Permission.MESSAGE_READ) or (
        hidden_from_team(application) and not access.is_applicant
    ):
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    messages = await _fetch_thread(session, application_id)
    return ok(messages=[serialize_message(m) for m in messages])


async def _fetch_thread(session: AsyncSession, application_id: str) -> List[Message]:
    # Same-timestamp rows fall back to the store's insertion order
    result = await session.execute(
        select(Message)
        .where(Message.application_id == application_id)
        .order_by(Message.created_at.asc())
    )
    return list(result.scalars().all())


async def message_counts(
    session: AsyncSession, application_ids: List[str]
) -> Dict[str, int]:
    """Number of messages per application id; ids without messages are omitted."""
    if not application_ids:
        return {}
    result = await session.execute(
        select(Message.application_id, func.count(Message.id))
        .where(Message.application_id.in_(application_ids))
        .group_by(Message.application_id)
    )
    return {application_id: count for application_id, count in result.all()}


async def stream_messages(
    session: AsyncSession,
    actor_id: str,
    application_id: str,
    interval: Optional[float] = None,
    max_polls: Optional[int] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Poll the thread on a fixed interval, yielding every full snapshot.

    There is no backoff and no diffing: each snapshot replaces the previous
    view. The first snapshot is the access check; a failure result is yielded
    once and the stream ends.

    Args:
        session: Database session held for the life of the stream
        actor_id: Caller identity id
        application_id: Thread to watch
        interval: Seconds between polls (defaults to MESSAGE_POLL_INTERVAL)
        max_polls: Stop after this many snapshots (None polls until cancelled)
    """
    interval = settings.message_poll_interval if interval is None else interval
    polls = 0
    while True:
        snapshot = await list_messages(session, actor_id, application_id)
        yield snapshot
        polls += 1
        if not snapshot.get("success") or (max_polls is not None and polls >= max_polls):
            return
        # End the read transaction so the next poll sees rows committed since
        await session.rollback()
        await asyncio.sleep(interval)
