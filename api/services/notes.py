"""
Review note service functions.

Notes are private to the team side. Any owner or reviewer may add one and
read all of them; only the author may edit or delete.
"""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.results import ErrorCode, fail, ok, store_failure
from core.middleware.authorization import Permission, get_team_access, hidden_from_team
from core.utils.datetime import isoformat
from database.models.applications import Application, Note
from database.models.teams import Team

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 5000


def serialize_note(note: Note) -> Dict[str, Any]:
    return {
        "id": note.id,
        "application_id": note.application_id,
        "author_id": note.author_id,
        "body": note.body,
        "created_at": isoformat(note.created_at),
        "updated_at": isoformat(note.updated_at),
    }


def clean_note_body(body: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Trim a note body and check its length.

    Returns:
        Tuple of (trimmed_body, error_message)
    """
    trimmed = (body or "").strip()
    if not trimmed:
        return None, "Note cannot be empty"
    if len(trimmed) > MAX_NOTE_LENGTH:
        return None, f"Note cannot exceed {MAX_NOTE_LENGTH} characters"
    return trimmed, None


async def _team_side_application(
    session: AsyncSession, actor_id: str, application_id: str, permission: Permission
) -> Optional[Application]:
    """The application, if the caller is its team's owner or a reviewer."""
    application = await session.get(Application, application_id)
    if not application or hidden_from_team(application):
        return None
    team = await session.get(Team, application.team_id)
    access = await get_team_access(session, team, actor_id)
    if not access.can(permission):
        return None
    return application


async def _visible_note(
    session: AsyncSession, actor_id: str, note_id: str
) -> Optional[Note]:
    """The note, if the caller can read notes on its application."""
    note = await session.get(Note, note_id)
    if not note:
        return None
    application = await _team_side_application(
        session, actor_id, note.application_id, Permission.NOTE_READ
    )
    return note if application else None


async def add_note(
    session: AsyncSession, actor_id: str, application_id: str, body: str
) -> Dict[str, Any]:
    trimmed, error = clean_note_body(body)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    application = await _team_side_application(
        session, actor_id, application_id, Permission.NOTE_WRITE
    )
    if not application:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    note = Note(application_id=application.id, author_id=actor_id, body=trimmed)
    session.add(note)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Note {note.id} added to application {application.id}")
    return ok(note=serialize_note(note))


async def update_note(
    session: AsyncSession, actor_id: str, note_id: str, body: str
) -> Dict[str, Any]:
    """Rewrite a note's body. Author only."""
    trimmed, error = clean_note_body(body)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    note = await _visible_note(session, actor_id, note_id)
    if not note:
        return fail(ErrorCode.NOT_FOUND, "Note not found")
    if note.author_id != actor_id:
        return fail(ErrorCode.NOT_AUTHORIZED, "Not authorized to edit this note")

    note.body = trimmed
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    return ok(note=serialize_note(note))


async def delete_note(session: AsyncSession, actor_id: str, note_id: str) -> Dict[str, Any]:
    """Delete a note. Author only."""
    note = await _visible_note(session, actor_id, note_id)
    if not note:
        return fail(ErrorCode.NOT_FOUND, "Note not found")
    if note.author_id != actor_id:
        return fail(ErrorCode.NOT_AUTHORIZED, "Not authorized to delete this note")

    await session.delete(note)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Note {note_id} deleted")
    return ok(note_id=note_id)


async def list_notes(
    session: AsyncSession, actor_id: str, application_id: str
) -> Dict[str, Any]:
    """All notes on an application, oldest first."""
    application = await _team_side_application(
        session, actor_id, application_id, Permission.NOTE_READ
    )
    if not application:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    result = await session.execute(
        select(Note)
        .where(Note.application_id == application_id)
        .order_by(Note.created_at.asc())
    )
    return ok(notes=[serialize_note(n) for n in result.scalars().all()])


async def note_counts(session: AsyncSession, application_ids: List[str]) -> Dict[str, int]:
    """Number of notes per application id; ids without notes are omitted."""
    if not application_ids:
        return {}
    result = await session.execute(
        select(Note.application_id, func.count(Note.id))
        .where(Note.application_id.in_(application_ids))
        .group_by(Note.application_id)
    )
    return {application_id: count for application_id, count in result.all()}
