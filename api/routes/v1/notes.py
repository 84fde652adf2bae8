"""Private review note endpoints. Owner and reviewers only."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import raise_for_result, require_identity
from api.schemas.applications import NoteBody
from api.services import notes as note_service
from core.security import Identity
from database.engine import get_db

router = APIRouter(tags=["notes"])


@router.get("/applications/{application_id}/notes", summary="List Notes")
async def list_notes(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await note_service.list_notes(db, identity.id, application_id)
    return raise_for_result(result)


@router.post(
    "/applications/{application_id}/notes",
    status_code=201,
    summary="Add Note",
)
async def add_note(
    payload: NoteBody,
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await note_service.add_note(db, identity.id, application_id, payload.body)
    return raise_for_result(result)


@router.patch("/notes/{note_id}", summary="Edit Note", description="Author only.")
async def update_note(
    payload: NoteBody,
    note_id: str = Path(..., description="Note ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await note_service.update_note(db, identity.id, note_id, payload.body)
    return raise_for_result(result)


@router.delete("/notes/{note_id}", summary="Delete Note", description="Author only.")
async def delete_note(
    note_id: str = Path(..., description="Note ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await note_service.delete_note(db, identity.id, note_id)
    return raise_for_result(result)
