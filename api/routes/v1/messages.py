"""
Application message thread endpoints.

The stream endpoint re-sends the whole thread as a server-sent event on a
fixed polling interval.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_session_factory, raise_for_result, require_identity
from api.schemas.applications import MessageCreate
from api.services import messages as message_service
from api.services.notifications import Notifier, get_notifier
from core.security import Identity
from database.engine import get_db

router = APIRouter(prefix="/applications/{application_id}/messages", tags=["messages"])


@router.get("", summary="List Messages")
async def list_messages(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await message_service.list_messages(db, identity.id, application_id)
    return raise_for_result(result)


@router.post(
    "",
    status_code=201,
    summary="Send Message",
    description="Write to the thread as the applicant or as the team owner.",
)
async def send_message(
    payload: MessageCreate,
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    result = await message_service.send_message(
        db, identity.id, application_id, payload.body, notifier=notifier
    )
    return raise_for_result(result)


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, default=str)}\n\n"


@router.get(
    "/stream",
    summary="Stream Messages",
    description="Server-sent events carrying the full thread on every poll.",
)
async def stream_messages(
    application_id: str = Path(..., description="Application ID"),
    max_polls: Optional[int] = Query(None, ge=1, description="Stop after this many snapshots"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    # Fail with a real status code before the stream starts
    raise_for_result(await message_service.list_messages(db, identity.id, application_id))

    async def event_source():
        async with session_factory() as session:
            async for snapshot in message_service.stream_messages(
                session, identity.id, application_id, max_polls=max_polls
            ):
                if snapshot.get("success"):
                    yield _sse("messages", {"messages": snapshot["messages"]})
                else:
                    yield _sse("error", {"message": snapshot.get("error")})

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
