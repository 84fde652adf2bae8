"""Application, message and note request schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ApplicationCreate(BaseModel):
    team_id: str = Field(description="Team being applied to")
    answers: Optional[dict[str, Any]] = Field(
        None, description="Partial answers keyed by question id"
    )


class AnswersUpdate(BaseModel):
    answers: dict[str, Any] = Field(description="Full replacement answer map")


class StatusUpdate(BaseModel):
    status: str = Field(description="submitted, interviewing, accepted or rejected")


class MessageCreate(BaseModel):
    # Length rules live in the service so the API and stream share messages
    body: str = Field(description="Message text")


class NoteBody(BaseModel):
    body: str = Field(description="Note text")
