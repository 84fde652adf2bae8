"""Team-related Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from api.schemas.common import blank_to_none
from core.utils.datetime import ensure_utc
from core.utils.validators import validate_url
from core.workflow import TeamQuestion


class TeamProvision(BaseModel):
    """Out-of-band team setup. Teams are never created from the public API."""

    name: str = Field(min_length=1, max_length=255, description="Team name")
    description: Optional[str] = Field(None, description="What the team builds")
    category: Optional[str] = Field(None, max_length=100, description="Listing category")
    website: Optional[str] = Field(None, description="Team website")
    owner_id: Optional[str] = Field(None, description="User id of the team account")
    custom_questions: list[TeamQuestion] = Field(
        default_factory=list, description="Ordered application questions"
    )
    upperclassman_deadline: Optional[datetime] = None
    lowerclassman_deadline: Optional[datetime] = None

    @field_validator(
        "description", "category", "website", "owner_id",
        "upperclassman_deadline", "lowerclassman_deadline",
        mode="before",
    )
    @classmethod
    def empty_to_null(cls, v):
        return blank_to_none(v)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("upperclassman_deadline", "lowerclassman_deadline")
    @classmethod
    def deadline_in_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive input is read as UTC; stored values are always UTC
        return ensure_utc(v)

    @field_validator("website")
    @classmethod
    def check_website(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        is_valid, error = validate_url(v)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("custom_questions")
    @classmethod
    def unique_question_ids(cls, v: list[TeamQuestion]) -> list[TeamQuestion]:
        seen: set[str] = set()
        for question in v:
            if question.id in seen:
                raise ValueError(f'Duplicate question id "{question.id}"')
            seen.add(question.id)
        return v


class DeadlinesUpdate(BaseModel):
    """Both deadlines are replaced; a missing or empty value clears one."""

    upperclassman_deadline: Optional[datetime] = None
    lowerclassman_deadline: Optional[datetime] = None

    @field_validator("upperclassman_deadline", "lowerclassman_deadline", mode="before")
    @classmethod
    def empty_to_null(cls, v):
        return blank_to_none(v)

    @field_validator("upperclassman_deadline", "lowerclassman_deadline")
    @classmethod
    def deadline_in_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive input is read as UTC; stored values are always UTC
        return ensure_utc(v)


class ReviewerAdd(BaseModel):
    identifier: str = Field(description="NetID, or email if it contains @")
