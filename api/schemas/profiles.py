"""Profile-related Pydantic schemas."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from api.schemas.common import TimestampMixin, blank_to_none
from core.config import settings
from core.utils.validators import validate_institution_email, validate_netid, validate_url
from database.models.profiles import ClassStanding

MIN_GRAD_YEAR = 2020
MAX_GRAD_YEAR = 2035
MAX_GPA = 4.3


class ProfileFields(BaseModel):
    """Field rules shared by create and update."""

    netid: Optional[str] = Field(None, description="Campus NetID, e.g. abc123")
    email: Optional[str] = Field(None, description="Institution email address")
    full_name: Optional[str] = Field(None, description="Full name")
    major: Optional[str] = Field(None, max_length=255, description="Declared or intended major")
    grad_year: Optional[int] = Field(None, description="Expected graduation year")
    gpa: Optional[float] = Field(None, description="Cumulative GPA")
    resume_url: Optional[str] = Field(None, description="Link to a hosted resume")
    class_standing: Optional[ClassStanding] = Field(
        None, description="Decides which team deadline applies"
    )

    @field_validator(
        "major", "grad_year", "gpa", "resume_url", "class_standing", mode="before"
    )
    @classmethod
    def empty_to_null(cls, v):
        return blank_to_none(v)

    @field_validator("netid", "email", "full_name", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("netid")
    @classmethod
    def check_netid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        is_valid, _ = validate_netid(v)
        if not is_valid:
            raise ValueError("Invalid Cornell NetID format")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        is_valid, error = validate_institution_email(v, settings.institution_email_domain)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(v) > 100:
            raise ValueError("Name must be at most 100 characters")
        return v

    @field_validator("grad_year")
    @classmethod
    def check_grad_year(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        if v < MIN_GRAD_YEAR:
            raise ValueError(f"Graduation year must be {MIN_GRAD_YEAR} or later")
        if v > MAX_GRAD_YEAR:
            raise ValueError(f"Graduation year must be {MAX_GRAD_YEAR} or earlier")
        return v

    @field_validator("gpa")
    @classmethod
    def check_gpa(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        if v < 0:
            raise ValueError("GPA must be at least 0")
        if v > MAX_GPA:
            raise ValueError(f"GPA must be at most {MAX_GPA}")
        return v

    @field_validator("resume_url")
    @classmethod
    def check_resume_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        is_valid, error = validate_url(v)
        if not is_valid:
            raise ValueError(error)
        return v


class ProfileCreate(ProfileFields):
    """Schema for creating a profile."""

    netid: str = Field(description="Campus NetID, e.g. abc123")
    email: str = Field(description="Institution email address")
    full_name: str = Field(description="Full name")


class ProfileUpdate(ProfileFields):
    """Schema for updating a profile. Only fields that are sent change."""

    @model_validator(mode="after")
    def required_fields_present(self) -> "ProfileUpdate":
        for name in ("netid", "email", "full_name"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be empty")
        return self


class ProfileResponse(TimestampMixin):
    id: str
    netid: str
    email: str
    full_name: str
    major: Optional[str] = None
    grad_year: Optional[int] = None
    gpa: Optional[float] = None
    resume_url: Optional[str] = None
    class_standing: Optional[ClassStanding] = None


class ProfileResult(BaseModel):
    success: bool = True
    profile: ProfileResponse


class ResumeResponse(BaseModel):
    success: bool = True
    resume_url: Optional[str] = Field(description="Public URL of the stored resume")
