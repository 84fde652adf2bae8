from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    Text,
    JSON,
    Index,
    UniqueConstraint,
)
from database.engine import Base
from database.models.common import TimestampMixin, enum_column, new_id
from enum import Enum as PyEnum


# ==================== Application Status ===================== #
class ApplicationStatus(str, PyEnum):
    DRAFT = "draft"  # editable by the applicant, invisible to the team
    SUBMITTED = "submitted"
    INTERVIEWING = "interviewing"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Application(TimestampMixin, Base):
    """
    One student's application to one team.

    answers maps question id to the answer text.
    """

    __tablename__: str = "applications"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        enum_column(ApplicationStatus),
        default=ApplicationStatus.DRAFT,
        nullable=False,
        index=True,
    )
    answers: Mapped[dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "team_id", name="uq_applications_student_team"),
        Index("idx_applications_team_status", "team_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, team_id={self.team_id}, status={self.status})>"


# ==================== Review Notes ===================== #
class Note(TimestampMixin, Base):
    """Private team-side note on an application. Never shown to the applicant."""

    __tablename__: str = "notes"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    application_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, application_id={self.application_id})>"
