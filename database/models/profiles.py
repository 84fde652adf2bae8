from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, Integer, Float
from database.engine import Base
from database.models.common import TimestampMixin, enum_column
from enum import Enum as PyEnum


# ==================== Class Standing ===================== #
class ClassStanding(str, PyEnum):
    UPPERCLASSMAN = "upperclassman"  # juniors and seniors
    LOWERCLASSMAN = "lowerclassman"  # freshmen and sophomores


class Profile(TimestampMixin, Base):
    """
    A student's reusable applicant profile. One per user.
    """

    __tablename__: str = "profiles"
    id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    netid: Mapped[str] = mapped_column(String(7), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    major: Mapped[str | None] = mapped_column(String(255), nullable=True)
    grad_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    resume_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    # NULL is treated as upperclassman when picking a deadline
    class_standing: Mapped[ClassStanding | None] = mapped_column(
        enum_column(ClassStanding), nullable=True
    )

    def summary(self) -> dict:
        return {"id": self.id, "netid": self.netid, "full_name": self.full_name}

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, netid={self.netid})>"
