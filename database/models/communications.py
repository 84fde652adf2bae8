from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, DateTime, Text, Index, func
from database.engine import Base
from database.models.common import enum_column, new_id
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ============ Message Enum =============== #
class SenderType(str, PyEnum):
    """Which side of the thread wrote the message."""

    APPLICANT = "applicant"
    TEAM = "team"


class Message(Base):
    """
    A message in an application's thread. Append-only.
    """

    __tablename__: str = "messages"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    application_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_type: Mapped[SenderType] = mapped_column(enum_column(SenderType), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=now,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_messages_application_created", "application_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, sender_type={self.sender_type})>"
