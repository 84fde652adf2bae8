"""Column helpers shared by every model."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum as SQLEnum, func
from sqlalchemy.orm import Mapped, mapped_column

from core.utils.datetime import now


def new_id() -> str:
    """Generate a UUID string primary key."""
    return str(uuid.uuid4())


def enum_column(enum_cls: type[PyEnum]) -> SQLEnum:
    """Store an enum by its lowercase value rather than its member name."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=50,
        values_callable=lambda members: [m.value for m in members],
    )


class TimestampMixin:
    """created_at / updated_at columns.

    Timestamps are set application-side so rows written in the same second
    still sort in insertion order.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=now,
        onupdate=now,
        server_default=func.now(),
        nullable=False,
    )
