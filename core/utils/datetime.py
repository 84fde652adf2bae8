"""Datetime utilities for common operations."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Make a datetime timezone-aware.

    Naive values are taken to be UTC; SQLite hands back naive timestamps even
    for ``DateTime(timezone=True)`` columns.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_past(dt: datetime, reference: Optional[datetime] = None) -> bool:
    """
    Check if a datetime is strictly before the reference time.

    Args:
        dt: Datetime to check
        reference: Comparison point (defaults to now)

    Returns:
        True if ``reference > dt``
    """
    reference = ensure_utc(reference) or now()
    return reference > ensure_utc(dt)


def is_within(dt: datetime, delta: timedelta, reference: Optional[datetime] = None) -> bool:
    """Check if a future datetime falls within ``delta`` of the reference time."""
    reference = ensure_utc(reference) or now()
    remaining = ensure_utc(dt) - reference
    return timedelta(0) <= remaining < delta


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO 8601 in UTC, passing None through."""
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None
