"""Datetime utilities."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite returns naive values for timezone-aware columns; everything
    stored by this service is UTC.
    """
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def is_past(dt: Optional[datetime]) -> bool:
    """True when dt is set and already behind the current time."""
    if dt is None:
        return False
    return ensure_aware(dt) < now()


def days_from_now(days: int) -> datetime:
    return now() + timedelta(days=days)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    return ensure_aware(dt).isoformat() if dt else None
