"""
Datetime helpers shared by the store, the scheduler and the Pydantic schemas.

SQLite hands back naive datetimes even for timezone-aware columns, so every
timestamp read from the database goes through `as_utc` before comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Treat a naive datetime as UTC; convert aware datetimes to UTC.

    Args:
        dt: Datetime object (naive or timezone-aware), or None

    Returns:
        Timezone-aware datetime, or None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def serialize_utc_datetime(dt: datetime) -> datetime:
    """
    Convert naive UTC datetime to timezone-aware before serialization.

    Args:
        dt: Datetime object (naive or timezone-aware)

    Returns:
        Timezone-aware datetime
    """
    return as_utc(dt)
