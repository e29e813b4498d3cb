"""Shared utility functions."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_today(now: datetime, timezone_name: str) -> date:
    """Return the calendar date of an aware instant in the given zone."""
    return ensure_utc(now).astimezone(ZoneInfo(timezone_name)).date()


def local_datetime(day: date, wall_clock: time, timezone_name: str) -> datetime:
    """Attach the school timezone to a wall-clock date and time."""
    return datetime.combine(day, wall_clock, tzinfo=ZoneInfo(timezone_name))
