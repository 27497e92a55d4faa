# ABOUTME: Input checks for goals and sessions; raise ValueError with a user-facing message.
# ABOUTME: Runs before anything reaches the store or aggregator.

from datetime import datetime, timezone
from typing import Optional

from core.config import MIN_TIMED_SESSION_SECONDS


def validate_text(value: Optional[str], label: str = "Title") -> str:
    """Return the stripped value or raise ValueError if it is empty."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"{label} cannot be empty")
    return cleaned


def validate_target_hours(target_hours: Optional[float]) -> float:
    if target_hours is None or target_hours <= 0:
        raise ValueError("Target hours must be greater than 0")
    return target_hours


def validate_duration_minutes(duration_minutes: Optional[float]) -> float:
    if duration_minutes is None or duration_minutes <= 0:
        raise ValueError("Please enter a valid duration (minutes greater than 0)")
    return duration_minutes


def _as_utc(value: datetime) -> datetime:
    # Timestamps without an offset are taken as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def timed_duration_minutes(start_time: datetime, end_time: datetime) -> float:
    """Minutes between start and end; raise ValueError for reversed or too-short intervals."""
    start, end = _as_utc(start_time), _as_utc(end_time)
    if end < start:
        raise ValueError("End time cannot be before start time")
    elapsed = (end - start).total_seconds()
    if elapsed < MIN_TIMED_SESSION_SECONDS:
        raise ValueError(
            f"Session too short (under {MIN_TIMED_SESSION_SECONDS} seconds); not logged"
        )
    return elapsed / 60
