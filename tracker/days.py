# ABOUTME: Calendar-day helpers shared by the visibility filter and aggregator.
# ABOUTME: Parsing is tolerant: malformed values become None instead of raising.

from datetime import date, datetime, timedelta

DAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]


def as_day(value) -> date | None:
    """Return value as a calendar date, accepting date, datetime or ISO 'YYYY-MM-DD' strings.

    Anything else (None, garbage strings, numbers) yields None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def window(end: date, days: int) -> list[date]:
    """Chronological list of the `days` calendar days ending at `end` (inclusive)."""
    return [end - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def weekday_index(day: date) -> int:
    """Day-of-week with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7
