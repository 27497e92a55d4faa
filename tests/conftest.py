# ABOUTME: Pytest hooks and shared fixtures. Sets SECRET_KEY and store env vars before app/config load.
# ABOUTME: make_goal/make_session build unsaved records for filter, aggregator and store tests.

import os
from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

# Required by core.config before any test imports api.main.
os.environ.setdefault("SECRET_KEY", "test-secret-for-pytest")
os.environ["STUDY_STORE"] = "sql"
os.environ["MOCK_STORE_PATH"] = ""

from core.database import Goal, StudySession  # noqa: E402

USER_ID = uuid4()


def _day(value):
    """ISO strings become dates; anything unparseable is kept as-is to simulate bad records."""
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            return value
    return value


@pytest.fixture
def make_goal():
    def _make(
        day="2026-02-17",
        title="Ohm's Law",
        subject="Science",
        target_hours=1.0,
        completed=False,
        completed_at=None,
        priority="Medium",
    ):
        return Goal(
            id=uuid4(),
            user_id=USER_ID,
            date=_day(day),
            title=title,
            subject=subject,
            target_hours=target_hours,
            completed=completed,
            completed_at=_day(completed_at),
            priority=priority,
        )

    return _make


@pytest.fixture
def make_session():
    def _make(
        day="2026-02-17", minutes=30, subject="Science", topic="Ohm's Law", end=None
    ):
        end = end or datetime(2026, 2, 17, 18, 0, tzinfo=timezone.utc)
        return StudySession(
            id=uuid4(),
            user_id=USER_ID,
            subject=subject,
            topic=topic,
            start_time=None,
            end_time=end,
            duration_minutes=minutes,
            date=_day(day),
        )

    return _make
