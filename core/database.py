# ABOUTME: SQLModel tables (users, goals, study sessions, confidence, settings) and SQLite session factory.
# ABOUTME: get_session yields a session; create_all initializes the schema.

import datetime as dt
import os
from contextlib import contextmanager
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Session, SQLModel, UniqueConstraint, create_engine

_db_path = os.environ.get("STUDY_DB_PATH", "study.db")


class User(SQLModel, table=True):
    """Student account. Passwords stored as hashes only."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    display_name: str = ""
    password_hash: str = Field()
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )


class Goal(SQLModel, table=True):
    """A unit of intended study work for one calendar day."""

    __tablename__ = "goals"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    date: dt.date = Field(index=True)
    title: str
    subject: str
    target_hours: float
    completed: bool = False
    priority: str = "Medium"
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
    # Day the goal was last marked complete; None while incomplete.
    completed_at: Optional[dt.date] = None


class StudySession(SQLModel, table=True):
    """A finished interval of study work, attributed to goals by subject + topic."""

    __tablename__ = "study_sessions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    subject: str
    topic: str
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = Field(default=None, index=True)
    duration_minutes: float
    date: dt.date = Field(index=True)


class ConfidenceEntry(SQLModel, table=True):
    """Self-reported readiness score for one day; one row per (user, date)."""

    __tablename__ = "confidence_entries"
    __table_args__ = (UniqueConstraint("user_id", "date"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    date: dt.date
    score: int


class UserSettings(SQLModel, table=True):
    __tablename__ = "user_settings"

    user_id: UUID = Field(foreign_key="users.id", primary_key=True)
    motivation_note: str = ""


_engine = create_engine(
    f"sqlite:///{_db_path}",
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    """Create all tables if they do not exist."""
    SQLModel.metadata.create_all(_engine)


@contextmanager
def get_session():
    """Yield an SQLite session for the default engine."""
    init_db()
    with Session(_engine) as session:
        yield session
