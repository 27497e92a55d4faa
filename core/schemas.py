# ABOUTME: Pydantic models: subject/priority enums, request bodies and read-only view models.
# ABOUTME: Used by FastAPI request/response bodies and returned by the tracker aggregator.

import datetime as dt
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Subject(str, Enum):
    MATHS = "Maths"
    SCIENCE = "Science"
    SOCIAL_SCIENCE = "Social Science"
    ENGLISH = "English"
    HINDI = "Hindi"
    IT = "IT"
    OTHER = "Other"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# --- Request bodies ---


class GoalCreateRequest(BaseModel):
    title: str
    subject: Subject
    target_hours: float
    priority: Priority = Priority.MEDIUM


class GoalUpdateRequest(BaseModel):
    """Editable goal fields. The goal's date is fixed at creation and cannot be changed."""

    title: Optional[str] = None
    subject: Optional[Subject] = None
    target_hours: Optional[float] = None
    priority: Optional[Priority] = None


class SessionCreateRequest(BaseModel):
    """Manual entries send duration_minutes; timed entries send start_time and end_time."""

    subject: Subject
    topic: str
    duration_minutes: Optional[float] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None


class SessionUpdateRequest(BaseModel):
    topic: Optional[str] = None
    duration_minutes: Optional[float] = None


class ConfidenceRequest(BaseModel):
    date: Optional[dt.date] = None
    score: int = Field(ge=0, le=100)


class NoteRequest(BaseModel):
    note: str


# --- Views ---


class GoalView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: dt.date
    title: str
    subject: str
    target_hours: float
    completed: bool
    priority: str
    created_at: dt.datetime
    completed_at: Optional[dt.date] = None


class GoalProgress(GoalView):
    """A visible goal with the time invested in it today."""

    actual_hours: float
    actual_hours_display: float
    on_pace: bool
    progress_percent: float


class SessionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subject: str
    topic: str
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration_minutes: float
    date: dt.date


class ConfidenceView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    score: int


class DailySummary(BaseModel):
    total_minutes_studied: float
    target_minutes: float
    completed_goals: int
    total_goals: int
    time_progress_percent: float
    task_progress_percent: float


class SubjectTotal(BaseModel):
    name: str
    value: float


class TrendPoint(BaseModel):
    date: dt.date
    label: str
    minutes: float
    hours: float
    confidence: Optional[int] = None


class DailyLogSubject(BaseModel):
    name: str
    topics: list[str]
    duration: int


class DailyLogEntry(BaseModel):
    date: dt.date
    subjects: list[DailyLogSubject]
    total_minutes: int


class AnalyticsStats(BaseModel):
    total_hours: int
    average_confidence: Optional[int] = None
    streak: int
    best_day: str
    average_session_minutes: int
    total_topics: int


class ExamCountdown(BaseModel):
    subject: str
    date: dt.date
    days_left: int


class DashboardView(BaseModel):
    goals: list[GoalProgress]
    summary: DailySummary
    subject_distribution: list[SubjectTotal]
    recent_sessions: list[SessionView]
    ambiguous_goal_ids: list[UUID]
    next_exam: Optional[ExamCountdown] = None
    quote: Optional[str] = None
    motivation_note: Optional[str] = None


class AnalyticsView(BaseModel):
    stats: AnalyticsStats
    trend: list[TrendPoint]
    presence: list[TrendPoint]
    subject_hours: list[SubjectTotal]
    daily_log: list[DailyLogEntry]


class ToggleRequest(BaseModel):
    """The completion flag the client last saw; the stored flag becomes its opposite."""

    current_completed: bool
