# ABOUTME: Persistence collaborator for goals, sessions, confidence and notes, scoped by user id.
# ABOUTME: SqlStudyStore (SQLModel/SQLite) and JsonFileStudyStore (local mock); create_store picks one at startup.

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Protocol
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.config import MOCK_STORE_PATH, SESSIONS_PAGE_SIZE, STORE_MOCK, STUDY_STORE
from core.database import ConfidenceEntry, Goal, StudySession, UserSettings, get_session
from tracker.days import as_day
from tracker.visibility import filter_visible

GOAL_EDITABLE_FIELDS = ("title", "subject", "target_hours", "priority")
SESSION_EDITABLE_FIELDS = ("topic", "duration_minutes")


class StoreError(Exception):
    """The backing store failed (database, file system); the operation did not complete."""


class RecordNotFoundError(StoreError):
    """No goal or session with that id exists for the user."""


class StudyStore(Protocol):
    def get_goals(self, user_id: UUID, today: date) -> list[Goal]: ...

    def add_goal(self, user_id: UUID, data: dict) -> Goal: ...

    def update_goal(self, user_id: UUID, goal_id: UUID, fields: dict) -> Goal: ...

    def delete_goal(self, user_id: UUID, goal_id: UUID) -> None: ...

    def toggle_goal(
        self, user_id: UUID, goal_id: UUID, current_completed: bool, today: date
    ) -> Goal: ...

    def get_sessions(
        self, user_id: UUID, day: Optional[date] = None
    ) -> list[StudySession]: ...

    def add_session(self, user_id: UUID, data: dict) -> StudySession: ...

    def update_session(
        self, user_id: UUID, session_id: UUID, fields: dict
    ) -> StudySession: ...

    def delete_session(self, user_id: UUID, session_id: UUID) -> None: ...

    def get_confidence(self, user_id: UUID, day: Optional[date] = None): ...

    def log_confidence(self, user_id: UUID, day: date, score: int) -> None: ...

    def get_confidence_history(self, user_id: UUID) -> list[ConfidenceEntry]: ...

    def get_note(self, user_id: UUID) -> str: ...

    def save_note(self, user_id: UUID, note: str) -> None: ...


def _toggled(current_completed: bool, today: date) -> dict:
    completed = not current_completed
    return {"completed": completed, "completed_at": today if completed else None}


def _edited_session_fields(session: StudySession, fields: dict) -> dict:
    """Keep start/end consistent when the duration of a session is edited."""
    updates = {k: v for k, v in fields.items() if k in SESSION_EDITABLE_FIELDS}
    minutes = updates.get("duration_minutes")
    if minutes is not None and session.end_time is not None:
        updates["start_time"] = session.end_time - timedelta(minutes=minutes)
    return updates


def _newest_first(sessions: list[StudySession]) -> list[StudySession]:
    """Order by end time descending; sessions without an end time go last."""
    with_end = [s for s in sessions if s.end_time is not None]
    without_end = [s for s in sessions if s.end_time is None]
    with_end.sort(key=lambda s: _comparable_instant(s.end_time), reverse=True)
    return with_end + without_end


def _comparable_instant(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlStudyStore:
    """Store backed by the SQLModel engine in core.database. One commit per call."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _session(self):
        return (self._session_factory or get_session)()

    def _get_owned(self, session, model, user_id: UUID, record_id: UUID):
        record = session.get(model, record_id)
        if record is None or record.user_id != user_id:
            raise RecordNotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def get_goals(self, user_id: UUID, today: date) -> list[Goal]:
        try:
            with self._session() as session:
                stmt = select(Goal).where(Goal.user_id == user_id)
                return filter_visible(session.exec(stmt).all(), today)
        except SQLAlchemyError as e:
            raise StoreError("Could not load goals") from e

    def add_goal(self, user_id: UUID, data: dict) -> Goal:
        try:
            with self._session() as session:
                goal = Goal(user_id=user_id, **data)
                session.add(goal)
                session.commit()
                session.refresh(goal)
                return goal
        except SQLAlchemyError as e:
            raise StoreError("Could not save goal") from e

    def _update_goal(self, user_id: UUID, goal_id: UUID, updates: dict) -> Goal:
        try:
            with self._session() as session:
                goal = self._get_owned(session, Goal, user_id, goal_id)
                for key, value in updates.items():
                    setattr(goal, key, value)
                session.add(goal)
                session.commit()
                session.refresh(goal)
                return goal
        except SQLAlchemyError as e:
            raise StoreError("Could not update goal") from e

    def update_goal(self, user_id: UUID, goal_id: UUID, fields: dict) -> Goal:
        updates = {k: v for k, v in fields.items() if k in GOAL_EDITABLE_FIELDS}
        return self._update_goal(user_id, goal_id, updates)

    def delete_goal(self, user_id: UUID, goal_id: UUID) -> None:
        self._delete(Goal, user_id, goal_id, "goal")

    def toggle_goal(
        self, user_id: UUID, goal_id: UUID, current_completed: bool, today: date
    ) -> Goal:
        return self._update_goal(user_id, goal_id, _toggled(current_completed, today))

    def get_sessions(
        self, user_id: UUID, day: Optional[date] = None
    ) -> list[StudySession]:
        try:
            with self._session() as session:
                stmt = select(StudySession).where(StudySession.user_id == user_id)
                if day is not None:
                    stmt = stmt.where(StudySession.date == day)
                else:
                    stmt = stmt.order_by(StudySession.end_time.desc()).limit(
                        SESSIONS_PAGE_SIZE
                    )
                return list(session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StoreError("Could not load sessions") from e

    def add_session(self, user_id: UUID, data: dict) -> StudySession:
        try:
            with self._session() as session:
                record = StudySession(user_id=user_id, **data)
                session.add(record)
                session.commit()
                session.refresh(record)
                return record
        except SQLAlchemyError as e:
            raise StoreError("Could not save session") from e

    def update_session(
        self, user_id: UUID, session_id: UUID, fields: dict
    ) -> StudySession:
        try:
            with self._session() as session:
                record = self._get_owned(session, StudySession, user_id, session_id)
                for key, value in _edited_session_fields(record, fields).items():
                    setattr(record, key, value)
                session.add(record)
                session.commit()
                session.refresh(record)
                return record
        except SQLAlchemyError as e:
            raise StoreError("Could not update session") from e

    def delete_session(self, user_id: UUID, session_id: UUID) -> None:
        self._delete(StudySession, user_id, session_id, "session")

    def _delete(self, model, user_id: UUID, record_id: UUID, label: str) -> None:
        try:
            with self._session() as session:
                record = self._get_owned(session, model, user_id, record_id)
                session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not delete {label}") from e

    def get_confidence(self, user_id: UUID, day: Optional[date] = None):
        """Score for `day` (None if not logged), or every logged score when no day is given."""
        try:
            with self._session() as session:
                stmt = select(ConfidenceEntry).where(ConfidenceEntry.user_id == user_id)
                if day is None:
                    return [e.score for e in session.exec(stmt)]
                entry = session.exec(stmt.where(ConfidenceEntry.date == day)).first()
                return entry.score if entry else None
        except SQLAlchemyError as e:
            raise StoreError("Could not load confidence") from e

    def log_confidence(self, user_id: UUID, day: date, score: int) -> None:
        try:
            with self._session() as session:
                stmt = select(ConfidenceEntry).where(
                    ConfidenceEntry.user_id == user_id, ConfidenceEntry.date == day
                )
                entry = session.exec(stmt).first()
                if entry is None:
                    entry = ConfidenceEntry(user_id=user_id, date=day, score=score)
                else:
                    entry.score = score
                session.add(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("Could not save confidence") from e

    def get_confidence_history(self, user_id: UUID) -> list[ConfidenceEntry]:
        try:
            with self._session() as session:
                stmt = (
                    select(ConfidenceEntry)
                    .where(ConfidenceEntry.user_id == user_id)
                    .order_by(ConfidenceEntry.date)
                )
                return list(session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StoreError("Could not load confidence history") from e

    def get_note(self, user_id: UUID) -> str:
        try:
            with self._session() as session:
                settings = session.get(UserSettings, user_id)
                return settings.motivation_note if settings else ""
        except SQLAlchemyError as e:
            raise StoreError("Could not load note") from e

    def save_note(self, user_id: UUID, note: str) -> None:
        try:
            with self._session() as session:
                settings = session.get(UserSettings, user_id)
                if settings is None:
                    settings = UserSettings(user_id=user_id)
                settings.motivation_note = note
                session.add(settings)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("Could not save note") from e


def _as_instant(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _as_uuid(value) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _goal_from_doc(doc: dict, user_id: UUID) -> Goal:
    return Goal(
        id=_as_uuid(doc.get("id")),
        user_id=user_id,
        date=as_day(doc.get("date")),
        title=doc.get("title", ""),
        subject=doc.get("subject", ""),
        target_hours=doc.get("target_hours", 0),
        completed=bool(doc.get("completed", False)),
        priority=doc.get("priority", "Medium"),
        created_at=_as_instant(doc.get("created_at")),
        completed_at=as_day(doc.get("completed_at")),
    )


def _session_from_doc(doc: dict, user_id: UUID) -> StudySession:
    return StudySession(
        id=_as_uuid(doc.get("id")),
        user_id=user_id,
        subject=doc.get("subject", ""),
        topic=doc.get("topic", ""),
        start_time=_as_instant(doc.get("start_time")),
        end_time=_as_instant(doc.get("end_time")),
        duration_minutes=doc.get("duration_minutes", 0),
        date=as_day(doc.get("date")),
    )


def _to_doc(values: dict) -> dict:
    """JSON-safe copy of a record's fields (dates and instants as ISO strings)."""
    doc = {}
    for key, value in values.items():
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, UUID):
            value = str(value)
        doc[key] = value
    return doc


class JsonFileStudyStore:
    """Offline/demo store: one JSON document per user, kept in memory and mirrored to a file.

    Document shape: {"<user id>": {"goals": [...], "sessions": [...],
    "confidence": {"YYYY-MM-DD": score}, "settings": {"motivation_note": str}}}.
    With path=None nothing is written to disk. Writes go to a copy of the user's
    document, which replaces the in-memory one only after the file is saved.
    """

    def __init__(self, path: Optional[str] = None):
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._docs: dict = {}
        if self._path is not None and self._path.exists():
            try:
                self._docs = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise StoreError(f"Could not read mock store {self._path}") from e

    def _user_doc(self, user_id: UUID) -> dict:
        doc = dict(self._docs.get(str(user_id), {}))
        doc.setdefault("goals", [])
        doc.setdefault("sessions", [])
        doc.setdefault("confidence", {})
        doc.setdefault("settings", {})
        return doc

    def _write(self, docs: dict) -> None:
        if self._path is None:
            return
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            tmp.write_text(json.dumps(docs, indent=2), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise StoreError(f"Could not write mock store {self._path}") from e

    @contextmanager
    def _editing(self, user_id: UUID):
        """Yield a copy of the user's document to change; it is kept only once written."""
        with self._lock:
            doc = copy.deepcopy(self._user_doc(user_id))
            yield doc
            docs = dict(self._docs)
            docs[str(user_id)] = doc
            self._write(docs)
            self._docs = docs

    @staticmethod
    def _find(records: list, record_id: UUID, label: str) -> dict:
        for record in records:
            if record.get("id") == str(record_id):
                return record
        raise RecordNotFoundError(f"{label} {record_id} not found")

    def get_goals(self, user_id: UUID, today: date) -> list[Goal]:
        with self._lock:
            docs = list(self._user_doc(user_id)["goals"])
        return filter_visible((_goal_from_doc(d, user_id) for d in docs), today)

    def add_goal(self, user_id: UUID, data: dict) -> Goal:
        goal = Goal(
            id=uuid4(),
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
            completed=False,
            completed_at=None,
            **data,
        )
        with self._editing(user_id) as doc:
            doc["goals"].append(_to_doc(goal.model_dump(exclude={"user_id"})))
        return goal

    def _update_goal(self, user_id: UUID, goal_id: UUID, updates: dict) -> Goal:
        with self._editing(user_id) as doc:
            record = self._find(doc["goals"], goal_id, "Goal")
            record.update(_to_doc(updates))
        return _goal_from_doc(record, user_id)

    def update_goal(self, user_id: UUID, goal_id: UUID, fields: dict) -> Goal:
        updates = {k: v for k, v in fields.items() if k in GOAL_EDITABLE_FIELDS}
        return self._update_goal(user_id, goal_id, updates)

    def delete_goal(self, user_id: UUID, goal_id: UUID) -> None:
        self._delete(user_id, "goals", goal_id, "Goal")

    def toggle_goal(
        self, user_id: UUID, goal_id: UUID, current_completed: bool, today: date
    ) -> Goal:
        return self._update_goal(user_id, goal_id, _toggled(current_completed, today))

    def get_sessions(
        self, user_id: UUID, day: Optional[date] = None
    ) -> list[StudySession]:
        with self._lock:
            docs = list(self._user_doc(user_id)["sessions"])
        sessions = [_session_from_doc(d, user_id) for d in docs]
        if day is not None:
            return [s for s in sessions if s.date == day]
        return _newest_first(sessions)[:SESSIONS_PAGE_SIZE]

    def add_session(self, user_id: UUID, data: dict) -> StudySession:
        record = StudySession(id=uuid4(), user_id=user_id, **data)
        with self._editing(user_id) as doc:
            doc["sessions"].append(_to_doc(record.model_dump(exclude={"user_id"})))
        return record

    def update_session(
        self, user_id: UUID, session_id: UUID, fields: dict
    ) -> StudySession:
        with self._editing(user_id) as doc:
            record = self._find(doc["sessions"], session_id, "StudySession")
            current = _session_from_doc(record, user_id)
            record.update(_to_doc(_edited_session_fields(current, fields)))
        return _session_from_doc(record, user_id)

    def delete_session(self, user_id: UUID, session_id: UUID) -> None:
        self._delete(user_id, "sessions", session_id, "StudySession")

    def _delete(self, user_id: UUID, kind: str, record_id: UUID, label: str) -> None:
        with self._editing(user_id) as doc:
            record = self._find(doc[kind], record_id, label)
            doc[kind].remove(record)

    def get_confidence(self, user_id: UUID, day: Optional[date] = None):
        with self._lock:
            scores = dict(self._user_doc(user_id)["confidence"])
        if day is None:
            return list(scores.values())
        return scores.get(day.isoformat())

    def log_confidence(self, user_id: UUID, day: date, score: int) -> None:
        with self._editing(user_id) as doc:
            doc["confidence"][day.isoformat()] = score

    def get_confidence_history(self, user_id: UUID) -> list[ConfidenceEntry]:
        with self._lock:
            scores = dict(self._user_doc(user_id)["confidence"])
        entries = []
        for raw_day, score in scores.items():
            day = as_day(raw_day)
            if day is None:
                logging.warning("Skipping confidence entry with bad date %r", raw_day)
                continue
            entries.append(ConfidenceEntry(user_id=user_id, date=day, score=score))
        return sorted(entries, key=lambda e: e.date)

    def get_note(self, user_id: UUID) -> str:
        with self._lock:
            return self._user_doc(user_id)["settings"].get("motivation_note", "")

    def save_note(self, user_id: UUID, note: str) -> None:
        with self._editing(user_id) as doc:
            doc["settings"]["motivation_note"] = note


def seed_demo_data(store: StudyStore, user_id: UUID, today: date) -> bool:
    """Give a new demo account a few goals, sessions and a note.

    Returns False (and writes nothing) if the user already has goals.
    """
    if store.get_goals(user_id, today):
        return False
    yesterday = today - timedelta(days=1)
    now = datetime.now(timezone.utc)
    store.add_goal(
        user_id,
        {
            "date": today,
            "title": "Science - Electricity Numericals",
            "subject": "Science",
            "target_hours": 2,
            "priority": "High",
        },
    )
    maths = store.add_goal(
        user_id,
        {
            "date": today,
            "title": "Maths - Quadratic Equations",
            "subject": "Maths",
            "target_hours": 1.5,
            "priority": "Medium",
        },
    )
    store.toggle_goal(user_id, maths.id, False, today)
    store.add_goal(
        user_id,
        {
            "date": yesterday,
            "title": "SST - Nationalism in Europe",
            "subject": "Social Science",
            "target_hours": 1,
            "priority": "High",
        },
    )
    store.add_session(
        user_id,
        {
            "date": today,
            "subject": "Maths",
            "topic": "Quadratic Eq Ex 4.1",
            "start_time": now - timedelta(hours=1),
            "end_time": now,
            "duration_minutes": 60,
        },
    )
    store.add_session(
        user_id,
        {
            "date": yesterday,
            "subject": "Science",
            "topic": "Ohm Law",
            "start_time": now - timedelta(hours=25),
            "end_time": now - timedelta(hours=23),
            "duration_minutes": 120,
        },
    )
    store.save_note(user_id, "I will top the boards!")
    return True


def create_store() -> StudyStore:
    """Pick the store variant once at startup from STUDY_STORE."""
    if STUDY_STORE == STORE_MOCK:
        logging.warning("Using local mock store (%s)", MOCK_STORE_PATH or "in memory")
        return JsonFileStudyStore(MOCK_STORE_PATH)
    return SqlStudyStore()
