# ABOUTME: FastAPI app: goals (rollover view, CRUD, toggle), sessions, confidence, note, dashboard and analytics.
# ABOUTME: 400 on invalid input, 404 on unknown ids, 500 on store failure. Auth via JWT; data scoped by user.

import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from core.auth import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    display_name_for,
    get_current_user,
    hash_password,
    normalize_email,
    validate_password_length,
    verify_password,
)
from core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    CORS_ORIGINS,
    DEFAULT_MOTIVATION_NOTE,
    STORE_MOCK,
    STUDY_STORE,
)
from core.database import User, get_session
from core.schemas import (
    ConfidenceRequest,
    ConfidenceView,
    GoalCreateRequest,
    GoalUpdateRequest,
    GoalView,
    NoteRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
    SessionView,
    ToggleRequest,
)
from core.store import RecordNotFoundError, StoreError, create_store, seed_demo_data
from core.telemetry import log_view
from tracker.aggregator import average_confidence, build_analytics, build_dashboard
from tracker.exams import next_exam, quote_of_the_day
from tracker.validation import (
    timed_duration_minutes,
    validate_duration_minutes,
    validate_target_hours,
    validate_text,
)
from tracker.visibility import sort_goals

store = create_store()

auth_router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int


class SignupResponse(TokenResponse):
    id: str
    email: str
    display_name: str


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _resolve_today(today: Optional[date]) -> date:
    return today or date.today()


@auth_router.post("/signup", status_code=201, response_model=SignupResponse)
def post_signup(req: SignupRequest):
    """Create an account and return an access token so the client can skip calling login."""
    try:
        email = normalize_email(req.email)
        validate_password_length(req.password)
        display_name = display_name_for(email, req.name)
    except ValueError as e:
        return _message(400, str(e))
    try:
        with get_session() as session:
            user = User(
                email=email,
                display_name=display_name,
                password_hash=hash_password(req.password),
            )
            session.add(user)
            session.commit()
            session.refresh(user)
    except IntegrityError:
        return _message(409, "An account with this email already exists.")
    except SQLAlchemyError:
        logging.exception("post_signup failed (database error)")
        return _message(500, "Could not create account.")
    if STUDY_STORE == STORE_MOCK:
        try:
            seed_demo_data(store, user.id, date.today())
        except StoreError:
            logging.exception("post_signup: demo data seeding failed")
    return SignupResponse(
        id=str(user.id),
        email=user.email,
        display_name=user.display_name,
        access_token=create_access_token(user.id),
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@auth_router.post("/login", response_model=TokenResponse)
def post_login(req: LoginRequest):
    """Authenticate and return a JWT. Uses constant-time password check to avoid email enumeration."""
    with get_session() as session:
        stmt = select(User).where(User.email == req.email.strip().lower())
        user = session.exec(stmt).first()
    password_hash = user.password_hash if user else DUMMY_PASSWORD_HASH
    if not verify_password(req.password, password_hash) or user is None:
        return _message(401, "Invalid email or password.")
    return TokenResponse(
        access_token=create_access_token(user.id),
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@auth_router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "display_name": current_user.display_name,
    }


app = FastAPI(title="Study Tracker API")
app.include_router(auth_router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _goal_json(goal) -> dict:
    return GoalView.model_validate(goal).model_dump(mode="json")


def _session_json(session) -> dict:
    return SessionView.model_validate(session).model_dump(mode="json")


# --- Goals ---


@app.get("/goals")
def get_goals(
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Today's goals: created today, rolled over from earlier days, or completed today."""
    try:
        goals = store.get_goals(current_user.id, _resolve_today(today))
    except StoreError:
        logging.exception("get_goals failed (store error)")
        return _message(500, "Could not load goals.")
    return {"goals": [_goal_json(g) for g in sort_goals(goals)]}


@app.post("/goals", status_code=201)
def post_goals(
    req: GoalCreateRequest,
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Create a goal dated today for the authenticated user."""
    try:
        title = validate_text(req.title)
        target_hours = validate_target_hours(req.target_hours)
    except ValueError as e:
        return _message(400, str(e))
    try:
        goal = store.add_goal(
            current_user.id,
            {
                "date": _resolve_today(today),
                "title": title,
                "subject": req.subject.value,
                "target_hours": target_hours,
                "priority": req.priority.value,
            },
        )
    except StoreError:
        logging.exception("post_goals failed (store error)")
        return _message(500, "Could not save goal.")
    return _goal_json(goal)


@app.patch("/goals/{goal_id}")
def patch_goal(
    goal_id: UUID,
    req: GoalUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    """Edit title, subject, target or priority. The goal's date never changes."""
    fields = req.model_dump(mode="json", exclude_none=True)
    try:
        if "title" in fields:
            fields["title"] = validate_text(fields["title"])
        if "target_hours" in fields:
            validate_target_hours(fields["target_hours"])
    except ValueError as e:
        return _message(400, str(e))
    try:
        goal = store.update_goal(current_user.id, goal_id, fields)
    except RecordNotFoundError:
        return _message(404, "Goal not found.")
    except StoreError:
        logging.exception("patch_goal failed (store error)")
        return _message(500, "Could not update goal.")
    return _goal_json(goal)


@app.delete("/goals/{goal_id}", status_code=204)
def delete_goal(goal_id: UUID, current_user: User = Depends(get_current_user)):
    try:
        store.delete_goal(current_user.id, goal_id)
    except RecordNotFoundError:
        return _message(404, "Goal not found.")
    except StoreError:
        logging.exception("delete_goal failed (store error)")
        return _message(500, "Could not delete goal.")
    return None


@app.post("/goals/{goal_id}/toggle")
def post_toggle_goal(
    goal_id: UUID,
    req: ToggleRequest,
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Flip completion; completing records today as the completion day, reopening clears it."""
    try:
        goal = store.toggle_goal(
            current_user.id, goal_id, req.current_completed, _resolve_today(today)
        )
    except RecordNotFoundError:
        return _message(404, "Goal not found.")
    except StoreError:
        logging.exception("post_toggle_goal failed (store error)")
        return _message(500, "Could not update goal.")
    return _goal_json(goal)


# --- Sessions ---


@app.get("/sessions")
def get_sessions(
    date: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Sessions logged on `date`, or the most recent sessions (newest first) when omitted."""
    try:
        sessions = store.get_sessions(current_user.id, date)
    except StoreError:
        logging.exception("get_sessions failed (store error)")
        return _message(500, "Could not load sessions.")
    return {"sessions": [_session_json(s) for s in sessions]}


@app.post("/sessions", status_code=201)
def post_sessions(
    req: SessionCreateRequest,
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Log a session. Timed entries send start/end; manual entries send a duration in minutes."""
    try:
        topic = validate_text(req.topic, "Topic")
        if req.start_time is not None and req.end_time is not None:
            start, end = req.start_time, req.end_time
            minutes = timed_duration_minutes(start, end)
        else:
            minutes = validate_duration_minutes(req.duration_minutes)
            end = datetime.now(timezone.utc)
            start = end - timedelta(minutes=minutes)
    except ValueError as e:
        return _message(400, str(e))
    try:
        session = store.add_session(
            current_user.id,
            {
                "date": _resolve_today(today),
                "subject": req.subject.value,
                "topic": topic,
                "start_time": start,
                "end_time": end,
                "duration_minutes": minutes,
            },
        )
    except StoreError:
        logging.exception("post_sessions failed (store error)")
        return _message(500, "Could not save session.")
    return _session_json(session)


@app.patch("/sessions/{session_id}")
def patch_session(
    session_id: UUID,
    req: SessionUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    fields = req.model_dump(exclude_none=True)
    try:
        if "topic" in fields:
            fields["topic"] = validate_text(fields["topic"], "Topic")
        if "duration_minutes" in fields:
            validate_duration_minutes(fields["duration_minutes"])
    except ValueError as e:
        return _message(400, str(e))
    try:
        session = store.update_session(current_user.id, session_id, fields)
    except RecordNotFoundError:
        return _message(404, "Session not found.")
    except StoreError:
        logging.exception("patch_session failed (store error)")
        return _message(500, "Could not update session.")
    return _session_json(session)


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: UUID, current_user: User = Depends(get_current_user)):
    try:
        store.delete_session(current_user.id, session_id)
    except RecordNotFoundError:
        return _message(404, "Session not found.")
    except StoreError:
        logging.exception("delete_session failed (store error)")
        return _message(500, "Could not delete session.")
    return None


# --- Confidence and note ---


@app.get("/confidence")
def get_confidence(
    date: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Score for one day, or every score plus the rounded average when no date is given."""
    try:
        result = store.get_confidence(current_user.id, date)
    except StoreError:
        logging.exception("get_confidence failed (store error)")
        return _message(500, "Could not load confidence.")
    if date is not None:
        return {"date": date.isoformat(), "score": result}
    return {"scores": result, "average": average_confidence(result)}


@app.put("/confidence")
def put_confidence(
    req: ConfidenceRequest,
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    day = req.date or _resolve_today(today)
    try:
        store.log_confidence(current_user.id, day, req.score)
    except StoreError:
        logging.exception("put_confidence failed (store error)")
        return _message(500, "Could not save confidence.")
    return {"date": day.isoformat(), "score": req.score}


@app.get("/confidence/history")
def get_confidence_history(current_user: User = Depends(get_current_user)):
    try:
        entries = store.get_confidence_history(current_user.id)
    except StoreError:
        logging.exception("get_confidence_history failed (store error)")
        return _message(500, "Could not load confidence history.")
    return {
        "entries": [
            ConfidenceView.model_validate(e).model_dump(mode="json") for e in entries
        ]
    }


@app.get("/note")
def get_note(current_user: User = Depends(get_current_user)):
    try:
        return {"note": store.get_note(current_user.id)}
    except StoreError:
        logging.exception("get_note failed (store error)")
        return _message(500, "Could not load note.")


@app.put("/note")
def put_note(req: NoteRequest, current_user: User = Depends(get_current_user)):
    try:
        store.save_note(current_user.id, req.note)
    except StoreError:
        logging.exception("put_note failed (store error)")
        return _message(500, "Could not save note.")
    return {"note": req.note}


# --- Views ---


@app.get("/dashboard")
def get_dashboard(
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Today's goals with progress, daily totals, today's subject mix and recent sessions."""
    day = _resolve_today(today)
    started = time.perf_counter()
    try:
        goals = store.get_goals(current_user.id, day)
        sessions = store.get_sessions(current_user.id)
        note = store.get_note(current_user.id)
    except StoreError:
        logging.exception("get_dashboard failed (store error)")
        log_view(
            view="dashboard",
            latency_ms=(time.perf_counter() - started) * 1000,
            goals=0,
            sessions=0,
            success=False,
        )
        return _message(500, "Could not load dashboard.")
    view = build_dashboard(goals, sessions, day)
    if view.ambiguous_goal_ids:
        logging.warning(
            "Goals share subject and title; session time is counted for each: %s",
            [str(gid) for gid in view.ambiguous_goal_ids],
        )
    view.next_exam = next_exam(day)
    view.quote = quote_of_the_day(day)
    view.motivation_note = note or DEFAULT_MOTIVATION_NOTE
    log_view(
        view="dashboard",
        latency_ms=(time.perf_counter() - started) * 1000,
        goals=len(goals),
        sessions=len(sessions),
        success=True,
    )
    return view.model_dump(mode="json")


@app.get("/analytics")
def get_analytics(
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """Streak, best day, readiness, 14-day trend, 30-day presence, subject hours and daily log."""
    day = _resolve_today(today)
    started = time.perf_counter()
    try:
        sessions = store.get_sessions(current_user.id)
        entries = store.get_confidence_history(current_user.id)
    except StoreError:
        logging.exception("get_analytics failed (store error)")
        log_view(
            view="analytics",
            latency_ms=(time.perf_counter() - started) * 1000,
            goals=None,
            sessions=0,
            success=False,
        )
        return _message(500, "Could not load analytics.")
    view = build_analytics(sessions, entries, day)
    log_view(
        view="analytics",
        latency_ms=(time.perf_counter() - started) * 1000,
        goals=None,
        sessions=len(sessions),
        success=True,
    )
    return view.model_dump(mode="json")
