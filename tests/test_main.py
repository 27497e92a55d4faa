# ABOUTME: FastAPI TestClient tests for /auth, goals, sessions, confidence, note, dashboard and analytics.
# ABOUTME: Uses an in-memory SQLite engine with get_session patched in api, auth and store modules.

import json
from contextlib import contextmanager
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select
from sqlmodel.pool import StaticPool

from api.main import app
from core.auth import create_access_token, hash_password
from core.database import Goal, User
from core.store import SqlStudyStore, StoreError

TODAY = "2026-02-17"
TOMORROW = "2026-02-18"


@pytest.fixture
def in_memory_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def fake_get_session(in_memory_engine):
    """Context manager that yields a session on the in-memory engine."""

    @contextmanager
    def _fake():
        with Session(in_memory_engine) as s:
            yield s

    return _fake


@pytest.fixture
def client(fake_get_session):
    """TestClient with api, auth and the store all pointed at the in-memory DB."""
    with (
        patch("api.main.get_session", fake_get_session),
        patch("core.auth.get_session", fake_get_session),
        patch("api.main.store", SqlStudyStore(fake_get_session)),
    ):
        yield TestClient(app)


def _make_user(engine, email="student@example.com") -> dict:
    with Session(engine) as session:
        user = User(email=email, display_name="Satyam", password_hash=hash_password("password123"))
        session.add(user)
        session.commit()
        session.refresh(user)
        token = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(in_memory_engine):
    return _make_user(in_memory_engine)


def _add_goal(client, headers, title="Ohm's Law", subject="Science", hours=1.0, today=TODAY, priority="Medium"):
    resp = client.post(
        f"/goals?today={today}",
        json={
            "title": title,
            "subject": subject,
            "target_hours": hours,
            "priority": priority,
        },
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()


def _log(client, headers, minutes, topic="Ohm's Law", subject="Science", today=TODAY):
    resp = client.post(
        f"/sessions?today={today}",
        json={"subject": subject, "topic": topic, "duration_minutes": minutes},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()


# --- Auth ---


def test_signup_201_returns_token_and_display_name(client):
    resp = client.post(
        "/auth/signup",
        json={"email": "New@Example.com", "password": "password123"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["email"] == "new@example.com"
    assert data["display_name"] == "new"
    assert data["token_type"] == "bearer"
    assert "access_token" in data


def test_signup_409_when_email_taken(client):
    body = {"email": "taken@example.com", "password": "password123"}
    client.post("/auth/signup", json=body)
    resp = client.post("/auth/signup", json=body)
    assert resp.status_code == 409
    assert "already exists" in resp.json()["message"]


def test_signup_400_on_bad_input(client):
    resp = client.post("/auth/signup", json={"email": "a@b.co", "password": "short"})
    assert resp.status_code == 400
    resp = client.post(
        "/auth/signup", json={"email": "not-an-email", "password": "password123"}
    )
    assert resp.status_code == 400


def test_login_200_and_401(client, in_memory_engine):
    _make_user(in_memory_engine, email="login@example.com")
    ok = client.post(
        "/auth/login", json={"email": "login@example.com", "password": "password123"}
    )
    assert ok.status_code == 200
    assert ok.json()["expires_in"] > 0
    bad = client.post(
        "/auth/login", json={"email": "login@example.com", "password": "wrong-pass"}
    )
    assert bad.status_code == 401
    assert "message" in bad.json()


def test_me_returns_profile(client, auth_headers):
    resp = client.get("/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["display_name"] == "Satyam"


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/goals"),
        ("get", "/sessions"),
        ("get", "/dashboard"),
        ("get", "/analytics"),
        ("get", "/note"),
    ],
)
def test_data_routes_require_token(client, method, path):
    assert getattr(client, method)(path).status_code == 401


# --- Goals ---


def test_post_goal_persists_for_user(client, auth_headers, in_memory_engine):
    data = _add_goal(client, auth_headers, hours=1.5, priority="High")
    assert data["title"] == "Ohm's Law"
    assert data["date"] == TODAY
    assert data["completed"] is False
    assert data["completed_at"] is None
    with Session(in_memory_engine) as session:
        goals = list(session.exec(select(Goal)))
    assert len(goals) == 1
    assert goals[0].target_hours == 1.5
    assert goals[0].priority == "High"


def test_post_goal_400_on_empty_title_or_bad_target(client, auth_headers):
    resp = client.post(
        "/goals",
        json={"title": "  ", "subject": "Maths", "target_hours": 1},
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert "Title" in resp.json()["message"]
    resp = client.post(
        "/goals",
        json={"title": "Algebra", "subject": "Maths", "target_hours": 0},
        headers=auth_headers,
    )
    assert resp.status_code == 400


def test_post_goal_422_on_unknown_subject(client, auth_headers):
    resp = client.post(
        "/goals",
        json={"title": "Algebra", "subject": "Astrology", "target_hours": 1},
        headers=auth_headers,
    )
    assert resp.status_code == 422


def test_goal_rolls_over_until_completed(client, auth_headers):
    goal = _add_goal(client, auth_headers, today="2026-02-10")
    resp = client.get(f"/goals?today={TODAY}", headers=auth_headers)
    assert [g["id"] for g in resp.json()["goals"]] == [goal["id"]]

    toggled = client.post(
        f"/goals/{goal['id']}/toggle?today={TODAY}",
        json={"current_completed": False},
        headers=auth_headers,
    )
    assert toggled.status_code == 200
    assert toggled.json()["completed"] is True
    assert toggled.json()["completed_at"] == TODAY
    assert toggled.json()["date"] == "2026-02-10"

    still_today = client.get(f"/goals?today={TODAY}", headers=auth_headers)
    assert len(still_today.json()["goals"]) == 1
    next_day = client.get(f"/goals?today={TOMORROW}", headers=auth_headers)
    assert next_day.json()["goals"] == []


def test_goals_sorted_incomplete_then_priority(client, auth_headers):
    low = _add_goal(client, auth_headers, title="low", priority="Low")
    done = _add_goal(client, auth_headers, title="done", priority="High")
    _add_goal(client, auth_headers, title="high", priority="High")
    client.post(
        f"/goals/{done['id']}/toggle?today={TODAY}",
        json={"current_completed": False},
        headers=auth_headers,
    )
    resp = client.get(f"/goals?today={TODAY}", headers=auth_headers)
    assert [g["title"] for g in resp.json()["goals"]] == ["high", "low", "done"]
    assert low["priority"] == "Low"


def test_patch_goal_edits_fields_not_date(client, auth_headers):
    goal = _add_goal(client, auth_headers, today="2026-02-10")
    resp = client.patch(
        f"/goals/{goal['id']}",
        json={"title": "Lenses", "target_hours": 2, "date": TODAY},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Lenses"
    assert resp.json()["date"] == "2026-02-10"


def test_patch_and_delete_unknown_goal_404(client, auth_headers):
    missing = "00000000-0000-0000-0000-000000000000"
    resp = client.patch(f"/goals/{missing}", json={"title": "x"}, headers=auth_headers)
    assert resp.status_code == 404
    assert client.delete(f"/goals/{missing}", headers=auth_headers).status_code == 404


def test_delete_goal(client, auth_headers):
    goal = _add_goal(client, auth_headers)
    assert client.delete(f"/goals/{goal['id']}", headers=auth_headers).status_code == 204
    assert client.get(f"/goals?today={TODAY}", headers=auth_headers).json()["goals"] == []


def test_goals_scoped_by_user(client, in_memory_engine):
    first = _make_user(in_memory_engine, email="one@example.com")
    second = _make_user(in_memory_engine, email="two@example.com")
    goal = _add_goal(client, first, title="mine")
    assert client.get(f"/goals?today={TODAY}", headers=second).json()["goals"] == []
    assert client.delete(f"/goals/{goal['id']}", headers=second).status_code == 404


def test_store_failure_returns_500(client, auth_headers):
    with patch("api.main.store") as broken:
        broken.get_goals.side_effect = StoreError("down")
        resp = client.get("/goals", headers=auth_headers)
    assert resp.status_code == 500
    assert resp.json()["message"] == "Could not load goals."


# --- Sessions ---


def test_manual_session_synthesizes_times(client, auth_headers):
    data = _log(client, auth_headers, 45)
    assert data["date"] == TODAY
    assert data["duration_minutes"] == 45
    assert data["start_time"] is not None and data["end_time"] is not None


def test_timed_session_uses_interval(client, auth_headers):
    resp = client.post(
        f"/sessions?today={TODAY}",
        json={
            "subject": "Maths",
            "topic": "Algebra",
            "start_time": "2026-02-17T10:00:00+00:00",
            "end_time": "2026-02-17T10:30:00+00:00",
        },
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["duration_minutes"] == 30


def test_session_validation_errors(client, auth_headers):
    too_short = client.post(
        "/sessions",
        json={
            "subject": "Maths",
            "topic": "Algebra",
            "start_time": "2026-02-17T10:00:00+00:00",
            "end_time": "2026-02-17T10:00:03+00:00",
        },
        headers=auth_headers,
    )
    assert too_short.status_code == 400
    assert "too short" in too_short.json()["message"]
    zero = client.post(
        "/sessions",
        json={"subject": "Maths", "topic": "Algebra", "duration_minutes": 0},
        headers=auth_headers,
    )
    assert zero.status_code == 400
    no_topic = client.post(
        "/sessions",
        json={"subject": "Maths", "topic": "", "duration_minutes": 10},
        headers=auth_headers,
    )
    assert no_topic.status_code == 400


def test_get_sessions_by_date_and_edit_delete(client, auth_headers):
    first = _log(client, auth_headers, 30)
    _log(client, auth_headers, 20, today="2026-02-16")
    by_day = client.get(f"/sessions?date={TODAY}", headers=auth_headers).json()
    assert [s["id"] for s in by_day["sessions"]] == [first["id"]]
    assert len(client.get("/sessions", headers=auth_headers).json()["sessions"]) == 2

    edited = client.patch(
        f"/sessions/{first['id']}", json={"duration_minutes": 50}, headers=auth_headers
    )
    assert edited.status_code == 200
    assert edited.json()["duration_minutes"] == 50
    assert (
        client.delete(f"/sessions/{first['id']}", headers=auth_headers).status_code
        == 204
    )
    assert len(client.get("/sessions", headers=auth_headers).json()["sessions"]) == 1


# --- Confidence and note ---


def test_confidence_upsert_and_average(client, auth_headers):
    empty = client.get("/confidence", headers=auth_headers).json()
    assert empty == {"scores": [], "average": None}
    client.put(f"/confidence?today={TODAY}", json={"score": 60}, headers=auth_headers)
    client.put(f"/confidence?today={TODAY}", json={"score": 80}, headers=auth_headers)
    client.put("/confidence", json={"date": "2026-02-16", "score": 71}, headers=auth_headers)
    day = client.get(f"/confidence?date={TODAY}", headers=auth_headers).json()
    assert day == {"date": TODAY, "score": 80}
    assert client.get("/confidence", headers=auth_headers).json()["average"] == 76
    history = client.get("/confidence/history", headers=auth_headers).json()["entries"]
    assert [e["date"] for e in history] == ["2026-02-16", TODAY]


def test_confidence_score_out_of_range_422(client, auth_headers):
    resp = client.put("/confidence", json={"score": 101}, headers=auth_headers)
    assert resp.status_code == 422


def test_note_round_trip(client, auth_headers):
    assert client.get("/note", headers=auth_headers).json() == {"note": ""}
    client.put("/note", json={"note": "Boards!"}, headers=auth_headers)
    assert client.get("/note", headers=auth_headers).json() == {"note": "Boards!"}


# --- Views ---


def test_dashboard_attributes_time_to_goal(client, auth_headers):
    goal = _add_goal(client, auth_headers, hours=2)
    _log(client, auth_headers, 30)
    _log(client, auth_headers, 45)
    _log(client, auth_headers, 60, topic="Magnetism")
    resp = client.get(f"/dashboard?today={TODAY}", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["goals"][0]["id"] == goal["id"]
    assert data["goals"][0]["actual_hours"] == 1.25
    assert data["summary"]["total_minutes_studied"] == 135
    assert data["summary"]["target_minutes"] == 120
    assert data["summary"]["time_progress_percent"] == 100
    assert data["subject_distribution"] == [{"name": "Science", "value": 135}]
    assert len(data["recent_sessions"]) == 3
    assert data["next_exam"]["subject"] == "Maths"
    assert data["next_exam"]["days_left"] == 0
    assert data["motivation_note"] == "I will not compromise on Science"
    assert data["quote"]


def test_dashboard_flags_duplicate_goal_titles(client, auth_headers):
    _add_goal(client, auth_headers, title="Revision")
    _add_goal(client, auth_headers, title="Revision", today="2026-02-16")
    _log(client, auth_headers, 60, topic="Revision")
    data = client.get(f"/dashboard?today={TODAY}", headers=auth_headers).json()
    assert len(data["ambiguous_goal_ids"]) == 2
    assert [g["actual_hours"] for g in data["goals"]] == [1.0, 1.0]


def test_analytics_view(client, auth_headers):
    _log(client, auth_headers, 30, today="2026-02-15")
    _log(client, auth_headers, 30, today="2026-02-16")
    resp = client.get(f"/analytics?today={TODAY}", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"]["streak"] == 2
    assert data["stats"]["average_confidence"] is None
    assert len(data["trend"]) == 14
    assert len(data["presence"]) == 30
    assert data["trend"][-1]["date"] == TODAY
    assert [e["date"] for e in data["daily_log"]] == ["2026-02-16", "2026-02-15"]


def test_analytics_empty_is_all_zero(client, auth_headers):
    data = client.get(f"/analytics?today={TODAY}", headers=auth_headers).json()
    assert data["stats"]["total_hours"] == 0
    assert data["stats"]["streak"] == 0
    assert data["subject_hours"] == []
    assert all(p["minutes"] == 0 for p in data["trend"])


def test_timed_session_with_one_naive_timestamp_is_read_as_utc(client, auth_headers):
    resp = client.post(
        f"/sessions?today={TODAY}",
        json={
            "subject": "Maths",
            "topic": "Algebra",
            "start_time": "2026-02-17T10:00:00",
            "end_time": "2026-02-17T10:30:00+00:00",
        },
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["duration_minutes"] == 30


def test_timed_session_mixed_offsets_reversed_is_400(client, auth_headers):
    resp = client.post(
        "/sessions",
        json={
            "subject": "Maths",
            "topic": "Algebra",
            "start_time": "2026-02-17T10:30:00",
            "end_time": "2026-02-17T10:00:00+00:00",
        },
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert "before start" in resp.json()["message"]


def test_analytics_telemetry_leaves_goals_empty(client, auth_headers, capsys):
    capsys.readouterr()
    client.get(f"/analytics?today={TODAY}", headers=auth_headers)
    out = capsys.readouterr().out.splitlines()
    lines = [json.loads(line) for line in out if line.strip()]
    analytics = [entry for entry in lines if entry.get("view") == "analytics"]
    assert analytics[-1]["goals"] is None
    assert analytics[-1]["success"] is True
