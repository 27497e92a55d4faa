# ABOUTME: Streamlit UI: login/signup, then Dashboard (today's goals, logging, note), Planner and Analytics tabs.
# ABOUTME: API URL configurable via API_URL env; JWT stored in session_state, sent as Bearer on requests.

import os
from datetime import datetime

import requests
import streamlit as st
from dotenv import load_dotenv

load_dotenv()

API_URL = os.environ.get("API_URL", "http://localhost:8000")
SESSION_ACCESS_TOKEN = "access_token"

SUBJECTS = ["Maths", "Science", "Social Science", "English", "Hindi", "IT", "Other"]
PRIORITIES = ["High", "Medium", "Low"]


def _format_hours(decimal_hours: float) -> str:
    """1.25 -> '1h 15m'."""
    hours = int(decimal_hours)
    minutes = round((decimal_hours - hours) * 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    return f"{hours}h {minutes}m"


def _format_minutes(minutes: float) -> str:
    """45 -> '45m', 90 -> '1h 30m', 120 -> '2h'."""
    total = round(minutes)
    if total < 60:
        return f"{total}m"
    hours, rest = divmod(total, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def _goal_label(goal: dict) -> str:
    return f"[{goal.get('subject', '')}] {goal.get('title', '')}"


def _greeting(hour: int) -> str:
    if 12 <= hour < 17:
        return "Good Afternoon"
    if hour >= 17:
        return "Good Evening"
    return "Good Morning"


def _ordinal(day: int) -> str:
    if 3 < day < 21:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def _header_text(name: str | None, now: datetime) -> str:
    """e.g. 'Good Evening Satyam, 3rd Feb Tuesday'."""
    first = (name or "").split(" ")[0] or "Student"
    return (
        f"{_greeting(now.hour)} {first}, "
        f"{now.day}{_ordinal(now.day)} {now.strftime('%b')} {now.strftime('%A')}"
    )


def _safe_json(response: requests.Response):
    """Parse response body as JSON; return dict or empty dict on failure."""
    try:
        return response.json()
    except ValueError:
        return {}


def _auth_headers():
    """Return headers with Bearer token for authenticated API calls, or empty dict if not logged in."""
    token = st.session_state.get(SESSION_ACCESS_TOKEN)
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def _clear_auth_and_rerun():
    """Remove token from session and rerun to show login screen."""
    if SESSION_ACCESS_TOKEN in st.session_state:
        del st.session_state[SESSION_ACCESS_TOKEN]
    st.rerun()


def _api(method: str, path: str, ok=(200,), **kwargs):
    """Call the API with auth; return parsed JSON on success, else show an error and return None."""
    try:
        r = requests.request(
            method, f"{API_URL}{path}", headers=_auth_headers(), timeout=10, **kwargs
        )
    except requests.RequestException as e:
        st.error(f"Could not reach the API: {e}")
        return None
    if r.status_code == 401:
        _clear_auth_and_rerun()
        return None
    if r.status_code not in ok:
        body = _safe_json(r)
        st.error(body.get("message", f"Unexpected error: {r.status_code}"))
        return None
    return _safe_json(r) if r.content else {}


def _render_login_signup():
    """Show Login and Sign up tabs; on success set access_token and rerun."""
    st.title("Study Tracker")
    st.write("Sign in or create an account to continue.")

    tab_login, tab_signup = st.tabs(["Login", "Sign up"])

    with tab_login:
        with st.form("login_form"):
            email = st.text_input("Email", key="login_email")
            password = st.text_input("Password", type="password", key="login_password")
            if st.form_submit_button("Sign in"):
                _submit_auth("/auth/login", {"email": email, "password": password}, 200)

    with tab_signup:
        with st.form("signup_form"):
            name = st.text_input("Your name", key="signup_name")
            email = st.text_input("Email", key="signup_email")
            password = st.text_input(
                "Password", type="password", key="signup_password"
            )
            if st.form_submit_button("Create account"):
                _submit_auth(
                    "/auth/signup",
                    {"email": email, "password": password, "name": name},
                    201,
                )


def _submit_auth(path: str, payload: dict, expected_status: int):
    if not (payload.get("email", "").strip() and payload.get("password")):
        st.error("Enter email and password.")
        return
    try:
        r = requests.post(f"{API_URL}{path}", json=payload, timeout=10)
    except requests.RequestException as e:
        st.error(f"Could not reach the API: {e}")
        return
    body = _safe_json(r)
    if r.status_code != expected_status:
        st.error(body.get("message", "Sign in failed."))
        return
    token = body.get("access_token")
    if not token:
        st.error("Invalid response from server.")
        return
    st.session_state[SESSION_ACCESS_TOKEN] = token
    st.rerun()


def _render_dashboard():
    data = _api("GET", "/dashboard")
    if data is None:
        return
    summary = data["summary"]
    goals = data["goals"]

    col_main, col_side = st.columns([2, 1])
    with col_main:
        st.subheader("Daily summary")
        studied_hours = summary["total_minutes_studied"] / 60
        target_hours = summary["target_minutes"] / 60
        st.caption(f"Keep pushing! You've covered {_format_hours(studied_hours)}.")
        st.write(
            f"Time: {_format_hours(studied_hours)} of {_format_hours(target_hours)}"
        )
        st.progress(min(1.0, summary["time_progress_percent"] / 100))
        st.write(f"Tasks: {summary['completed_goals']} / {summary['total_goals']}")
        st.progress(min(1.0, summary["task_progress_percent"] / 100))

        st.subheader(f"Today's goals ({len(goals)} tasks)")
        if not goals:
            st.info("No goals for today. Add one in the Planner tab.")
        for goal in goals:
            with st.container(border=True):
                st.write(f"**{goal['title']}** · {goal['subject']} · {goal['priority']}")
                st.caption(
                    f"Progress: {_format_hours(goal['actual_hours'])} of "
                    f"{_format_hours(goal['target_hours'])}"
                )
                st.progress(min(1.0, goal["progress_percent"] / 100))
                label = "Mark as incomplete" if goal["completed"] else "Mark as complete"
                if st.button(label, key=f"toggle_{goal['id']}"):
                    if (
                        _api(
                            "POST",
                            f"/goals/{goal['id']}/toggle",
                            json={"current_completed": goal["completed"]},
                        )
                        is not None
                    ):
                        st.rerun()

        st.subheader("Session history")
        recent = data["recent_sessions"]
        if not recent:
            st.caption("No sessions logged yet.")
        for s in recent:
            st.write(
                f"{s['date']} · [{s['subject']}] {s['topic']} · "
                f"{_format_minutes(s['duration_minutes'])}"
            )

    with col_side:
        _render_log_session(goals)
        exam = data.get("next_exam")
        if exam:
            st.metric(f"Next exam: {exam['subject']}", f"{exam['days_left']} days")
            st.caption(exam["date"])
        if data.get("quote"):
            st.caption(f"“{data['quote']}”")
        st.subheader("The big picture")
        with st.form("note_form"):
            note = st.text_area("Motivation", value=data.get("motivation_note") or "")
            if st.form_submit_button("Save note"):
                if _api("PUT", "/note", json={"note": note}) is not None:
                    st.success("Saved.")
        with st.form("confidence_form"):
            score = st.slider("How ready do you feel today?", 0, 100, 50)
            if st.form_submit_button("Log readiness"):
                if _api("PUT", "/confidence", json={"score": score}) is not None:
                    st.success("Readiness logged.")
        if data["subject_distribution"]:
            st.subheader("Today by subject")
            for item in data["subject_distribution"]:
                st.write(f"{item['name']}: {_format_minutes(item['value'])}")


def _render_log_session(goals: list[dict]):
    """Manual log against a pending goal; the session takes the goal's subject and title."""
    st.subheader("Log study time")
    pending = [g for g in goals if not g["completed"]]
    if not pending:
        st.caption("No pending goals. Add one in the Planner tab.")
        return
    with st.form("log_session_form"):
        choice = st.selectbox(
            "Goal", range(len(pending)), format_func=lambda i: _goal_label(pending[i])
        )
        minutes = st.number_input("Minutes", min_value=0.1, value=30.0, step=0.1)
        if st.form_submit_button("Save log"):
            goal = pending[choice]
            payload = {
                "subject": goal["subject"],
                "topic": goal["title"],
                "duration_minutes": minutes,
            }
            if _api("POST", "/sessions", ok=(201,), json=payload) is not None:
                st.success("Manual log saved.")
                st.rerun()


def _render_planner():
    st.subheader("Add a goal for today")
    with st.form("add_goal_form", clear_on_submit=True):
        title = st.text_input("Title", placeholder="e.g. Ohm's Law numericals")
        subject = st.selectbox("Subject", SUBJECTS, index=1)
        col_h, col_m = st.columns(2)
        hours = col_h.number_input("Hours", min_value=0, max_value=12, value=1)
        minutes = col_m.number_input("Minutes", min_value=0, max_value=59, value=0)
        priority = st.selectbox("Priority", PRIORITIES, index=1)
        if st.form_submit_button("Add goal"):
            if not title.strip():
                st.error("Please enter a title.")
            else:
                payload = {
                    "title": title.strip(),
                    "subject": subject,
                    "target_hours": hours + minutes / 60,
                    "priority": priority,
                }
                if _api("POST", "/goals", ok=(201,), json=payload) is not None:
                    st.success("Goal added.")

    data = _api("GET", "/goals")
    if data is None:
        return
    goals = data.get("goals", [])
    st.subheader(f"Goals ({len(goals)})")
    if not goals:
        st.info("No goals yet.")
    for goal in goals:
        status = "done" if goal["completed"] else "pending"
        with st.expander(f"{_goal_label(goal)} · {status} · from {goal['date']}"):
            with st.form(f"edit_{goal['id']}"):
                new_title = st.text_input("Title", value=goal["title"])
                new_subject = st.selectbox(
                    "Subject",
                    SUBJECTS,
                    index=SUBJECTS.index(goal["subject"])
                    if goal["subject"] in SUBJECTS
                    else len(SUBJECTS) - 1,
                )
                new_target = st.number_input(
                    "Target hours", min_value=0.1, value=float(goal["target_hours"])
                )
                new_priority = st.selectbox(
                    "Priority",
                    PRIORITIES,
                    index=PRIORITIES.index(goal["priority"])
                    if goal["priority"] in PRIORITIES
                    else 1,
                )
                if st.form_submit_button("Save changes"):
                    payload = {
                        "title": new_title,
                        "subject": new_subject,
                        "target_hours": new_target,
                        "priority": new_priority,
                    }
                    if _api("PATCH", f"/goals/{goal['id']}", json=payload) is not None:
                        st.rerun()
            if st.button("Delete goal", key=f"delete_{goal['id']}"):
                if _api("DELETE", f"/goals/{goal['id']}", ok=(204,)) is not None:
                    st.rerun()


def _render_analytics():
    data = _api("GET", "/analytics")
    if data is None:
        return
    stats = data["stats"]
    readiness = stats["average_confidence"]
    cols = st.columns(3)
    cols[0].metric("Total hours", stats["total_hours"])
    cols[1].metric("Current streak", f"{stats['streak']} days")
    cols[2].metric("Readiness", f"{readiness}%" if readiness is not None else "--%")
    cols = st.columns(3)
    cols[0].metric("Best day", stats["best_day"])
    cols[1].metric("Avg session", _format_minutes(stats["average_session_minutes"]))
    cols[2].metric("Topics covered", stats["total_topics"])

    st.subheader("Last 14 days")
    st.dataframe(
        [
            {
                "Date": p["date"],
                "Day": p["label"],
                "Hours": p["hours"],
                "Readiness": p["confidence"],
            }
            for p in data["trend"]
        ],
        hide_index=True,
    )
    active_days = sum(1 for p in data["presence"] if p["minutes"] > 0)
    st.caption(f"Studied on {active_days} of the last {len(data['presence'])} days.")

    st.subheader("Hours by subject")
    if data["subject_hours"]:
        st.dataframe(
            [{"Subject": s["name"], "Hours": s["value"]} for s in data["subject_hours"]],
            hide_index=True,
        )
    else:
        st.caption("Nothing logged yet.")

    st.subheader("Daily log")
    for entry in data["daily_log"]:
        with st.expander(f"{entry['date']} · {_format_minutes(entry['total_minutes'])}"):
            for subj in entry["subjects"]:
                st.write(
                    f"**{subj['name']}** ({_format_minutes(subj['duration'])}): "
                    + " • ".join(subj["topics"])
                )


def main():
    if not st.session_state.get(SESSION_ACCESS_TOKEN):
        _render_login_signup()
        return

    me = _api("GET", "/auth/me") or {}
    st.sidebar.write(_header_text(me.get("display_name"), datetime.now()))
    if st.sidebar.button("Logout"):
        _clear_auth_and_rerun()
        return

    st.title("Study Tracker")
    tab_dashboard, tab_planner, tab_analytics = st.tabs(
        ["Dashboard", "Planner", "Analytics"]
    )
    with tab_dashboard:
        _render_dashboard()
    with tab_planner:
        _render_planner()
    with tab_analytics:
        _render_analytics()


if __name__ == "__main__":
    main()
