# ABOUTME: Progress aggregation over a user's goals, study sessions and confidence scores.
# ABOUTME: Pure functions of explicit inputs; build_dashboard/build_analytics assemble the view models.

import math
from collections import defaultdict
from typing import Iterable, Optional

from core.config import PRESENCE_WINDOW_DAYS, RECENT_SESSIONS_LIMIT, TREND_WINDOW_DAYS
from core.schemas import (
    AnalyticsStats,
    AnalyticsView,
    DailyLogEntry,
    DailyLogSubject,
    DailySummary,
    DashboardView,
    GoalProgress,
    GoalView,
    SessionView,
    SubjectTotal,
    TrendPoint,
)
from tracker.days import DAY_NAMES, as_day, previous_day, weekday_index, window
from tracker.visibility import sort_goals

MINUTES_PER_HOUR = 60


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _minutes(session) -> float:
    return session.duration_minutes or 0


def _sessions_on(sessions: Iterable, day) -> list:
    return [s for s in sessions if as_day(s.date) == day]


def _literal(value) -> str:
    """Enum members aggregate under their value; anything else under its own string."""
    return str(getattr(value, "value", value))


def goal_actual_minutes(goal, sessions: Iterable, today) -> float:
    """Minutes logged today whose subject and topic exactly match the goal's subject and title."""
    day = as_day(today)
    return sum(
        _minutes(s)
        for s in _sessions_on(sessions, day)
        if _literal(s.subject) == _literal(goal.subject) and s.topic == goal.title
    )


def goal_progress(goal, sessions: Iterable, today) -> GoalProgress:
    actual_hours = goal_actual_minutes(goal, sessions, today) / MINUTES_PER_HOUR
    target = goal.target_hours or 0
    percent = min(100.0, actual_hours / target * 100) if target > 0 else 0.0
    return GoalProgress(
        **GoalView.model_validate(goal).model_dump(),
        actual_hours=actual_hours,
        actual_hours_display=round(actual_hours, 1),
        on_pace=actual_hours >= target,
        progress_percent=percent,
    )


def goals_with_progress(goals: Iterable, sessions: Iterable, today) -> list[GoalProgress]:
    sessions = list(sessions)
    return [goal_progress(g, sessions, today) for g in goals]


def ambiguous_goal_ids(goals: Iterable) -> list:
    """Ids of goals sharing a (subject, title) pair with another goal.

    Such goals each receive the full time of every matching session, so their
    actual time is double counted.
    """
    by_key = defaultdict(list)
    for g in goals:
        by_key[(_literal(g.subject), g.title)].append(g.id)
    return [gid for ids in by_key.values() if len(ids) > 1 for gid in ids]


def daily_summary(goals: Iterable, sessions: Iterable, today) -> DailySummary:
    goals = list(goals)
    todays = _sessions_on(sessions, as_day(today))
    total_minutes = sum(_minutes(s) for s in todays)
    target_minutes = sum((g.target_hours or 0) * MINUTES_PER_HOUR for g in goals)
    completed = sum(1 for g in goals if g.completed)
    time_percent = (
        min(100.0, total_minutes / target_minutes * 100) if target_minutes > 0 else 0.0
    )
    task_percent = completed / len(goals) * 100 if goals else 0.0
    return DailySummary(
        total_minutes_studied=total_minutes,
        target_minutes=target_minutes,
        completed_goals=completed,
        total_goals=len(goals),
        time_progress_percent=time_percent,
        task_progress_percent=task_percent,
    )


def subject_distribution(
    sessions: Iterable, start=None, end=None, unit: str = "minutes"
) -> list[SubjectTotal]:
    """Total session time per subject within [start, end] (either bound optional).

    Subjects whose total is zero are left out. With unit="hours" values are
    rounded to one decimal.
    """
    start_day, end_day = as_day(start), as_day(end)
    totals: dict[str, float] = {}
    for s in sessions:
        if start is not None or end is not None:
            day = as_day(s.date)
            if day is None:
                continue
            if start_day is not None and day < start_day:
                continue
            if end_day is not None and day > end_day:
                continue
        key = _literal(s.subject)
        totals[key] = totals.get(key, 0) + _minutes(s)
    result = []
    for name, minutes in totals.items():
        if minutes <= 0:
            continue
        value = round(minutes / MINUTES_PER_HOUR, 1) if unit == "hours" else minutes
        result.append(SubjectTotal(name=name, value=value))
    return result


def trend_series(
    sessions: Iterable,
    today,
    window_days: int = TREND_WINDOW_DAYS,
    confidence: Optional[Iterable] = None,
) -> list[TrendPoint]:
    """One point per day for the `window_days` days ending today, zero-filled, oldest first."""
    days = window(as_day(today), window_days)
    minutes = {d: 0 for d in days}
    for s in sessions:
        day = as_day(s.date)
        if day in minutes:
            minutes[day] += _minutes(s)
    scores = {}
    for entry in confidence or []:
        day = as_day(entry.date)
        if day is not None:
            scores[day] = entry.score
    return [
        TrendPoint(
            date=d,
            label=DAY_NAMES[weekday_index(d)][:3],
            minutes=minutes[d],
            hours=round(minutes[d] / MINUTES_PER_HOUR, 2),
            confidence=scores.get(d),
        )
        for d in days
    ]


def current_streak(sessions: Iterable, today) -> int:
    """Consecutive days with sessions ending today, or yesterday if today has none yet."""
    studied = {as_day(s.date) for s in sessions}
    studied.discard(None)
    day = as_day(today)
    if day not in studied:
        day = previous_day(day)
        if day not in studied:
            return 0
    streak = 0
    while day in studied:
        streak += 1
        day = previous_day(day)
    return streak


def best_day(sessions: Iterable) -> int:
    """Weekday index (0=Sunday) with the most all-time minutes; ties go to the lowest index."""
    buckets = [0.0] * 7
    for s in sessions:
        day = as_day(s.date)
        if day is not None:
            buckets[weekday_index(day)] += _minutes(s)
    best, best_total = 0, 0.0
    for idx, total in enumerate(buckets):
        if total > best_total:
            best, best_total = idx, total
    return best


def average_confidence(scores: Iterable[int]) -> Optional[int]:
    """Mean score rounded to the nearest integer, or None when nothing was logged."""
    scores = list(scores)
    if not scores:
        return None
    return _round_half_up(sum(scores) / len(scores))


def daily_log(sessions: Iterable) -> list[DailyLogEntry]:
    """Per-day breakdown of subjects and topics, newest day first."""
    by_day: dict = {}
    for s in sessions:
        day = as_day(s.date)
        if day is None:
            continue
        subjects = by_day.setdefault(day, {})
        bucket = subjects.setdefault(_literal(s.subject), {"topics": [], "minutes": 0})
        if s.topic not in bucket["topics"]:
            bucket["topics"].append(s.topic)
        bucket["minutes"] += _minutes(s)
    entries = []
    for day in sorted(by_day, reverse=True):
        subjects = [
            DailyLogSubject(
                name=name,
                topics=bucket["topics"],
                duration=_round_half_up(bucket["minutes"]),
            )
            for name, bucket in by_day[day].items()
        ]
        entries.append(
            DailyLogEntry(
                date=day,
                subjects=subjects,
                total_minutes=sum(s.duration for s in subjects),
            )
        )
    return entries


def analytics_stats(sessions: Iterable, scores: Iterable[int], today) -> AnalyticsStats:
    sessions = list(sessions)
    total_minutes = sum(_minutes(s) for s in sessions)
    topics = {(_literal(s.subject), s.topic) for s in sessions}
    return AnalyticsStats(
        total_hours=_round_half_up(total_minutes / MINUTES_PER_HOUR),
        average_confidence=average_confidence(scores),
        streak=current_streak(sessions, today),
        best_day=DAY_NAMES[best_day(sessions)],
        average_session_minutes=(
            _round_half_up(total_minutes / len(sessions)) if sessions else 0
        ),
        total_topics=len(topics),
    )


def build_dashboard(
    goals: Iterable,
    sessions: Iterable,
    today,
    recent_limit: int = RECENT_SESSIONS_LIMIT,
) -> DashboardView:
    """Dashboard view over today's visible goals and the user's sessions (newest first)."""
    goals = list(goals)
    sessions = list(sessions)
    day = as_day(today)
    return DashboardView(
        goals=sort_goals(goals_with_progress(goals, sessions, day)),
        summary=daily_summary(goals, sessions, day),
        subject_distribution=subject_distribution(sessions, start=day, end=day),
        recent_sessions=[
            SessionView.model_validate(s) for s in sessions[:recent_limit]
        ],
        ambiguous_goal_ids=ambiguous_goal_ids(goals),
    )


def build_analytics(
    sessions: Iterable, confidence_entries: Iterable, today
) -> AnalyticsView:
    sessions = list(sessions)
    entries = list(confidence_entries)
    day = as_day(today)
    return AnalyticsView(
        stats=analytics_stats(sessions, [e.score for e in entries], day),
        trend=trend_series(sessions, day, TREND_WINDOW_DAYS, confidence=entries),
        presence=trend_series(sessions, day, PRESENCE_WINDOW_DAYS),
        subject_hours=subject_distribution(sessions, unit="hours"),
        daily_log=daily_log(sessions),
    )
