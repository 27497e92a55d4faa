# ABOUTME: Goal visibility rules for "today's" list: new today, rolled-over incomplete, completed today.
# ABOUTME: sort_goals orders the visible list for display (incomplete first, then by priority).

from typing import Iterable

from tracker.days import as_day

PRIORITY_RANK = {"High": 3, "Medium": 2, "Low": 1}


def is_visible(goal, today) -> bool:
    """Return True if the goal belongs in today's list.

    A goal is shown when it is dated today, when it is from an earlier day and still
    incomplete (rollover never expires), or when it is from an earlier day and was
    completed today. A missing or malformed date matches none of these.
    """
    day = as_day(today)
    goal_day = as_day(getattr(goal, "date", None))
    if day is None or goal_day is None:
        return False
    if goal_day == day:
        return True
    if goal_day > day:
        return False
    if not goal.completed:
        return True
    return as_day(getattr(goal, "completed_at", None)) == day


def filter_visible(goals: Iterable, today) -> list:
    """Linear scan keeping only goals visible on `today`. Input order is preserved."""
    return [g for g in goals if is_visible(g, today)]


def _priority_rank(goal) -> int:
    priority = getattr(goal, "priority", None)
    return PRIORITY_RANK.get(getattr(priority, "value", priority), 0)


def sort_goals(goals: Iterable) -> list:
    """Incomplete goals first, then High > Medium > Low; ties keep input order."""
    return sorted(goals, key=lambda g: (bool(g.completed), -_priority_rank(g)))
