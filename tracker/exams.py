# ABOUTME: Board-exam timetable with next-exam countdown, plus the motivational quote of the day.
# ABOUTME: Both are pure functions of the reference date.

from datetime import date
from typing import Iterable, Optional

from core.schemas import ExamCountdown
from tracker.days import as_day

EXAM_SCHEDULE = [
    ("Maths", date(2026, 2, 17)),
    ("English", date(2026, 2, 21)),
    ("Science", date(2026, 2, 25)),
    ("IT", date(2026, 2, 27)),
    ("Hindi", date(2026, 3, 2)),
    ("Social Science", date(2026, 3, 7)),
]

MOTIVATIONAL_QUOTES = [
    "Success is the sum of small efforts, repeated day in and day out.",
    "Don't stop until you're proud.",
    "The pain you feel today will be the strength you feel tomorrow.",
    "Your board results will stay with you forever. Make them count.",
    "Discipline is doing what needs to be done, even if you don't want to do it.",
    "Dream big. Work hard. Stay focused.",
    "Eighty percent of success is showing up.",
    "It always seems impossible until it's done.",
    "You are capable of more than you know.",
    "Study hard, for the well is deep, and our brains are shallow.",
]


def next_exam(today, schedule: Iterable = EXAM_SCHEDULE) -> Optional[ExamCountdown]:
    """Closest exam on or after today, or None once the timetable is over."""
    day = as_day(today)
    upcoming = [
        ExamCountdown(subject=subject, date=exam_day, days_left=(exam_day - day).days)
        for subject, exam_day in schedule
        if exam_day >= day
    ]
    if not upcoming:
        return None
    return min(upcoming, key=lambda e: e.days_left)


def quote_of_the_day(today) -> str:
    day = as_day(today)
    return MOTIVATIONAL_QUOTES[day.timetuple().tm_yday % len(MOTIVATIONAL_QUOTES)]
