# src/tasksync/tasks/task_stats.py

"""Aggregate counters for dashboards (status/priority totals, daily activity, trend)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .task_models import Task, TaskPriority, TaskStatus

TREND_THRESHOLD = 0.5


@dataclass(frozen=True, slots=True)
class DayCount:
    name: str  # short weekday, e.g. "Mon"
    day: date
    value: int


def count_by_status(tasks: Iterable[Task]) -> dict[str, int]:
    counts = {s.value: 0 for s in TaskStatus}
    for t in tasks:
        counts[t.status.value] += 1
    return counts


def count_by_priority(tasks: Iterable[Task]) -> dict[str, int]:
    counts = {p.value: 0 for p in TaskPriority}
    for t in tasks:
        counts[t.priority.value] += 1
    return counts


def _window(days: int, now: datetime | None) -> list[date]:
    today = (now or datetime.now()).astimezone().date()
    return [today - timedelta(days=i) for i in range(days - 1, -1, -1)]


def _per_day(stamps: Iterable[datetime], days: int, now: datetime | None) -> list[DayCount]:
    window = _window(days, now)
    counts = dict.fromkeys(window, 0)
    for ts in stamps:
        d = ts.astimezone().date()
        if d in counts:
            counts[d] += 1
    return [DayCount(name=d.strftime("%a"), day=d, value=counts[d]) for d in window]


def created_per_day(tasks: Iterable[Task], days: int = 7, *, now: datetime | None = None) -> list[DayCount]:
    """Tasks created on each of the last `days` days, oldest first."""
    return _per_day((t.created_at for t in tasks), days, now)


def completed_per_day(tasks: Iterable[Task], days: int = 7, *, now: datetime | None = None) -> list[DayCount]:
    """DONE tasks per day, using updated_at as the completion time."""
    return _per_day((t.updated_at for t in tasks if t.status == TaskStatus.DONE), days, now)


def average_daily_completion_rate(tasks: Iterable[Task], days: int = 7, *, now: datetime | None = None) -> float:
    if days <= 0:
        return 0.0
    per_day = completed_per_day(tasks, days, now=now)
    return sum(d.value for d in per_day) / days


def completion_trend(per_day: Sequence[DayCount]) -> str:
    """
    Compare the average of the first half of the window with the second half.

    Returns "increasing", "decreasing" or "stable" (also for windows shorter than 3 days).
    """
    if len(per_day) < 3:
        return "stable"

    half = len(per_day) // 2
    first_avg = sum(d.value for d in per_day[:half]) / half
    second_avg = sum(d.value for d in per_day[half:]) / (len(per_day) - half)

    diff = second_avg - first_avg
    if diff > TREND_THRESHOLD:
        return "increasing"
    if diff < -TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def most_productive_day(per_day: Sequence[DayCount]) -> str | None:
    if not per_day:
        return None
    best = per_day[0]
    for d in per_day[1:]:
        if d.value > best.value:
            best = d
    return best.name
