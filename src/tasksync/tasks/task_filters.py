# src/tasksync/tasks/task_filters.py

"""
Filter predicate and focus categorization over an in-memory task collection.

Everything here is pure: no store access, no network, no hidden state. Dates
are compared as calendar days in the local time zone, and an invalid due date
is treated as if the task had none.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from .task_models import Category, FilterSpec, Task, TaskPriority, parse_timestamp

logger = logging.getLogger(__name__)

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
SUNDAY = WEEKDAYS["sunday"]

DEFAULT_RECENT_DAYS = 3

_URGENT_PRIORITIES = frozenset({TaskPriority.HIGH, TaskPriority.URGENT})


def _valid_date(value: object) -> datetime | None:
    """Coerce a due/created value into a local aware datetime, or None if unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        try:
            return value.astimezone()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, (date, str)):
        parsed = parse_timestamp(value)
        return parsed.astimezone() if parsed is not None else None
    return None


def week_bounds(today: date, week_start: int = SUNDAY) -> tuple[date, date]:
    """First and last calendar day of the week containing `today`."""
    offset = (today.weekday() - week_start) % 7
    start = today - timedelta(days=offset)
    return start, start + timedelta(days=6)


def _before(due: datetime, bound: datetime | date) -> bool:
    if isinstance(bound, datetime):
        return due < bound.astimezone()
    return due.date() < bound


def _after(due: datetime, bound: datetime | date) -> bool:
    if isinstance(bound, datetime):
        return due > bound.astimezone()
    return due.date() > bound


def matches_filter(task: Task, spec: FilterSpec) -> bool:
    """True iff the task satisfies every constraint present in `spec`."""
    if spec.statuses and task.status not in spec.statuses:
        return False

    if spec.priorities and task.priority not in spec.priorities:
        return False

    if spec.tags and spec.tags.isdisjoint(task.tags):
        return False

    if spec.search_query.strip():
        query = spec.search_query.lower()
        in_title = query in task.title.lower()
        in_description = query in (task.description or "").lower()
        if not in_title and not in_description:
            return False

    if spec.project_id is not None and task.project_id != spec.project_id:
        return False

    # Bounds only constrain tasks that actually have a (valid) due date.
    due = _valid_date(task.due_date)
    if due is not None:
        if spec.due_date_from is not None and _before(due, spec.due_date_from):
            return False
        if spec.due_date_to is not None and _after(due, spec.due_date_to):
            return False

    return True


def filter_tasks(tasks: Iterable[Task], spec: FilterSpec) -> list[Task]:
    if spec.is_empty:
        return list(tasks)
    return [t for t in tasks if matches_filter(t, spec)]


def categorize_task(
    task: Task,
    *,
    now: datetime,
    recent_days: int = DEFAULT_RECENT_DAYS,
    week_start: int = SUNDAY,
) -> Category | None:
    """
    Pick the single focus bucket for a task, first match wins:

        DONE/ARCHIVED -> None (excluded)
        OVERDUE -> TODAY -> TOMORROW -> THIS_WEEK
        HIGH_PRIORITY -> RECENTLY_ADDED
        otherwise ACTIVE (active-only)
    """
    if task.status.is_closed:
        return None

    now_local = now.astimezone()
    today = now_local.date()

    due = _valid_date(task.due_date)
    if due is not None:
        day = due.date()
        if day < today:
            return Category.OVERDUE
        if day == today:
            return Category.TODAY
        if day == today + timedelta(days=1):
            return Category.TOMORROW
        start, end = week_bounds(today, week_start)
        if start <= day <= end:
            return Category.THIS_WEEK

    if task.priority in _URGENT_PRIORITIES:
        return Category.HIGH_PRIORITY

    created = _valid_date(task.created_at)
    if created is not None and created >= now_local - timedelta(days=recent_days):
        return Category.RECENTLY_ADDED

    return Category.ACTIVE


def categorize(
    tasks: Iterable[Task],
    *,
    now: datetime | None = None,
    recent_days: int = DEFAULT_RECENT_DAYS,
    week_start: int = SUNDAY,
) -> dict[Category, list[Task]]:
    """
    Single pass over the collection.

    Every Category key is present. ACTIVE holds every non-excluded task; each of
    those also appears in at most one other bucket.
    """
    if now is None:
        now = datetime.now().astimezone()

    out: dict[Category, list[Task]] = {c: [] for c in Category}
    for task in tasks:
        bucket = categorize_task(task, now=now, recent_days=recent_days, week_start=week_start)
        if bucket is None:
            continue
        out[Category.ACTIVE].append(task)
        if bucket is not Category.ACTIVE:
            out[bucket].append(task)

    logger.debug(
        "Categorized tasks %s",
        {c.value: len(items) for c, items in out.items()},
    )
    return out
