# src/tasksync/tasks/task_models.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields, replace
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError

logger = logging.getLogger(__name__)

# Marks a patch field that was not provided (None is a valid value: "clear it").
UNSET: Any = object()

_EPOCH = datetime.fromtimestamp(0, UTC)

DEFAULT_PROJECT_COLOR = "#6366f1"


class TaskStatus(StrEnum):
    BACKLOG = "BACKLOG"
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    ARCHIVED = "ARCHIVED"

    @classmethod
    def from_api(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.TODO

    @property
    def is_closed(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.ARCHIVED)


class TaskPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @classmethod
    def from_api(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.MEDIUM


class Category(StrEnum):
    """Derived focus buckets. Never persisted."""

    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    HIGH_PRIORITY = "high_priority"
    RECENTLY_ADDED = "recently_added"
    ACTIVE = "active"


# ---- identity ----


@dataclass(frozen=True, slots=True)
class Pending:
    """Locally generated identity of a placeholder whose create is in flight."""

    temp_id: str

    @property
    def key(self) -> str:
        return self.temp_id


@dataclass(frozen=True, slots=True)
class Confirmed:
    """Server-assigned identity."""

    id: str

    @property
    def key(self) -> str:
        return self.id


EntityRef = Pending | Confirmed


# ---- entities ----


@dataclass(frozen=True, slots=True)
class Task:
    ref: EntityRef
    title: str
    created_at: datetime
    updated_at: datetime
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str | None = None
    due_date: datetime | None = None
    tags: tuple[str, ...] = ()
    project_id: str | None = None

    @property
    def id(self) -> str:
        return self.ref.key

    @property
    def is_pending(self) -> bool:
        return isinstance(self.ref, Pending)


@dataclass(frozen=True, slots=True)
class Project:
    ref: EntityRef
    name: str
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    color: str = DEFAULT_PROJECT_COLOR

    @property
    def id(self) -> str:
        return self.ref.key

    @property
    def is_pending(self) -> bool:
        return isinstance(self.ref, Pending)


# ---- drafts (create) ----


@dataclass(frozen=True, slots=True)
class TaskDraft:
    title: str
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str | None = None
    due_date: datetime | None = None
    tags: tuple[str, ...] = ()
    project_id: str | None = None

    def validate(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("title is required")

    def to_entity(self, ref: EntityRef, now: datetime) -> Task:
        return Task(
            ref=ref,
            title=self.title.strip(),
            created_at=now,
            updated_at=now,
            status=self.status,
            priority=self.priority,
            description=self.description,
            due_date=self.due_date,
            tags=tuple(self.tags),
            project_id=self.project_id,
        )


@dataclass(frozen=True, slots=True)
class ProjectDraft:
    name: str
    description: str | None = None
    color: str = DEFAULT_PROJECT_COLOR

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("name is required")

    def to_entity(self, ref: EntityRef, now: datetime) -> Project:
        return Project(
            ref=ref,
            name=self.name.strip(),
            created_at=now,
            updated_at=now,
            description=self.description,
            color=self.color or DEFAULT_PROJECT_COLOR,
        )


# ---- patches (update) ----


def _changes(patch: Any) -> dict[str, Any]:
    return {
        f.name: getattr(patch, f.name)
        for f in fields(patch)
        if f.name != "id" and getattr(patch, f.name) is not UNSET
    }


@dataclass(frozen=True, slots=True)
class TaskPatch:
    """
    Partial update for one task.

    Fields left at UNSET are untouched; explicit None clears optional fields
    (description, due_date, project_id).
    """

    id: str
    title: Any = UNSET
    status: Any = UNSET
    priority: Any = UNSET
    description: Any = UNSET
    due_date: Any = UNSET
    tags: Any = UNSET
    project_id: Any = UNSET

    def changes(self) -> dict[str, Any]:
        return _changes(self)

    def validate(self) -> None:
        if self.title is not UNSET and (not self.title or not str(self.title).strip()):
            raise ValidationError("title cannot be empty")
        if not self.changes():
            raise ValidationError("patch has no fields to update")

    def apply(self, task: Task, now: datetime) -> Task:
        changes = self.changes()
        if "title" in changes:
            changes["title"] = str(changes["title"]).strip()
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"] or ())
        return replace(task, **changes, updated_at=max(now, task.updated_at))


@dataclass(frozen=True, slots=True)
class ProjectPatch:
    id: str
    name: Any = UNSET
    description: Any = UNSET
    color: Any = UNSET

    def changes(self) -> dict[str, Any]:
        return _changes(self)

    def validate(self) -> None:
        if self.name is not UNSET and (not self.name or not str(self.name).strip()):
            raise ValidationError("name cannot be empty")
        if not self.changes():
            raise ValidationError("patch has no fields to update")

    def apply(self, project: Project, now: datetime) -> Project:
        changes = self.changes()
        if "name" in changes:
            changes["name"] = str(changes["name"]).strip()
        return replace(project, **changes, updated_at=max(now, project.updated_at))


# ---- filter specification ----


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """
    Optional predicates over a task collection.

    Empty sets, a blank query and None bounds mean "no constraint". Due-date
    bounds are inclusive and may be datetimes or plain dates (compared by
    calendar day).
    """

    statuses: frozenset[TaskStatus] = frozenset()
    priorities: frozenset[TaskPriority] = frozenset()
    tags: frozenset[str] = frozenset()
    search_query: str = ""
    due_date_from: datetime | date | None = None
    due_date_to: datetime | date | None = None
    project_id: str | None = None

    def __post_init__(self) -> None:
        # Accept any iterable from callers; keep the stored value hashable.
        object.__setattr__(self, "statuses", frozenset(self.statuses or ()))
        object.__setattr__(self, "priorities", frozenset(self.priorities or ()))
        object.__setattr__(self, "tags", frozenset(self.tags or ()))
        object.__setattr__(self, "search_query", self.search_query or "")

    @property
    def is_empty(self) -> bool:
        return (
            not self.statuses
            and not self.priorities
            and not self.tags
            and not self.search_query.strip()
            and self.due_date_from is None
            and self.due_date_to is None
            and self.project_id is None
        )


# ---- record conversion (remote row <-> entity) ----


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO timestamp into an aware datetime. Invalid input -> None."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.astimezone()
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day).astimezone()
    try:
        dt = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp %r; treating as absent", raw)
        return None
    return dt if dt.tzinfo is not None else dt.astimezone()


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _tags(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, Iterable):
        return ()
    return tuple(str(t) for t in raw if str(t).strip())


def task_from_record(rec: Mapping[str, Any]) -> Task:
    return Task(
        ref=Confirmed(str(rec["id"])),
        title=str(rec.get("title") or ""),
        created_at=parse_timestamp(rec.get("created_at")) or _EPOCH,
        updated_at=parse_timestamp(rec.get("updated_at")) or _EPOCH,
        status=TaskStatus.from_api(rec.get("status")),
        priority=TaskPriority.from_api(rec.get("priority")),
        description=rec.get("description") or None,
        due_date=parse_timestamp(rec.get("due_date")),
        tags=_tags(rec.get("tags")),
        project_id=rec.get("project_id") or None,
    )


def task_to_record(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "priority": task.priority.value,
        "due_date": _iso(task.due_date),
        "tags": list(task.tags),
        "project_id": task.project_id,
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
    }


def project_from_record(rec: Mapping[str, Any]) -> Project:
    return Project(
        ref=Confirmed(str(rec["id"])),
        name=str(rec.get("name") or ""),
        created_at=parse_timestamp(rec.get("created_at")) or _EPOCH,
        updated_at=parse_timestamp(rec.get("updated_at")) or _EPOCH,
        description=rec.get("description") or None,
        color=str(rec.get("color") or DEFAULT_PROJECT_COLOR),
    )


def project_to_record(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "color": project.color,
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }
