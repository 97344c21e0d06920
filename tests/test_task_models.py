# tests/test_task_models.py

from __future__ import annotations

from datetime import timedelta

import pytest

from tasksync.core.errors import ValidationError
from tasksync.tasks.task_models import (
    Confirmed,
    FilterSpec,
    Pending,
    ProjectPatch,
    TaskPatch,
    TaskPriority,
    TaskStatus,
    parse_timestamp,
    task_from_record,
    task_to_record,
)

from .fakes import NOW, make_task


def test_refs_are_tagged() -> None:
    assert Pending("t1").key == "t1"
    assert Confirmed("c1").key == "c1"
    assert Pending("x") != Confirmed("x")


def test_patch_only_touches_set_fields_and_none_clears() -> None:
    task = make_task("a", "old", description="keep", due_date=NOW, project_id="p")
    later = NOW + timedelta(minutes=1)

    patched = TaskPatch(id="a", title=" new ", due_date=None).apply(task, later)

    assert patched.title == "new"
    assert patched.due_date is None
    assert patched.description == "keep"
    assert patched.project_id == "p"
    assert patched.updated_at == later
    assert task.title == "old"


def test_patch_never_moves_updated_at_backwards() -> None:
    task = make_task("a")
    earlier = task.updated_at - timedelta(days=1)
    assert TaskPatch(id="a", priority=TaskPriority.LOW).apply(task, earlier).updated_at == task.updated_at


def test_patch_validation() -> None:
    with pytest.raises(ValidationError):
        TaskPatch(id="a", title="  ").validate()
    with pytest.raises(ValidationError):
        ProjectPatch(id="p").validate()
    TaskPatch(id="a", status=TaskStatus.DONE).validate()


def test_filter_spec_coerces_iterables() -> None:
    spec = FilterSpec(statuses=[TaskStatus.TODO], tags=("a", "a"))
    assert spec.statuses == frozenset({TaskStatus.TODO})
    assert spec.tags == frozenset({"a"})
    assert not spec.is_empty
    assert FilterSpec(search_query="  ").is_empty


def test_record_conversion_tolerates_unknown_values() -> None:
    task = task_from_record(
        {"id": 7, "title": "x", "status": "in_progress", "priority": "??", "tags": "solo", "due_date": "bad"}
    )

    assert task.id == "7"
    assert task.status is TaskStatus.IN_PROGRESS
    assert task.priority is TaskPriority.MEDIUM
    assert task.tags == ("solo",)
    assert task.due_date is None

    rec = task_to_record(task)
    assert rec["status"] == "IN_PROGRESS"
    assert rec["tags"] == ["solo"]


def test_parse_timestamp() -> None:
    assert parse_timestamp("2024-05-15T10:00:00Z").utcoffset() == timedelta(0)
    assert parse_timestamp("2024-05-15").tzinfo is not None
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday") is None
