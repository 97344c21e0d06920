# tests/test_console_connector.py

from __future__ import annotations

from tasksync.connectors.console_connector import format_event
from tasksync.core.errors import PersistenceError
from tasksync.core.events import (
    CountsChanged,
    MutationFailed,
    MutationKind,
    ReconcileFailed,
    TaskTransition,
    TransitionFailed,
    TransitionKind,
)


def test_format_event_toasts() -> None:
    err = PersistenceError("offline")

    assert format_event(TaskTransition(TransitionKind.COMPLETED, "t1", "Pay rent")) == "[TASK] Completed: Pay rent"
    assert "Restored" in format_event(TaskTransition(TransitionKind.RESTORED, "t1", "Pay rent"))
    assert "offline" in format_event(TransitionFailed(TransitionKind.REOPENED, "t1", "Pay rent", err))
    assert "update on tasks failed" in format_event(MutationFailed("tasks", "t1", MutationKind.UPDATE, err))
    assert "projects" in format_event(ReconcileFailed("projects", err))
    assert format_event(CountsChanged(by_status={})) is None
