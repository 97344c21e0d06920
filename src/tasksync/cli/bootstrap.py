# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite backend, both stores, their reconcilers and the completion
  controller into AppState,
- restores/persists the optional JSON snapshot of the last known collections.
"""

from __future__ import annotations

import logging

from ..backends.sqlite_backend import SQLiteBackend
from ..config import get_settings
from ..core.events import EventBus
from ..core.state import AppState
from ..tasks.project_store import ProjectStore
from ..tasks.reconciler import ChangeFeedReconciler
from ..tasks.snapshot_cache import load_snapshot, save_snapshot
from ..tasks.status_controller import StatusTransitionController
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.backend_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.snapshot_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, backend=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the backend) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to
    get_settings(); if backend is None, a SQLiteBackend at backend_db_path is used.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if backend is None:
        backend = SQLiteBackend(settings.backend_db_path)

    bus = EventBus()
    tasks = TaskStore(backend.tasks, bus=bus)
    projects = ProjectStore(backend.projects, bus=bus)

    controller = StatusTransitionController(
        tasks,
        bus=bus,
        double_click_window=settings.double_click_window,
        exit_animation=settings.exit_animation,
    )

    return AppState(
        settings=settings,
        bus=bus,
        tasks=tasks,
        projects=projects,
        task_reconciler=ChangeFeedReconciler(tasks, backend.task_feed),
        project_reconciler=ChangeFeedReconciler(projects, backend.project_feed),
        controller=controller,
        backend=backend,
    )


def restore_snapshot(state: AppState) -> bool:
    """Seed empty stores from the local snapshot. Returns True if anything was loaded."""
    if not getattr(state.settings, "save_snapshot", False):
        return False
    if len(state.tasks) or len(state.projects):
        return False

    tasks, projects = load_snapshot(state.settings.snapshot_path)
    if not tasks and not projects:
        return False

    state.tasks.replace_all(tasks)
    state.projects.replace_all(projects)
    return True


def persist_snapshot(state: AppState) -> None:
    if not getattr(state.settings, "save_snapshot", False):
        return
    save_snapshot(state.settings.snapshot_path, state.tasks.get_all(), state.projects.get_all())
