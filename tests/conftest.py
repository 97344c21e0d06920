# tests/conftest.py

from __future__ import annotations

import itertools
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.cli.bootstrap import create_initial_state
from tasksync.core.events import EventBus
from tasksync.core.state import AppState
from tasksync.tasks.project_store import ProjectStore
from tasksync.tasks.task_store import TaskStore

from .fakes import FakePersistence


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI layer.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        console_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path,
        backend_db_path=tmp_path / "backend.sqlite3",
        snapshot_path=tmp_path / "snapshot.json",
        save_snapshot=True,
        # Completion toggle
        double_click_window=0.35,
        exit_animation=0.05,
        # Focus / stats
        recently_added_days=3,
        week_start_index=6,
        stats_days=7,
    )


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def events(bus: EventBus) -> list:
    captured: list = []
    bus.subscribe(captured.append)
    return captured


@pytest.fixture()
def task_port() -> FakePersistence:
    return FakePersistence()


@pytest.fixture()
def project_port() -> FakePersistence:
    return FakePersistence(prefix="proj")


def _temp_ids():
    counter = itertools.count(1)
    return lambda: f"tmp-{next(counter)}"


@pytest.fixture()
def task_store(task_port: FakePersistence, bus: EventBus) -> TaskStore:
    return TaskStore(task_port, bus=bus, temp_id_factory=_temp_ids())


@pytest.fixture()
def project_store(project_port: FakePersistence, bus: EventBus) -> ProjectStore:
    return ProjectStore(project_port, bus=bus, temp_id_factory=_temp_ids())


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real composition root.

    NOTE: We keep the real SQLite backend here because its behaviour behind the
    stores is part of what we want to test.
    """
    return create_initial_state(settings=settings)
