# src/tasksync/tasks/snapshot_cache.py

"""
Best-effort local cache of the last confirmed collections.

Used to show something immediately on startup before the first fetch returns.
It is a convenience, never a source of truth: load failures yield empty lists,
save failures are logged, and placeholders are never written.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .task_models import (
    Project,
    Task,
    project_from_record,
    project_to_record,
    task_from_record,
    task_to_record,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def save_snapshot(path: str | Path, tasks: Iterable[Task], projects: Iterable[Project]) -> None:
    path = Path(path)
    data = {
        "version": SNAPSHOT_VERSION,
        "tasks": [task_to_record(t) for t in tasks if not t.is_pending],
        "projects": [project_to_record(p) for p in projects if not p.is_pending],
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(Exception):
            os.chmod(path, 0o600)
        logger.info(
            "Saved snapshot: %d tasks, %d projects to %s",
            len(data["tasks"]),
            len(data["projects"]),
            path,
        )
    except Exception:
        logger.exception("Failed to save snapshot to %s", path)


def load_snapshot(path: str | Path) -> tuple[list[Task], list[Project]]:
    path = Path(path)
    if not path.exists():
        return [], []

    try:
        data = json.loads(path.read_text("utf-8"))
    except Exception:
        logger.exception("Failed to read snapshot from %s", path)
        return [], []

    if not isinstance(data, dict) or data.get("version") != SNAPSHOT_VERSION:
        logger.warning("Ignoring snapshot with unexpected shape/version at %s", path)
        return [], []

    tasks: list[Task] = []
    for rec in data.get("tasks") or []:
        if not isinstance(rec, dict) or not rec.get("id"):
            continue
        try:
            tasks.append(task_from_record(rec))
        except Exception:
            logger.debug("Skipping bad task record in snapshot: %r", rec, exc_info=True)

    projects: list[Project] = []
    for rec in data.get("projects") or []:
        if not isinstance(rec, dict) or not rec.get("id"):
            continue
        try:
            projects.append(project_from_record(rec))
        except Exception:
            logger.debug("Skipping bad project record in snapshot: %r", rec, exc_info=True)

    logger.info("Loaded snapshot: %d tasks, %d projects from %s", len(tasks), len(projects), path)
    return tasks, projects
