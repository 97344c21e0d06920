# src/tasksync/backends/sqlite_backend.py

from __future__ import annotations

"""
SQLite reference backend.

Implements both ports over a local SQLite file so the sync core can run end
to end without a remote service:
- backend.tasks / backend.projects: PersistencePort (blocking sqlite calls are
  pushed to worker threads with asyncio.to_thread),
- backend.task_feed / backend.project_feed: ChangeFeedPort, signalled after
  every committed write (from the worker thread).

The schema is intentionally simple and migration-safe:
- create table if missing
- use PRAGMA table_info to detect missing columns
- add columns with ALTER TABLE only when needed

Each call opens its own short-lived connection.
"""

import asyncio
import contextlib
import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ..core.errors import NotFoundError, PersistenceError
from ..core.ports import ChangeSignal, Unsubscribe
from ..tasks.task_models import (
    Project,
    ProjectDraft,
    Task,
    TaskDraft,
    project_from_record,
    task_from_record,
)

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return json.dumps(list(value), ensure_ascii=False)
    return value


class LocalChangeFeed:
    """In-process change feed: every subscriber is called after each write."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[ChangeSignal] = []
        self._lock = threading.Lock()

    def subscribe(self, on_change: ChangeSignal) -> Unsubscribe:
        with self._lock:
            self._listeners.append(on_change)
        logger.debug("Feed %s: subscriber added", self.name)

        def _unsubscribe() -> None:
            with self._lock:
                if on_change in self._listeners:
                    self._listeners.remove(on_change)

        return _unsubscribe

    def notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Feed %s listener failed", self.name)


class SQLiteBackend:
    def __init__(self, db_path: str | Path = "tasksync.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

        self.offline = False
        self.task_feed = LocalChangeFeed("tasks")
        self.project_feed = LocalChangeFeed("projects")
        self.tasks = SQLiteTaskTable(self)
        self.projects = SQLiteProjectTable(self)

        try:
            counts = (self.count("tasks"), self.count("projects"))
        except Exception:
            counts = (-1, -1)
        logger.info("SQLiteBackend ready db=%s tasks=%s projects=%s", self._db_path, *counts)

    def set_offline(self, offline: bool) -> None:
        """Simulate a lost connection: every port call fails while offline."""
        self.offline = bool(offline)
        logger.info("SQLiteBackend offline=%s", self.offline)

    def check_online(self) -> None:
        if self.offline:
            raise PersistenceError("backend is offline")

    # ---- low-level helpers ----

    def get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self.get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'TODO',
                    priority TEXT NOT NULL DEFAULT 'MEDIUM',
                    due_date TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    project_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    color TEXT NOT NULL DEFAULT '#6366f1',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("SQLiteBackend migration: added column %s.%s", table, name)

            # Older files may predate these columns.
            add_col("tasks", "tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("tasks", "project_id", "TEXT")
            add_col("projects", "color", "TEXT NOT NULL DEFAULT '#6366f1'")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created ON tasks(created_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id)")
            conn.commit()
        finally:
            conn.close()

    def count(self, table: str) -> int:
        conn = self.get_conn()
        try:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            return int(n)
        finally:
            conn.close()


class _SQLiteTable:
    """Shared CRUD over one table; subclasses define columns and row mapping."""

    table = ""
    kind = ""

    def __init__(self, backend: SQLiteBackend, feed: LocalChangeFeed) -> None:
        self._backend = backend
        self._feed = feed

    def _from_row(self, row: sqlite3.Row) -> Any:
        raise NotImplementedError

    def _insert_values(self, draft: Any) -> dict[str, Any]:
        raise NotImplementedError

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        self._backend.check_online()
        return await asyncio.to_thread(fn, *args)

    def _select_one(self, conn: sqlite3.Connection, entity_id: str) -> Any:
        row = conn.execute(f"SELECT * FROM {self.table} WHERE id = ?", (entity_id,)).fetchone()
        if row is None:
            raise NotFoundError(entity_id, self.kind)
        return self._from_row(row)

    def _fetch_all_sync(self) -> list[Any]:
        conn = self._backend.get_conn()
        try:
            rows = conn.execute(f"SELECT * FROM {self.table} ORDER BY created_at DESC, id ASC").fetchall()
            return [self._from_row(r) for r in rows]
        finally:
            conn.close()

    def _create_sync(self, draft: Any) -> Any:
        now = _utc_now_iso()
        values = {"id": uuid.uuid4().hex, **self._insert_values(draft), "created_at": now, "updated_at": now}
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)

        conn = self._backend.get_conn()
        try:
            conn.execute(
                f"INSERT INTO {self.table}({cols}) VALUES ({marks})",
                tuple(_to_db(v) for v in values.values()),
            )
            conn.commit()
            created = self._select_one(conn, values["id"])
        finally:
            conn.close()

        logger.debug("%s row inserted id=%s", self.table, values["id"])
        self._feed.notify()
        return created

    def _update_sync(self, entity_id: str, patch: Any) -> Any:
        changes = patch.changes()
        if not changes:
            raise PersistenceError("empty patch")

        fields = [f"{name} = ?" for name in changes]
        params = [_to_db(v) for v in changes.values()]
        fields.append("updated_at = ?")
        params.append(_utc_now_iso())
        params.append(entity_id)

        conn = self._backend.get_conn()
        try:
            cur = conn.execute(f"UPDATE {self.table} SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            if cur.rowcount != 1:
                raise NotFoundError(entity_id, self.kind)
            updated = self._select_one(conn, entity_id)
        finally:
            conn.close()

        self._feed.notify()
        return updated

    def _delete_sync(self, entity_id: str) -> None:
        conn = self._backend.get_conn()
        try:
            cur = conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (entity_id,))
            conn.commit()
            if cur.rowcount != 1:
                raise NotFoundError(entity_id, self.kind)
        finally:
            conn.close()

        self._feed.notify()

    # ---- PersistencePort ----

    async def fetch_all(self) -> list[Any]:
        return await self._run(self._fetch_all_sync)

    async def create(self, draft: Any) -> Any:
        return await self._run(self._create_sync, draft)

    async def update(self, entity_id: str, patch: Any) -> Any:
        return await self._run(self._update_sync, entity_id, patch)

    async def delete(self, entity_id: str) -> None:
        await self._run(self._delete_sync, entity_id)


class SQLiteTaskTable(_SQLiteTable):
    table = "tasks"
    kind = "task"

    def __init__(self, backend: SQLiteBackend) -> None:
        super().__init__(backend, backend.task_feed)

    def _from_row(self, row: sqlite3.Row) -> Task:
        rec = dict(row)
        try:
            rec["tags"] = json.loads(rec.get("tags") or "[]")
        except ValueError:
            rec["tags"] = []
        return task_from_record(rec)

    def _insert_values(self, draft: TaskDraft) -> dict[str, Any]:
        return {
            "title": draft.title.strip(),
            "description": draft.description,
            "status": draft.status,
            "priority": draft.priority,
            "due_date": draft.due_date,
            "tags": draft.tags,
            "project_id": draft.project_id,
        }


class SQLiteProjectTable(_SQLiteTable):
    table = "projects"
    kind = "project"

    def __init__(self, backend: SQLiteBackend) -> None:
        super().__init__(backend, backend.project_feed)

    def _from_row(self, row: sqlite3.Row) -> Project:
        return project_from_record(dict(row))

    def _insert_values(self, draft: ProjectDraft) -> dict[str, Any]:
        return {
            "name": draft.name.strip(),
            "description": draft.description,
            "color": draft.color,
        }
