# src/tasksync/tasks/task_store.py

from __future__ import annotations

import logging
from datetime import datetime

from . import task_filters, task_stats
from .entity_store import EntityStore, MutationResult
from .task_models import Category, FilterSpec, Task, TaskPatch, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore(EntityStore[Task]):
    """
    Optimistic task collection plus the read-side helpers views need.

    Selectors never touch the network; they run the pure filter/categorization
    engine over the current snapshot.
    """

    collection = "tasks"

    def get_filtered(self, spec: FilterSpec) -> list[Task]:
        return task_filters.filter_tasks(self.get_all(), spec)

    def get_by_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self.get_all() if t.status == status]

    def get_by_project(self, project_id: str | None) -> list[Task]:
        return [t for t in self.get_all() if t.project_id == project_id]

    def categorize(
        self,
        *,
        now: datetime | None = None,
        recent_days: int = task_filters.DEFAULT_RECENT_DAYS,
        week_start: int = task_filters.SUNDAY,
    ) -> dict[Category, list[Task]]:
        return task_filters.categorize(
            self.get_all(),
            now=now,
            recent_days=recent_days,
            week_start=week_start,
        )

    def count_by_status(self) -> dict[str, int]:
        return task_stats.count_by_status(self.get_all())

    async def set_status(self, task_id: str, status: TaskStatus) -> MutationResult[Task]:
        return await self.update(TaskPatch(id=task_id, status=status))
