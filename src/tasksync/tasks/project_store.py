# src/tasksync/tasks/project_store.py

from __future__ import annotations

import logging

from .entity_store import EntityStore
from .task_models import Project

logger = logging.getLogger(__name__)


class ProjectStore(EntityStore[Project]):
    """
    Optimistic project collection with a "current project" selection.

    Tasks only hold a weak reference (project_id); deleting a project here never
    touches tasks, they keep the dangling id until reconciled.
    """

    collection = "projects"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.selected_project_id: str | None = None

    def select_project(self, project_id: str | None) -> None:
        self.selected_project_id = project_id

    def get_selected(self) -> Project | None:
        if self.selected_project_id is None:
            return None
        return self.get_by_id(self.selected_project_id)

    def _on_created(self, entity: Project) -> None:
        self.selected_project_id = entity.id

    def _on_deleted(self, entity_id: str) -> None:
        if self.selected_project_id == entity_id:
            self.selected_project_id = None
