# src/tasksync/core/state.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..tasks.project_store import ProjectStore
from ..tasks.reconciler import ChangeFeedReconciler
from ..tasks.status_controller import StatusTransitionController
from ..tasks.task_models import FilterSpec
from ..tasks.task_store import TaskStore
from .events import Event, EventBus, StoreUpdated

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    bus: EventBus
    tasks: TaskStore
    projects: ProjectStore
    task_reconciler: ChangeFeedReconciler
    project_reconciler: ChangeFeedReconciler
    controller: StatusTransitionController

    # Concrete backend (may expose extras such as set_offline); None in tests.
    backend: Any = None

    # Current list filter shared by views.
    filters: FilterSpec = field(default_factory=FilterSpec)

    _unsubscribe_view_sync: Callable[[], None] | None = field(default=None, repr=False)

    def set_filters(self, spec: FilterSpec) -> None:
        self.filters = spec

    def clear_filters(self) -> None:
        self.filters = FilterSpec()

    def _on_event(self, event: Event) -> None:
        # Keep completion view state in step with what the store holds.
        if isinstance(event, StoreUpdated) and event.collection == self.tasks.collection:
            self.controller.sync(event.items)

    def start_sync(self) -> None:
        """Subscribe both reconcilers. Call from inside the running loop."""
        if self._unsubscribe_view_sync is None:
            self._unsubscribe_view_sync = self.bus.subscribe(self._on_event)
        self.task_reconciler.start()
        self.project_reconciler.start()

    def stop_sync(self) -> None:
        if self._unsubscribe_view_sync is not None:
            self._unsubscribe_view_sync()
            self._unsubscribe_view_sync = None
        self.task_reconciler.stop()
        self.project_reconciler.stop()
        self.controller.dispose()
        logger.debug("Sync stopped")
