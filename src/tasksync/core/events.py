# src/tasksync/core/events.py

from __future__ import annotations

"""
Events emitted to presentation collaborators (lists, toasts, counters).

The bus is synchronous and in-process: emit() calls every listener in
subscription order. A failing listener is logged and skipped so it can never
break a store mutation or a timer callback.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class MutationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TransitionKind(StrEnum):
    COMPLETED = "completed"
    RESTORED = "restored"
    REOPENED = "reopened"


@dataclass(frozen=True, slots=True)
class StoreUpdated:
    collection: str
    items: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class MutationFailed:
    collection: str
    entity_id: str
    kind: MutationKind
    error: BaseException


@dataclass(frozen=True, slots=True)
class TaskTransition:
    kind: TransitionKind
    task_id: str
    title: str


@dataclass(frozen=True, slots=True)
class TransitionFailed:
    kind: TransitionKind
    task_id: str
    title: str
    error: BaseException | None


@dataclass(frozen=True, slots=True)
class ReconcileFailed:
    collection: str
    error: BaseException


@dataclass(frozen=True, slots=True)
class CountsChanged:
    by_status: dict[str, int]


@dataclass(frozen=True, slots=True)
class ViewStateChanged:
    task_id: str
    state: str


Event = (
    StoreUpdated
    | MutationFailed
    | TaskTransition
    | TransitionFailed
    | ReconcileFailed
    | CountsChanged
    | ViewStateChanged
)
Listener = Callable[[Event], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed event=%s", type(event).__name__)
