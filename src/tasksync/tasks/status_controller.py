# src/tasksync/tasks/status_controller.py

from __future__ import annotations

"""
Completion toggle state machine.

Separates two facts:
- whether a task is DONE (durable, persisted through TaskStore.update),
- whether it should still render in the active list (local, driven by a
  timed exit animation).

Per task the controller keeps a view state (NORMAL / PENDING_COMPLETE /
REMOVED), the time of the last click and at most one armed removal timer.
A click is resolved to an action by resolve_toggle(), the action is applied
through the _TRANSITIONS table, and on persistence failure the view state is
rolled back together with the status.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum

from ..core.events import (
    CountsChanged,
    EventBus,
    TaskTransition,
    TransitionFailed,
    TransitionKind,
    ViewStateChanged,
)
from .task_models import Task, TaskPatch, TaskStatus
from .task_store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_DOUBLE_CLICK_WINDOW = 0.35
DEFAULT_EXIT_ANIMATION = 0.4


class CompletionState(StrEnum):
    NORMAL = "normal"
    PENDING_COMPLETE = "pending_complete"
    REMOVED = "removed"


class ToggleAction(StrEnum):
    IGNORE = "ignore"
    COMPLETE = "complete"
    UNDO = "undo"
    REOPEN = "reopen"


@dataclass(frozen=True, slots=True)
class _Transition:
    target_status: TaskStatus
    next_state: CompletionState
    event: TransitionKind


_TRANSITIONS: dict[ToggleAction, _Transition] = {
    ToggleAction.COMPLETE: _Transition(TaskStatus.DONE, CompletionState.PENDING_COMPLETE, TransitionKind.COMPLETED),
    ToggleAction.UNDO: _Transition(TaskStatus.TODO, CompletionState.NORMAL, TransitionKind.RESTORED),
    ToggleAction.REOPEN: _Transition(TaskStatus.TODO, CompletionState.NORMAL, TransitionKind.REOPENED),
}


def resolve_toggle(
    status: TaskStatus,
    state: CompletionState,
    *,
    double_click: bool,
    timer_armed: bool,
) -> ToggleAction:
    """
    Map (persisted status, view state, click timing, timer) to an action.

        ARCHIVED                                -> IGNORE
        DONE and (double click or PENDING)      -> UNDO
        DONE and no timer armed                 -> REOPEN
        anything not DONE                       -> COMPLETE
    """
    if status == TaskStatus.ARCHIVED:
        return ToggleAction.IGNORE

    if status == TaskStatus.DONE:
        if double_click or state is CompletionState.PENDING_COMPLETE:
            return ToggleAction.UNDO
        if not timer_armed:
            return ToggleAction.REOPEN
        return ToggleAction.IGNORE

    return ToggleAction.COMPLETE


@dataclass(slots=True)
class _ViewEntry:
    state: CompletionState = CompletionState.NORMAL
    last_click: float | None = None
    timer: asyncio.TimerHandle | None = None
    timer_gen: int = 0
    action_gen: int = 0


class StatusTransitionController:
    def __init__(
        self,
        store: TaskStore,
        *,
        bus: EventBus | None = None,
        double_click_window: float = DEFAULT_DOUBLE_CLICK_WINDOW,
        exit_animation: float = DEFAULT_EXIT_ANIMATION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._bus = bus or store.bus
        self._window = max(0.0, float(double_click_window))
        self._exit_animation = max(0.0, float(exit_animation))
        self._clock = clock
        self._entries: dict[str, _ViewEntry] = {}

    # ---- queries ----

    def view_state(self, task_id: str) -> CompletionState:
        entry = self._entries.get(task_id)
        return entry.state if entry is not None else CompletionState.NORMAL

    def is_visible(self, task_id: str) -> bool:
        return self.view_state(task_id) is not CompletionState.REMOVED

    def timer_armed(self, task_id: str) -> bool:
        entry = self._entries.get(task_id)
        return entry is not None and entry.timer is not None

    def visible(self, tasks: Iterable[Task]) -> list[Task]:
        return [t for t in tasks if self.is_visible(t.id)]

    # ---- timer ----

    def _set_state(self, task_id: str, entry: _ViewEntry, state: CompletionState) -> None:
        if entry.state is state:
            return
        entry.state = state
        self._bus.emit(ViewStateChanged(task_id=task_id, state=state.value))

    def _arm_timer(self, task_id: str, entry: _ViewEntry) -> None:
        self._cancel_timer(entry)
        gen = entry.timer_gen
        loop = asyncio.get_running_loop()
        entry.timer = loop.call_later(self._exit_animation, self._on_exit_finished, task_id, gen)

    @staticmethod
    def _cancel_timer(entry: _ViewEntry) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
        entry.timer_gen += 1

    def _on_exit_finished(self, task_id: str, gen: int) -> None:
        entry = self._entries.get(task_id)
        if entry is None or entry.timer is None or entry.timer_gen != gen:
            return
        entry.timer = None
        entry.timer_gen += 1
        if entry.state is CompletionState.PENDING_COMPLETE:
            self._set_state(task_id, entry, CompletionState.REMOVED)
            logger.debug("Task %s removed from active view", task_id)

    # ---- transitions ----

    async def toggle(self, task_id: str, *, now: float | None = None) -> ToggleAction:
        """
        Handle one "completion toggle activated" event.

        The optimistic part (status, view state, timer) happens before the first
        await, so a second click arriving while the first is still persisting
        already sees DONE + PENDING_COMPLETE and resolves to UNDO.
        """
        task = self._store.get_by_id(task_id)
        if task is None or task.is_pending:
            logger.debug("Toggle ignored for unknown or pending task %s", task_id)
            return ToggleAction.IGNORE

        if task.status == TaskStatus.ARCHIVED:
            return ToggleAction.IGNORE

        entry = self._entries.setdefault(task_id, _ViewEntry())
        clicked_at = self._clock() if now is None else now
        double_click = entry.last_click is not None and clicked_at - entry.last_click < self._window
        entry.last_click = clicked_at

        action = resolve_toggle(
            task.status,
            entry.state,
            double_click=double_click,
            timer_armed=entry.timer is not None,
        )
        if action is ToggleAction.IGNORE:
            return action

        transition = _TRANSITIONS[action]
        prev_state = entry.state
        entry.action_gen += 1
        gen = entry.action_gen

        self._cancel_timer(entry)
        self._set_state(task_id, entry, transition.next_state)
        if action is ToggleAction.COMPLETE:
            self._arm_timer(task_id, entry)

        logger.info("Task %s toggle -> %s (double_click=%s)", task_id, action.value, double_click)

        result = await self._store.update(TaskPatch(id=task_id, status=transition.target_status))

        if result.ok:
            if entry.action_gen != gen:
                # A newer click already reverted this one; it reports its own outcome.
                logger.debug("Task %s %s confirmed but superseded", task_id, action.value)
                return action
            self._bus.emit(TaskTransition(kind=transition.event, task_id=task_id, title=task.title))
            self._bus.emit(CountsChanged(by_status=self._store.count_by_status()))
            return action

        # Store already rolled the status back; bring the view back with it,
        # unless a newer click has taken over this task's view state.
        if entry.action_gen == gen and self._entries.get(task_id) is entry:
            if action is ToggleAction.COMPLETE:
                self._cancel_timer(entry)
                self._set_state(task_id, entry, CompletionState.NORMAL)
            elif action is ToggleAction.REOPEN:
                self._set_state(task_id, entry, prev_state)
            else:
                self._set_state(task_id, entry, CompletionState.NORMAL)

        logger.warning("Task %s %s failed: %s", task_id, action.value, result.error)
        self._bus.emit(
            TransitionFailed(kind=transition.event, task_id=task_id, title=task.title, error=result.error)
        )
        return action

    # ---- housekeeping ----

    def prune(self, live_ids: Iterable[str] | None = None) -> None:
        """Forget view state for tasks that are no longer in the store."""
        ids = set(live_ids) if live_ids is not None else {t.id for t in self._store.get_all()}
        for task_id in [k for k in self._entries if k not in ids]:
            self._cancel_timer(self._entries.pop(task_id))

    def sync(self, tasks: Iterable[Task]) -> None:
        """
        Follow a fresh store snapshot.

        Drops entries of deleted tasks and sends a task back to NORMAL once its
        status is no longer DONE (reopened by another client, say). Tasks with
        a mutation still in flight are left to that mutation.
        """
        by_id = {t.id: t for t in tasks}
        self.prune(by_id)
        for task_id, entry in list(self._entries.items()):
            if entry.state is CompletionState.NORMAL or self._store.has_inflight(task_id):
                continue
            if by_id[task_id].status != TaskStatus.DONE:
                self._cancel_timer(entry)
                self._set_state(task_id, entry, CompletionState.NORMAL)
                logger.debug("Task %s no longer DONE, view reset", task_id)

    def dispose(self) -> None:
        for entry in self._entries.values():
            self._cancel_timer(entry)
        self._entries.clear()
