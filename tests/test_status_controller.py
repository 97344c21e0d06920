# tests/test_status_controller.py

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from tasksync.core.errors import PersistenceError
from tasksync.core.events import (
    CountsChanged,
    StoreUpdated,
    TaskTransition,
    TransitionFailed,
    TransitionKind,
)
from tasksync.tasks.reconciler import ChangeFeedReconciler
from tasksync.tasks.status_controller import (
    CompletionState,
    StatusTransitionController,
    ToggleAction,
    resolve_toggle,
)
from tasksync.tasks.task_models import TaskStatus

from .fakes import FakeChangeFeed, make_task, settle

EXIT = 0.05


def _seed(task_store, task_port, *tasks) -> None:
    task_port.rows = {t.id: t for t in tasks}
    task_store.replace_all(tasks)


def _transitions(events) -> list[TransitionKind]:
    return [e.kind for e in events if isinstance(e, TaskTransition)]


@pytest.mark.parametrize(
    ("status", "state", "double_click", "timer_armed", "expected"),
    [
        (TaskStatus.TODO, CompletionState.NORMAL, False, False, ToggleAction.COMPLETE),
        (TaskStatus.IN_PROGRESS, CompletionState.NORMAL, False, False, ToggleAction.COMPLETE),
        (TaskStatus.BACKLOG, CompletionState.NORMAL, True, False, ToggleAction.COMPLETE),
        (TaskStatus.DONE, CompletionState.PENDING_COMPLETE, True, True, ToggleAction.UNDO),
        (TaskStatus.DONE, CompletionState.PENDING_COMPLETE, False, True, ToggleAction.UNDO),
        (TaskStatus.DONE, CompletionState.NORMAL, True, False, ToggleAction.UNDO),
        (TaskStatus.DONE, CompletionState.NORMAL, False, False, ToggleAction.REOPEN),
        (TaskStatus.DONE, CompletionState.REMOVED, False, False, ToggleAction.REOPEN),
        (TaskStatus.ARCHIVED, CompletionState.NORMAL, True, False, ToggleAction.IGNORE),
    ],
)
def test_resolve_toggle_table(status, state, double_click, timer_armed, expected) -> None:
    assert resolve_toggle(status, state, double_click=double_click, timer_armed=timer_armed) is expected


@pytest.mark.asyncio
async def test_single_click_completes_then_removes_after_animation(task_store, task_port, bus, events) -> None:
    _seed(task_store, task_port, make_task("x", "Buy milk"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)

    action = await ctl.toggle("x", now=0.0)

    assert action is ToggleAction.COMPLETE
    assert task_store.get_by_id("x").status is TaskStatus.DONE
    assert ctl.view_state("x") is CompletionState.PENDING_COMPLETE
    assert ctl.timer_armed("x")
    assert ctl.is_visible("x")
    assert _transitions(events) == [TransitionKind.COMPLETED]
    assert any(isinstance(e, CountsChanged) and e.by_status["DONE"] == 1 for e in events)

    await asyncio.sleep(EXIT * 3)

    assert ctl.view_state("x") is CompletionState.REMOVED
    assert not ctl.is_visible("x")
    assert not ctl.timer_armed("x")
    assert ctl.visible(task_store.get_all()) == []
    ctl.dispose()


@pytest.mark.asyncio
async def test_double_click_within_window_undoes(task_store, task_port, bus, events) -> None:
    _seed(task_store, task_port, make_task("x", "Buy milk"))
    ctl = StatusTransitionController(task_store, bus=bus, double_click_window=0.35, exit_animation=0.4)

    first = asyncio.create_task(ctl.toggle("x", now=0.0))
    await settle()
    second = await ctl.toggle("x", now=0.15)
    await first

    assert second is ToggleAction.UNDO
    assert task_store.get_by_id("x").status is TaskStatus.TODO
    assert ctl.view_state("x") is CompletionState.NORMAL
    assert not ctl.timer_armed("x")
    assert ctl.is_visible("x")
    assert _transitions(events) == [TransitionKind.COMPLETED, TransitionKind.RESTORED]
    ctl.dispose()


@pytest.mark.asyncio
async def test_second_click_while_first_still_saving_resolves_to_undo(task_store, task_port, bus, events) -> None:
    _seed(task_store, task_port, make_task("x"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=10)
    task_port.pause("update")

    first = asyncio.create_task(ctl.toggle("x", now=0.0))
    await settle()
    assert task_store.get_by_id("x").status is TaskStatus.DONE

    second = asyncio.create_task(ctl.toggle("x", now=0.1))
    await settle()
    assert task_store.get_by_id("x").status is TaskStatus.TODO
    assert ctl.view_state("x") is CompletionState.NORMAL

    task_port.release()
    task_port.release()
    assert await first is ToggleAction.COMPLETE
    assert await second is ToggleAction.UNDO
    assert task_port.rows["x"].status is TaskStatus.TODO
    # The reverted completion reports nothing of its own.
    assert _transitions(events) == [TransitionKind.RESTORED]
    ctl.dispose()


@pytest.mark.asyncio
async def test_click_on_pending_complete_after_window_still_undoes(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=10)

    await ctl.toggle("x", now=0.0)
    action = await ctl.toggle("x", now=5.0)

    assert action is ToggleAction.UNDO
    assert task_store.get_by_id("x").status is TaskStatus.TODO
    assert not ctl.timer_armed("x")
    ctl.dispose()


@pytest.mark.asyncio
async def test_click_on_done_task_reopens(task_store, task_port, bus, events) -> None:
    _seed(task_store, task_port, make_task("x", status=TaskStatus.DONE))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)

    action = await ctl.toggle("x", now=0.0)

    assert action is ToggleAction.REOPEN
    assert task_store.get_by_id("x").status is TaskStatus.TODO
    assert ctl.view_state("x") is CompletionState.NORMAL
    assert _transitions(events) == [TransitionKind.REOPENED]


@pytest.mark.asyncio
async def test_reopen_after_removal_makes_task_visible_again(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)

    await ctl.toggle("x", now=0.0)
    await asyncio.sleep(EXIT * 3)
    assert not ctl.is_visible("x")

    action = await ctl.toggle("x", now=10.0)

    assert action is ToggleAction.REOPEN
    assert ctl.is_visible("x")
    assert task_store.get_by_id("x").status is TaskStatus.TODO


@pytest.mark.asyncio
async def test_archived_and_unknown_tasks_are_ignored(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("a", status=TaskStatus.ARCHIVED))
    ctl = StatusTransitionController(task_store, bus=bus)

    assert await ctl.toggle("a", now=0.0) is ToggleAction.IGNORE
    assert await ctl.toggle("missing", now=0.0) is ToggleAction.IGNORE
    assert task_port.call_count("update") == 0
    assert task_store.get_by_id("a").status is TaskStatus.ARCHIVED


@pytest.mark.asyncio
async def test_failed_completion_rolls_back_status_and_view(task_store, task_port, bus, events) -> None:
    _seed(task_store, task_port, make_task("x", "Pay rent"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)
    task_port.fail["update"] = PersistenceError("offline")

    action = await ctl.toggle("x", now=0.0)

    assert action is ToggleAction.COMPLETE
    assert task_store.get_by_id("x").status is TaskStatus.TODO
    assert ctl.view_state("x") is CompletionState.NORMAL
    assert not ctl.timer_armed("x")
    failed = [e for e in events if isinstance(e, TransitionFailed)]
    assert len(failed) == 1
    assert failed[0].kind is TransitionKind.COMPLETED
    assert failed[0].title == "Pay rent"
    assert _transitions(events) == []

    await asyncio.sleep(EXIT * 3)
    assert ctl.is_visible("x")


@pytest.mark.asyncio
async def test_failure_after_exit_animation_brings_task_back(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)
    task_port.pause("update")

    pending = asyncio.create_task(ctl.toggle("x", now=0.0))
    await asyncio.sleep(EXIT * 3)
    assert ctl.view_state("x") is CompletionState.REMOVED

    task_port.release(error=PersistenceError("rejected"))
    await pending

    assert ctl.is_visible("x")
    assert task_store.get_by_id("x").status is TaskStatus.TODO


@pytest.mark.asyncio
async def test_dispose_cancels_pending_timers(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)

    await ctl.toggle("x", now=0.0)
    ctl.dispose()
    await asyncio.sleep(EXIT * 3)

    assert not ctl.timer_armed("x")
    assert ctl.view_state("x") is CompletionState.NORMAL


@pytest.mark.asyncio
async def test_prune_forgets_deleted_tasks(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"), make_task("y"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=10)

    await ctl.toggle("x", now=0.0)
    await task_store.delete("x")
    ctl.prune()

    assert not ctl.timer_armed("x")
    assert ctl.view_state("x") is CompletionState.NORMAL


@pytest.mark.asyncio
async def test_task_reopened_elsewhere_becomes_visible_again(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=EXIT)
    feed = FakeChangeFeed()
    rec = ChangeFeedReconciler(task_store, feed)
    rec.start()

    def follow_store(event) -> None:
        if isinstance(event, StoreUpdated):
            ctl.sync(event.items)

    bus.subscribe(follow_store)

    await ctl.toggle("x", now=0.0)
    await asyncio.sleep(EXIT * 3)
    assert not ctl.is_visible("x")

    task_port.rows["x"] = replace(task_port.rows["x"], status=TaskStatus.TODO)
    feed.fire()
    await settle()

    assert task_store.get_by_id("x").status is TaskStatus.TODO
    assert ctl.is_visible("x")
    assert ctl.view_state("x") is CompletionState.NORMAL
    rec.stop()


@pytest.mark.asyncio
async def test_sync_leaves_done_and_inflight_tasks_alone(task_store, task_port, bus) -> None:
    _seed(task_store, task_port, make_task("x"), make_task("y"))
    ctl = StatusTransitionController(task_store, bus=bus, exit_animation=10)

    await ctl.toggle("x", now=0.0)
    ctl.sync(task_store.get_all())
    assert ctl.view_state("x") is CompletionState.PENDING_COMPLETE
    assert ctl.timer_armed("x")

    task_port.pause("update")
    pending = asyncio.create_task(ctl.toggle("y", now=0.0))
    await settle()
    # A refetch issued before the click still shows "y" open.
    ctl.sync([task_store.get_by_id("x"), replace(task_store.get_by_id("y"), status=TaskStatus.TODO)])
    assert ctl.view_state("y") is CompletionState.PENDING_COMPLETE

    task_port.release()
    await pending
    ctl.dispose()
