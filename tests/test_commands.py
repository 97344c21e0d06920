# tests/test_commands.py

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from tasksync.cli.bootstrap import create_initial_state, persist_snapshot, restore_snapshot
from tasksync.cli.commands import CommandRegistry, registry
from tasksync.tasks.task_models import TaskStatus


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    async def h2(state, args):
        called["h2"] += 1
        return "h2"

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b")

    assert await reg.handle(state, "/a x") == "h2"
    assert await reg.handle(state, "/b y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_add_list_done_and_rm(state) -> None:
    reply = await registry.handle(state, "/add Pay rent priority=high tags=home,money due=2030-01-31")
    assert reply.startswith("Added")

    task = state.tasks.get_all()[0]
    assert task.title == "Pay rent"
    assert task.tags == ("home", "money")
    assert task.due_date.date().isoformat() == "2030-01-31"

    listing = await registry.handle(state, "/list")
    assert "Pay rent" in listing

    done = await registry.handle(state, f"/done {task.id[:8]}")
    assert "complete" in done
    assert state.tasks.get_by_id(task.id).status is TaskStatus.DONE

    removed = await registry.handle(state, f"/rm {task.id}")
    assert removed.startswith("Deleted")
    assert len(state.tasks) == 0
    state.controller.dispose()


@pytest.mark.asyncio
async def test_invalid_input_is_reported_not_raised(state) -> None:
    assert "Invalid input" in await registry.handle(state, "/add")
    assert "Invalid input" in await registry.handle(state, "/add x priority=whenever")
    assert "Invalid input" in await registry.handle(state, "/filter status=nope")


@pytest.mark.asyncio
async def test_edit_and_filter(state) -> None:
    await registry.handle(state, "/add First")
    await registry.handle(state, "/add Second tags=work")
    first = next(t for t in state.tasks.get_all() if t.title == "First")

    reply = await registry.handle(state, f"/edit {first.id} status=in_progress title=Renamed")
    assert reply.startswith("Updated")
    assert state.tasks.get_by_id(first.id).status is TaskStatus.IN_PROGRESS

    assert "1 tasks match" in await registry.handle(state, "/filter tag=work")
    listing = await registry.handle(state, "/list")
    assert "Second" in listing and "Renamed" not in listing

    assert await registry.handle(state, "/filter clear") == "Filter cleared."
    assert state.filters.is_empty


@pytest.mark.asyncio
async def test_offline_mutation_is_rolled_back(state) -> None:
    await registry.handle(state, "/add Keep me")
    task = state.tasks.get_all()[0]

    assert "OFFLINE" in await registry.handle(state, "/offline on")
    reply = await registry.handle(state, f"/edit {task.id} title=Changed")

    assert reply.startswith("Failed")
    assert state.tasks.get_by_id(task.id) == task
    await registry.handle(state, "/offline off")


@pytest.mark.asyncio
async def test_projects_and_new_tasks_use_current_project(state) -> None:
    reply = await registry.handle(state, "/project add Garden")
    assert "now current" in reply
    project = state.projects.get_selected()

    await registry.handle(state, "/add Plant tomatoes")
    assert state.tasks.get_all()[0].project_id == project.id
    assert "Garden" in await registry.handle(state, "/projects")

    assert await registry.handle(state, "/project use none") == "No current project."
    await registry.handle(state, f"/project rm {project.id}")
    assert len(state.projects) == 0


@pytest.mark.asyncio
async def test_refresh_focus_stats_status(state) -> None:
    await registry.handle(state, "/add Something")

    assert (await registry.handle(state, "/refresh")).startswith("Refreshed")
    assert "Focus:" in await registry.handle(state, "/focus")
    assert "Stats (last 7 days)" in await registry.handle(state, "/stats")
    assert "Backend: online" in await registry.handle(state, "/status")
    assert "/add" in await registry.handle(state, "/help")


@pytest.mark.asyncio
async def test_snapshot_restore_seeds_empty_state(state, settings) -> None:
    await registry.handle(state, "/add Cached")
    persist_snapshot(state)

    fresh = create_initial_state(settings=settings)
    assert restore_snapshot(fresh) is True
    assert [t.title for t in fresh.tasks.get_all()] == ["Cached"]


@pytest.mark.asyncio
async def test_deleting_a_task_drops_its_completion_timer(state) -> None:
    state.start_sync()
    try:
        await registry.handle(state, "/add Short lived")
        task = state.tasks.get_all()[0]

        await state.controller.toggle(task.id, now=0.0)
        assert state.controller.timer_armed(task.id)

        await state.tasks.delete(task.id)
        assert not state.controller.timer_armed(task.id)
    finally:
        state.stop_sync()


@pytest.mark.asyncio
async def test_task_reopened_by_refetch_shows_up_in_list(state) -> None:
    state.start_sync()
    try:
        await registry.handle(state, "/add Water plants")
        task = state.tasks.get_all()[0]

        await state.controller.toggle(task.id, now=0.0)
        await asyncio.sleep(state.settings.exit_animation * 3)
        assert not state.controller.is_visible(task.id)

        state.tasks.replace_all([replace(state.tasks.get_by_id(task.id), status=TaskStatus.TODO)])

        assert state.controller.is_visible(task.id)
        assert "Water plants" in await registry.handle(state, "/list")
    finally:
        state.stop_sync()
