# src/tasksync/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..core.errors import ValidationError
from ..core.state import AppState
from ..tasks import task_stats
from ..tasks.entity_store import MutationResult
from ..tasks.task_models import (
    DEFAULT_PROJECT_COLOR,
    Category,
    FilterSpec,
    ProjectDraft,
    Task,
    TaskDraft,
    TaskPatch,
    TaskPriority,
    TaskStatus,
    parse_timestamp,
)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(state, args, emit)

            h2 = cast(CommandHandler2, handler)
            return await h2(state, args)
        except ValidationError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting / parsing helpers ----


def _short(entity_id: str) -> str:
    return entity_id[:_SHORT_ID]


def _fmt_due(task: Task) -> str:
    if task.due_date is None:
        return ""
    return f" due {task.due_date.astimezone().strftime('%Y-%m-%d')}"


def _fmt_task(state: AppState, task: Task) -> str:
    marker = {
        "normal": " ",
        "pending_complete": "~",
        "removed": "x",
    }[state.controller.view_state(task.id).value]
    pending = " (saving...)" if task.is_pending else ""
    tags = f" #{' #'.join(task.tags)}" if task.tags else ""
    return (
        f"[{marker}] {_short(task.id)} {task.title}"
        f" [{task.status.value}/{task.priority.value}]{_fmt_due(task)}{tags}{pending}"
    )


def _failure(what: str, result: MutationResult) -> str:
    return f"Failed to {what}: {result.error}"


def _find(items, token: str):
    """Resolve a full id or a unique id prefix. Returns (entity, error_text)."""
    token = token.strip()
    if not token:
        return None, "Missing id."
    exact = [e for e in items if e.id == token]
    if exact:
        return exact[0], None
    matches = [e for e in items if e.id.startswith(token)]
    if not matches:
        return None, f"No match for id {token!r}."
    if len(matches) > 1:
        return None, f"Ambiguous id {token!r} ({len(matches)} matches)."
    return matches[0], None


def _parse_due(raw: str) -> datetime | None:
    if raw.lower() in ("", "none", "-"):
        return None
    parsed = parse_timestamp(raw)
    if parsed is None:
        raise ValidationError(f"bad date {raw!r} (use YYYY-MM-DD)")
    return parsed


def _parse_enum(enum_cls, raw: str):
    try:
        return enum_cls(raw.strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{raw!r} is not one of: {allowed}") from None


def _split_kv(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Split tokens into free words and key=value pairs (keys lowercased)."""
    words: list[str] = []
    pairs: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key:
            pairs[key.lower()] = value
        else:
            words.append(a)
    return words, pairs


def _csv(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


# ---- commands ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    backend = state.backend
    offline = bool(getattr(backend, "offline", False))
    selected = state.projects.get_selected()
    counts = state.tasks.count_by_status()
    counts_s = ", ".join(f"{k}={v}" for k, v in counts.items())
    errors = [
        f"{name}: {err}"
        for name, err in (
            ("tasks", state.tasks.last_error),
            ("projects", state.projects.last_error),
        )
        if err is not None
    ]
    return (
        "Status:\n"
        f"  Backend: {'OFFLINE' if offline else 'online'}\n"
        f"  Sync: tasks={'on' if state.task_reconciler.running else 'off'}"
        f" projects={'on' if state.project_reconciler.running else 'off'}\n"
        f"  Tasks: {len(state.tasks)} ({counts_s})\n"
        f"  Projects: {len(state.projects)}; current: {selected.name if selected else 'none'}\n"
        f"  Filter: {'none' if state.filters.is_empty else state.filters}\n"
        f"  Last error: {'; '.join(errors) if errors else 'none'}"
    )


async def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list       -> tasks matching the current filter, hiding completed ones that left the view
    /list all   -> every task, ignoring the filter
    """
    show_all = bool(args) and args[0].lower() == "all"
    if show_all:
        tasks = list(state.tasks.get_all())
    else:
        tasks = state.controller.visible(state.tasks.get_filtered(state.filters))

    if not tasks:
        return "No tasks."
    lines = [f"Tasks ({len(tasks)}):"]
    lines.extend(f"  {_fmt_task(state, t)}" for t in tasks)
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <title words> [priority=HIGH] [due=YYYY-MM-DD] [tags=a,b] [desc=text]

    New tasks go into the current project unless project=none is given.
    """
    words, pairs = _split_kv(args)
    title = " ".join(words)

    project_id = state.projects.selected_project_id
    if "project" in pairs:
        raw = pairs["project"]
        if raw.lower() in ("", "none", "-"):
            project_id = None
        else:
            project, err = _find(state.projects.get_all(), raw)
            if project is None:
                return err or "Unknown project."
            project_id = project.id

    draft = TaskDraft(
        title=title,
        priority=_parse_enum(TaskPriority, pairs["priority"]) if "priority" in pairs else TaskPriority.MEDIUM,
        description=pairs.get("desc") or None,
        due_date=_parse_due(pairs["due"]) if "due" in pairs else None,
        tags=tuple(_csv(pairs.get("tags", ""))),
        project_id=project_id,
    )

    if emit:
        emit(f"[SYNC] Adding {draft.title.strip()!r}...")

    result = await state.tasks.create(draft)
    if not result.ok:
        return _failure("add task", result)
    return f"Added {_short(result.entity_id)} {result.entity.title}"


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id> [title=..] [status=..] [priority=..] [due=YYYY-MM-DD|none] [tags=a,b] [desc=..]
    """
    if not args:
        return "Usage: /edit <id> field=value ..."

    task, err = _find(state.tasks.get_all(), args[0])
    if task is None:
        return err or "Unknown task."

    words, pairs = _split_kv(args[1:])
    if words and "title" not in pairs:
        pairs["title"] = " ".join(words)

    changes: dict = {}
    if "title" in pairs:
        changes["title"] = pairs["title"]
    if "status" in pairs:
        changes["status"] = _parse_enum(TaskStatus, pairs["status"])
    if "priority" in pairs:
        changes["priority"] = _parse_enum(TaskPriority, pairs["priority"])
    if "due" in pairs:
        changes["due_date"] = _parse_due(pairs["due"])
    if "tags" in pairs:
        changes["tags"] = tuple(_csv(pairs["tags"]))
    if "desc" in pairs:
        changes["description"] = pairs["desc"] or None

    result = await state.tasks.update(TaskPatch(id=task.id, **changes))
    if not result.ok:
        return _failure("update task", result)
    return f"Updated {_short(task.id)} {result.entity.title}"


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <id>"
    task, err = _find(state.tasks.get_all(), args[0])
    if task is None:
        return err or "Unknown task."

    result = await state.tasks.delete(task.id)
    if not result.ok:
        return _failure("delete task", result)
    return f"Deleted {_short(task.id)} {task.title}"


async def cmd_done(state: AppState, args: list[str]) -> str:
    """
    /done <id>  -> completion toggle (same as clicking the checkbox).

    Repeating it within the double-click window undoes the completion.
    """
    if not args:
        return "Usage: /done <id>"
    task, err = _find(state.tasks.get_all(), args[0])
    if task is None:
        return err or "Unknown task."

    action = await state.controller.toggle(task.id)
    after = state.tasks.get_by_id(task.id)
    status = after.status.value if after is not None else "?"
    return f"{_short(task.id)} {task.title}: {action.value} -> {status}"


async def cmd_focus(state: AppState, args: list[str]) -> str:
    settings = state.settings
    buckets = state.tasks.categorize(
        recent_days=settings.recently_added_days,
        week_start=settings.week_start_index,
    )

    lines = ["Focus:"]
    for category in Category:
        if category is Category.ACTIVE:
            continue
        tasks = state.controller.visible(buckets[category])
        if not tasks:
            continue
        lines.append(f"  {category.value.replace('_', ' ').title()} ({len(tasks)}):")
        lines.extend(f"    {_fmt_task(state, t)}" for t in tasks)

    active = len(buckets[Category.ACTIVE])
    if len(lines) == 1:
        lines.append("  Nothing needs attention.")
    lines.append(f"  Active total: {active}")
    return "\n".join(lines)


async def cmd_filter(state: AppState, args: list[str]) -> str:
    """
    /filter                -> show current filter
    /filter clear          -> remove every constraint
    /filter status=TODO,IN_PROGRESS priority=HIGH tag=a,b q=text from=DATE to=DATE project=<id>|current
    """
    if not args:
        return f"Current filter: {'none' if state.filters.is_empty else state.filters}"

    if args[0].lower() == "clear":
        state.clear_filters()
        return "Filter cleared."

    words, pairs = _split_kv(args)
    query = pairs.get("q", " ".join(words))

    project_id: str | None = None
    raw_project = pairs.get("project", "")
    if raw_project.lower() == "current":
        project_id = state.projects.selected_project_id
    elif raw_project:
        project, err = _find(state.projects.get_all(), raw_project)
        if project is None:
            return err or "Unknown project."
        project_id = project.id

    spec = FilterSpec(
        statuses=frozenset(_parse_enum(TaskStatus, s) for s in _csv(pairs.get("status", ""))),
        priorities=frozenset(_parse_enum(TaskPriority, p) for p in _csv(pairs.get("priority", ""))),
        tags=frozenset(_csv(pairs.get("tag", pairs.get("tags", "")))),
        search_query=query,
        due_date_from=_parse_due(pairs["from"]) if "from" in pairs else None,
        due_date_to=_parse_due(pairs["to"]) if "to" in pairs else None,
        project_id=project_id,
    )
    state.set_filters(spec)
    matched = len(state.tasks.get_filtered(spec))
    return f"Filter set ({matched} tasks match)."


async def cmd_stats(state: AppState, args: list[str]) -> str:
    days = state.settings.stats_days
    if args:
        try:
            days = max(1, int(args[0]))
        except ValueError:
            return "Usage: /stats [days]"

    tasks = state.tasks.get_all()
    by_status = task_stats.count_by_status(tasks)
    by_priority = task_stats.count_by_priority(tasks)
    created = task_stats.created_per_day(tasks, days)
    completed = task_stats.completed_per_day(tasks, days)

    return (
        f"Stats (last {days} days):\n"
        f"  By status: {', '.join(f'{k}={v}' for k, v in by_status.items())}\n"
        f"  By priority: {', '.join(f'{k}={v}' for k, v in by_priority.items())}\n"
        f"  Created: {' '.join(f'{d.name}:{d.value}' for d in created)}\n"
        f"  Completed: {' '.join(f'{d.name}:{d.value}' for d in completed)}\n"
        f"  Avg completed/day: {task_stats.average_daily_completion_rate(tasks, days):.2f}\n"
        f"  Trend: {task_stats.completion_trend(completed)}\n"
        f"  Most productive: {task_stats.most_productive_day(completed) or '-'}"
    )


async def cmd_projects(state: AppState, args: list[str]) -> str:
    projects = state.projects.get_all()
    if not projects:
        return "No projects. Use /project add <name>."
    selected = state.projects.selected_project_id
    lines = [f"Projects ({len(projects)}):"]
    for p in projects:
        mark = "*" if p.id == selected else " "
        count = len(state.tasks.get_by_project(p.id))
        pending = " (saving...)" if p.is_pending else ""
        lines.append(f"  {mark} {_short(p.id)} {p.name} [{count} tasks]{pending}")
    return "\n".join(lines)


async def cmd_project(state: AppState, args: list[str]) -> str:
    """
    /project add <name> [color=#hex] [desc=text]
    /project rm <id>
    /project use <id>|none
    """
    usage = "Usage: /project add <name> | /project rm <id> | /project use <id>|none"
    if not args:
        selected = state.projects.get_selected()
        return f"Current project: {selected.name if selected else 'none'}\n{usage}"

    sub = args[0].lower()
    rest = args[1:]

    if sub == "add":
        words, pairs = _split_kv(rest)
        draft = ProjectDraft(
            name=" ".join(words),
            description=pairs.get("desc") or None,
            color=pairs.get("color") or DEFAULT_PROJECT_COLOR,
        )
        result = await state.projects.create(draft)
        if not result.ok:
            return _failure("add project", result)
        return f"Added project {_short(result.entity_id)} {result.entity.name} (now current)"

    if sub == "rm":
        if not rest:
            return usage
        project, err = _find(state.projects.get_all(), rest[0])
        if project is None:
            return err or "Unknown project."
        result = await state.projects.delete(project.id)
        if not result.ok:
            return _failure("delete project", result)
        return f"Deleted project {project.name}"

    if sub == "use":
        if not rest or rest[0].lower() == "none":
            state.projects.select_project(None)
            return "No current project."
        project, err = _find(state.projects.get_all(), rest[0])
        if project is None:
            return err or "Unknown project."
        state.projects.select_project(project.id)
        return f"Current project: {project.name}"

    return usage


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    tasks_ok = await state.task_reconciler.refresh()
    projects_ok = await state.project_reconciler.refresh()
    if tasks_ok and projects_ok:
        return f"Refreshed: {len(state.tasks)} tasks, {len(state.projects)} projects."
    return "Refresh failed; showing last known data."


async def cmd_offline(state: AppState, args: list[str]) -> str:
    """
    /offline      -> show status
    /offline on   -> make every backend call fail (to watch rollbacks)
    /offline off  -> back online
    """
    backend = state.backend
    if backend is None or not hasattr(backend, "set_offline"):
        return "This backend cannot be switched offline."

    if not args:
        return f"Backend is {'OFFLINE' if backend.offline else 'online'}. Use /offline on or /offline off."

    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes"):
        backend.set_offline(True)
        return "Backend is now OFFLINE. Changes will be rolled back."
    if arg in ("off", "0", "false", "no"):
        backend.set_offline(False)
        return "Backend is back online."
    return "Usage: /offline on or /offline off."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show sync/backend status and counts.")
registry.register("list", cmd_list, help_text="List tasks: /list | /list all.", aliases=["ls"])
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <title> [priority=HIGH] [due=YYYY-MM-DD] [tags=a,b].",
)
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> field=value ...")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register(
    "done", cmd_done, help_text="Toggle completion: /done <id> (repeat quickly to undo)."
)
registry.register("focus", cmd_focus, help_text="Show overdue/today/tomorrow/this week buckets.")
registry.register(
    "filter",
    cmd_filter,
    help_text="Filter /list: /filter status=.. priority=.. tag=.. q=.. from=.. to=.. | /filter clear.",
)
registry.register("stats", cmd_stats, help_text="Show task statistics: /stats [days].")
registry.register("projects", cmd_projects, help_text="List projects.")
registry.register("project", cmd_project, help_text="Manage projects: /project add|rm|use.")
registry.register("refresh", cmd_refresh, help_text="Refetch tasks and projects now.")
registry.register("offline", cmd_offline, help_text="Simulate a lost backend: /offline on|off.")
