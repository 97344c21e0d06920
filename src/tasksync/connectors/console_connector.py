# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.events import (
    Event,
    MutationFailed,
    ReconcileFailed,
    TaskTransition,
    TransitionFailed,
    TransitionKind,
)
from ..core.state import AppState

logger = logging.getLogger(__name__)

_TRANSITION_TEXT = {
    TransitionKind.COMPLETED: "Completed",
    TransitionKind.RESTORED: "Restored",
    TransitionKind.REOPENED: "Reopened",
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def format_event(event: Event) -> str | None:
    """Toast-style text for events worth showing; None for the rest."""
    if isinstance(event, TaskTransition):
        return f"[TASK] {_TRANSITION_TEXT[event.kind]}: {event.title}"
    if isinstance(event, TransitionFailed):
        return f"[TASK] Could not mark {event.title!r} {event.kind.value}: {event.error}"
    if isinstance(event, MutationFailed):
        return f"[SYNC] {event.kind.value} on {event.collection} failed: {event.error}"
    if isinstance(event, ReconcileFailed):
        return f"[SYNC] Refresh of {event.collection} failed; showing last known data."
    return None


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (tasks=%d).", len(state.tasks))
    _print_ts("[CONSOLE] Type commands. Use /help for the list. Use /exit to quit.\n")

    def on_event(event: Event) -> None:
        text = format_event(event)
        if text is not None:
            _print_ts(text)

    unsubscribe = state.bus.subscribe(on_event)

    def emit(text: str) -> None:
        # Immediate user-visible feedback while a command is still awaiting the backend.
        _print_ts(text)

    try:
        while True:
            try:
                # input() blocks; keep the loop free for timers and feed callbacks.
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
                _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                reply = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is None:
                reply = "Commands start with '/'. Use /help to list them."
            _print_ts(reply)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
