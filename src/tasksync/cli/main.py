# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts change-feed reconciliation,
loads both collections and runs the console REPL (optional) on one asyncio loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, persist_snapshot, restore_snapshot
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.stop_sync()
    except Exception:
        logger.exception("Failed to stop sync.")

    try:
        persist_snapshot(state)
    except Exception:
        logger.exception("Failed to save snapshot.")


async def run(state: AppState) -> None:
    settings = state.settings

    if restore_snapshot(state):
        logger.info("Showing cached data until the first fetch completes.")

    state.start_sync()
    await asyncio.gather(state.tasks.load(), state.projects.load())

    try:
        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Syncing in the background. Press Ctrl+C to stop.")
            await asyncio.Event().wait()
    finally:
        _shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
