# src/tasksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Console thresholds per logger prefix; first match wins.
# Stores log each mutation at INFO and the console already prints a toast
# for it, so their lines only reach the terminal from WARNING up.
_CONSOLE_THRESHOLDS: tuple[tuple[str, int], ...] = (
    ("tasksync.tasks.entity_store", logging.WARNING),
    ("tasksync.tasks.reconciler", logging.WARNING),
    ("tasksync.backends.", logging.WARNING),
    ("tasksync.", logging.NOTSET),
    ("py.warnings", logging.ERROR),
)


class _ConsoleNoiseFilter(logging.Filter):
    """Drop sync chatter and third-party records below ERROR from the console."""

    def __init__(self, *, verbose: bool = False) -> None:
        super().__init__()
        self.verbose = verbose

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if self.verbose and name.startswith("tasksync."):
            return True
        for prefix, threshold in _CONSOLE_THRESHOLDS:
            if name.startswith(prefix):
                return record.levelno >= threshold
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasksync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console gets filtered records on stderr so they don't interleave with the
    prompt's stdout; tasksync.log in log_dir gets everything from file_level.

    A DEBUG console level also lets store and reconciler records through.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasksync.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(verbose=console_level <= logging.DEBUG))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return log_file
