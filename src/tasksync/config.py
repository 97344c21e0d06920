# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Timing constants of the completion toggle are settings, not literals.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .tasks.task_filters import WEEKDAYS

ENV_PREFIX = "TASKSYNC"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over .env values.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_weekday(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in WEEKDAYS else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    backend_db_path: Path
    snapshot_path: Path
    save_snapshot: bool

    # ---- Completion toggle ----
    double_click_window_ms: int
    exit_animation_ms: int

    # ---- Focus / stats ----
    recently_added_days: int
    week_start: str
    stats_days: int

    @property
    def double_click_window(self) -> float:
        return self.double_click_window_ms / 1000.0

    @property
    def exit_animation(self) -> float:
        return self.exit_animation_ms / 1000.0

    @property
    def week_start_index(self) -> int:
        return WEEKDAYS[self.week_start]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasksync") or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))
        backend_db_path = _env_path(_k("BACKEND_DB_PATH"), data_dir / "backend.sqlite3")
        snapshot_path = _env_path(_k("SNAPSHOT_PATH"), data_dir / "snapshot.json")
        save_snapshot = _env_bool(_k("SAVE_SNAPSHOT"), True)

        double_click_window_ms = max(0, _env_int(_k("DOUBLE_CLICK_WINDOW_MS"), 350))
        exit_animation_ms = max(0, _env_int(_k("EXIT_ANIMATION_MS"), 400))

        recently_added_days = max(0, _env_int(_k("RECENTLY_ADDED_DAYS"), 3))
        week_start = _env_weekday(_k("WEEK_START"), "sunday")
        stats_days = max(1, _env_int(_k("STATS_DAYS"), 7))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            backend_db_path=backend_db_path,
            snapshot_path=snapshot_path,
            save_snapshot=save_snapshot,
            double_click_window_ms=double_click_window_ms,
            exit_animation_ms=exit_animation_ms,
            recently_added_days=recently_added_days,
            week_start=week_start,
            stats_days=stats_days,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
