# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasksync.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DATA_DIR", "DOUBLE_CLICK_WINDOW_MS", "EXIT_ANIMATION_MS", "WEEK_START", "BACKEND_DB_PATH"):
        monkeypatch.delenv(f"TASKSYNC_{key}", raising=False)

    s = Settings.from_env()

    assert s.double_click_window == pytest.approx(0.35)
    assert s.exit_animation == pytest.approx(0.4)
    assert s.week_start == "sunday"
    assert s.week_start_index == 6
    assert s.backend_db_path == Path(".local/tasksync") / "backend.sqlite3"


def test_env_overrides_and_bad_values(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKSYNC_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKSYNC_DOUBLE_CLICK_WINDOW_MS", "500")
    monkeypatch.setenv("TASKSYNC_EXIT_ANIMATION_MS", "not-a-number")
    monkeypatch.setenv("TASKSYNC_WEEK_START", "Monday")
    monkeypatch.setenv("TASKSYNC_SAVE_SNAPSHOT", "off")
    monkeypatch.setenv("TASKSYNC_STATS_DAYS", "-3")

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.snapshot_path == tmp_path / "snapshot.json"
    assert s.double_click_window == pytest.approx(0.5)
    assert s.exit_animation_ms == 400
    assert s.week_start_index == 0
    assert s.save_snapshot is False
    assert s.stats_days == 1
