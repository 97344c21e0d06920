# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Nothing here is secret; a `.env` next to the working directory is enough for local overrides.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "TASKSYNC_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    # Paths (gitignored)
    "TASKSYNC_DATA_DIR": "Local data directory (default: .local/tasksync).",
    "TASKSYNC_BACKEND_DB_PATH": "Reference SQLite backend path (default: <data_dir>/backend.sqlite3).",
    "TASKSYNC_SNAPSHOT_PATH": "Snapshot cache JSON path (default: <data_dir>/snapshot.json).",
    "TASKSYNC_SAVE_SNAPSHOT": "Restore/save the snapshot cache across runs (true/false, default: true).",
    # Completion toggle
    "TASKSYNC_DOUBLE_CLICK_WINDOW_MS": "Second toggle within this many ms undoes a completion (default: 350).",
    "TASKSYNC_EXIT_ANIMATION_MS": "Delay before a completed task leaves the active list (default: 400).",
    # Focus / stats
    "TASKSYNC_RECENTLY_ADDED_DAYS": "Age limit of the 'recently added' focus bucket (default: 3).",
    "TASKSYNC_WEEK_START": "First day of the 'this week' bucket, e.g. sunday or monday (default: sunday).",
    "TASKSYNC_STATS_DAYS": "Default window of /stats in days (default: 7).",
}
