# src/flowdo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Every value has a local default; nothing is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .reminders.models import TimeMatch

ENV_PREFIX = "FLOWDO"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    app_url: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    local_store_path: Path
    worker_db_path: Path
    icon_path: Path

    # ---- Reminder scheduling ----
    foreground_poll_seconds: float
    background_poll_seconds: float
    periodic_sync_minutes: float
    foreground_match: TimeMatch

    # ---- Delivery ----
    notifications_enabled: bool
    toast_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "flowdo")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        app_url = _env(_k("APP_URL"), "http://localhost/flowdo/")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/flowdo"))
        local_store_path = _env_path(_k("LOCAL_STORE_PATH"), data_dir / "local_storage.json")
        worker_db_path = _env_path(_k("WORKER_DB_PATH"), data_dir / "flowdo-db.sqlite3")
        icon_path = _env_path(_k("ICON_PATH"), data_dir / "icon-192.png")

        foreground_poll_seconds = _env_float(_k("FOREGROUND_POLL_SECONDS"), 30.0)
        background_poll_seconds = _env_float(_k("BACKGROUND_POLL_SECONDS"), 60.0)
        periodic_sync_minutes = _env_float(_k("PERIODIC_SYNC_MINUTES"), 60.0)
        foreground_match = TimeMatch.from_config(os.getenv(_k("FOREGROUND_MATCH")), TimeMatch.EXACT_MINUTE)

        notifications_enabled = _env_bool(_k("NOTIFICATIONS_ENABLED"), True)
        toast_seconds = _env_float(_k("TOAST_SECONDS"), 8.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            app_url=app_url,
            data_dir=data_dir,
            local_store_path=local_store_path,
            worker_db_path=worker_db_path,
            icon_path=icon_path,
            foreground_poll_seconds=foreground_poll_seconds,
            background_poll_seconds=background_poll_seconds,
            periodic_sync_minutes=periodic_sync_minutes,
            foreground_match=foreground_match,
            notifications_enabled=notifications_enabled,
            toast_seconds=toast_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
