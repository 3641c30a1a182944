# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from flowdo.reminders.models import TimeMatch
from flowdo.reminders.settings_store import (
    BackgroundSettingsStore,
    ForegroundSettingsStore,
    LocalKeyValueStore,
)

from .fakes import FakeNotificationHost, FakeToaster


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="flowdo-test",
        app_url="http://localhost/flowdo/",
        data_dir=tmp_path,
        local_store_path=tmp_path / "local_storage.json",
        worker_db_path=tmp_path / "flowdo-db.sqlite3",
        icon_path=tmp_path / "icon.png",
        foreground_poll_seconds=0.01,
        background_poll_seconds=0.01,
        periodic_sync_minutes=60.0,
        foreground_match=TimeMatch.EXACT_MINUTE,
        notifications_enabled=True,
        toast_seconds=8.0,
    )


@pytest.fixture()
def kv(tmp_path: Path) -> LocalKeyValueStore:
    return LocalKeyValueStore(tmp_path / "local_storage.json")


@pytest.fixture()
def fg_store(kv: LocalKeyValueStore) -> ForegroundSettingsStore:
    return ForegroundSettingsStore(kv)


@pytest.fixture()
def bg_store(tmp_path: Path) -> BackgroundSettingsStore:
    # Real SQLite: the cross-context persistence is part of what we test.
    return BackgroundSettingsStore(tmp_path / "flowdo-db.sqlite3")


@pytest.fixture()
def host() -> FakeNotificationHost:
    return FakeNotificationHost()


@pytest.fixture()
def toaster() -> FakeToaster:
    return FakeToaster()
