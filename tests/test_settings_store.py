# tests/test_settings_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from flowdo.reminders.models import FOREGROUND_SETTINGS_KEY, ReminderSettings, Task
from flowdo.reminders.settings_store import (
    BackgroundSettingsStore,
    ForegroundSettingsStore,
    LocalKeyValueStore,
    SettingsSync,
)

from .fakes import FakeWorkerPort


def test_foreground_store_defaults_when_absent_or_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "local_storage.json"
    store = ForegroundSettingsStore(LocalKeyValueStore(path))
    assert store.read() == ReminderSettings()

    path.write_text("{not json", "utf-8")
    assert store.read() == ReminderSettings()

    path.write_text('{"flowdo-notif": [1, 2, 3]}', "utf-8")
    assert store.read() == ReminderSettings()


def test_foreground_store_write_read(fg_store: ForegroundSettingsStore, kv: LocalKeyValueStore) -> None:
    s = ReminderSettings(enabled=True, target_time="20:15", last_fired_date="2026-10-16")
    fg_store.write(s)
    assert fg_store.read() == s
    assert kv.get(FOREGROUND_SETTINGS_KEY) == s.to_dict()
    assert not kv.path.with_suffix(".tmp").exists()


@pytest.mark.asyncio
async def test_background_store_defaults_and_persistence(tmp_path: Path) -> None:
    db = tmp_path / "flowdo-db.sqlite3"
    store = BackgroundSettingsStore(db)
    assert await store.read() == ReminderSettings()

    s = ReminderSettings(enabled=True, target_time="06:45")
    await store.write(s)

    # A relaunched context sees the committed record.
    assert await BackgroundSettingsStore(db).read() == s


@pytest.mark.asyncio
async def test_background_store_corrupt_row_reads_defaults(tmp_path: Path) -> None:
    db = tmp_path / "flowdo-db.sqlite3"
    store = BackgroundSettingsStore(db)
    conn = sqlite3.connect(str(db))
    conn.execute("INSERT INTO settings(key, value) VALUES ('notif-settings', '{broken')")
    conn.commit()
    conn.close()

    assert await store.read() == ReminderSettings()


@pytest.mark.asyncio
async def test_background_task_mirror(bg_store: BackgroundSettingsStore) -> None:
    tasks = [Task(id="a", title="A", important=True), Task(id="b", title="B", completed=True)]
    await bg_store.replace_tasks(tasks)
    assert await bg_store.read_tasks() == tasks

    await bg_store.replace_tasks(tasks[:1])
    assert await bg_store.read_tasks() == tasks[:1]


@pytest.mark.asyncio
async def test_sync_apply_mirrors_and_notifies_worker(
    fg_store: ForegroundSettingsStore, bg_store: BackgroundSettingsStore
) -> None:
    worker = FakeWorkerPort()
    sync = SettingsSync(fg_store, bg_store, worker)

    s = sync.update(enabled=True, target_time="22:00")
    await sync.flush()

    assert fg_store.read() == s
    assert await bg_store.read() == s
    assert worker.messages == [{"type": "SYNC_SETTINGS"}]


@pytest.mark.asyncio
async def test_sync_skips_inactive_worker(fg_store, bg_store) -> None:
    worker = FakeWorkerPort(active=False)
    sync = SettingsSync(fg_store, bg_store, worker)
    sync.update(enabled=True)
    await sync.flush()
    assert worker.messages == []


@pytest.mark.asyncio
async def test_time_change_clears_last_fired_in_both_stores(fg_store, bg_store) -> None:
    sync = SettingsSync(fg_store, bg_store)
    sync.apply(ReminderSettings(enabled=True, target_time="21:00", last_fired_date="2026-10-16"))
    s = sync.update(target_time="22:30")
    await sync.flush()

    assert s.last_fired_date == ""
    assert (await bg_store.read()).last_fired_date == ""


@pytest.mark.asyncio
async def test_refresh_adopts_background_fire_for_same_time(fg_store, bg_store) -> None:
    sync = SettingsSync(fg_store, bg_store)
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))
    await bg_store.write(ReminderSettings(enabled=True, target_time="21:00", last_fired_date="2026-10-16"))

    s = await sync.refresh()
    assert s.last_fired_date == "2026-10-16"
    # Persisted locally, so a plain read sees it too.
    assert fg_store.read().last_fired_date == "2026-10-16"


@pytest.mark.asyncio
async def test_refresh_ignores_background_fire_for_stale_time(fg_store, bg_store) -> None:
    sync = SettingsSync(fg_store, bg_store)
    fg_store.write(ReminderSettings(enabled=True, target_time="22:00"))
    await bg_store.write(ReminderSettings(enabled=True, target_time="21:00", last_fired_date="2026-10-16"))

    assert (await sync.refresh()).last_fired_date == ""


@pytest.mark.asyncio
async def test_local_only_sync_skips_mirroring(fg_store) -> None:
    sync = SettingsSync(fg_store)
    s = sync.update(enabled=True)
    sync.mirror_tasks([Task(id="a", title="A")])
    await sync.flush()

    assert fg_store.read() == s
    # Mirror coroutines are no-ops without a background store.
    await sync._mirror_settings(s)
    await sync._mirror_tasks([])
