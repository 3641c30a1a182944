# src/flowdo/reminders/settings_store.py

from __future__ import annotations

"""
Reminder settings storage.

Two backends hold the same ReminderSettings record:
- ForegroundSettingsStore: synchronous JSON key-value file, used only by the app.
- BackgroundSettingsStore: asynchronous SQLite store, reachable from the worker.

They do not share memory. SettingsSync (foreground side) propagates every change
to the background store and pulls back last_fired_date written by the worker.
"""

import asyncio
import contextlib
import json
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any

from ..core.ports import AsyncSettingsRepository, SettingsRepository, WorkerPort
from .errors import StorageError
from .models import FOREGROUND_SETTINGS_KEY, SETTINGS_KEY, ReminderSettings, Task

logger = logging.getLogger(__name__)


class LocalKeyValueStore:
    """
    Small synchronous key-value file (string keys -> JSON values).

    Writes replace the whole file atomically (tmp + os.replace).
    A missing or corrupt file behaves like an empty store.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Local store %s is unreadable; treating as empty.", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            tmp = self._path.with_suffix(".tmp")
            try:
                tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
                os.replace(tmp, self._path)
            except OSError as e:
                raise StorageError(f"failed to write {self._path}: {e}") from e


class ForegroundSettingsStore(SettingsRepository):
    def __init__(self, kv: LocalKeyValueStore, key: str = FOREGROUND_SETTINGS_KEY) -> None:
        self._kv = kv
        self._key = key

    def read(self) -> ReminderSettings:
        try:
            raw = self._kv.get(self._key)
        except Exception:
            logger.exception("Foreground settings read failed; using defaults.")
            return ReminderSettings.defaults()
        return ReminderSettings.from_dict(raw)

    def write(self, settings: ReminderSettings) -> None:
        self._kv.set(self._key, settings.to_dict())


class BackgroundSettingsStore(AsyncSettingsRepository):
    """
    SQLite store reachable from the background context.

    Layout mirrors two object stores keyed by primary key:
    - settings(key, value JSON)
    - tasks(id, value JSON)

    Each call runs in a worker thread with its own short-lived connection and a
    single transaction, so callers only ever observe committed records.
    """

    def __init__(self, db_path: str | Path, *, key: str = SETTINGS_KEY) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._key = key
        self._ensure_schema()
        logger.info("BackgroundSettingsStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("CREATE TABLE IF NOT EXISTS settings (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.execute("CREATE TABLE IF NOT EXISTS tasks (id TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.commit()
        finally:
            conn.close()

    def _read_sync(self) -> ReminderSettings:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (self._key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return ReminderSettings.defaults()
        try:
            return ReminderSettings.from_dict(json.loads(row["value"]))
        except ValueError:
            logger.warning("Corrupt settings row key=%s; using defaults.", self._key)
            return ReminderSettings.defaults()

    def _write_sync(self, settings: ReminderSettings) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO settings(key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (self._key, json.dumps(settings.to_dict())),
                )
        finally:
            conn.close()

    def _read_tasks_sync(self) -> list[Task]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT value FROM tasks ORDER BY rowid").fetchall()
        finally:
            conn.close()
        out: list[Task] = []
        for row in rows:
            try:
                raw = json.loads(row["value"])
            except ValueError:
                continue
            if isinstance(raw, dict):
                out.append(Task.from_dict(raw))
        return out

    def _replace_tasks_sync(self, tasks: list[Task]) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM tasks")
                conn.executemany(
                    "INSERT OR REPLACE INTO tasks(id, value) VALUES (?, ?)",
                    [(t.id, json.dumps(t.to_dict(), ensure_ascii=False)) for t in tasks],
                )
        finally:
            conn.close()

    # ---- public API ----

    async def read(self) -> ReminderSettings:
        try:
            return await asyncio.to_thread(self._read_sync)
        except Exception:
            logger.exception("Background settings read failed; using defaults.")
            return ReminderSettings.defaults()

    async def write(self, settings: ReminderSettings) -> None:
        try:
            await asyncio.to_thread(self._write_sync, settings)
        except sqlite3.Error as e:
            raise StorageError(f"settings write failed: {e}") from e

    async def read_tasks(self) -> list[Task]:
        try:
            return await asyncio.to_thread(self._read_tasks_sync)
        except Exception:
            logger.exception("Background task read failed; using empty list.")
            return []

    async def replace_tasks(self, tasks: list[Task]) -> None:
        try:
            await asyncio.to_thread(self._replace_tasks_sync, list(tasks))
        except sqlite3.Error as e:
            raise StorageError(f"task mirror write failed: {e}") from e


class SettingsSync:
    """
    Foreground-side reconciliation between the two stores.

    - apply(): write foreground store, mirror to background store (fire-and-forget),
      then post SYNC_SETTINGS so the worker re-arms.
    - refresh(): re-read on every tick, adopting a last_fired_date recorded by the
      worker for the same target time.
    """

    def __init__(
        self,
        local: SettingsRepository,
        remote: AsyncSettingsRepository | None = None,
        worker: WorkerPort | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.worker = worker
        self._pending: set[asyncio.Task[None]] = set()
        # Mirror writes land in the order they were issued.
        self._mirror_lock = asyncio.Lock()

    def read(self) -> ReminderSettings:
        return self.local.read()

    def apply(self, settings: ReminderSettings) -> ReminderSettings:
        self.local.write(settings)
        if self.remote is not None:
            self._spawn(self._mirror_settings(settings))
        self._notify_worker()
        return settings

    def update(self, *, enabled: bool | None = None, target_time: str | None = None) -> ReminderSettings:
        current = self.local.read()
        new = current
        if target_time is not None:
            new = new.with_target_time(target_time)
        if enabled is not None:
            new = new.with_enabled(enabled)
        return self.apply(new)

    async def refresh(self) -> ReminderSettings:
        local = self.local.read()
        if self.remote is None:
            return local

        remote = await self.remote.read()
        if (
            remote.target_time == local.target_time
            and remote.last_fired_date
            and remote.last_fired_date > local.last_fired_date
        ):
            logger.debug("Adopting last_fired_date=%s from background store", remote.last_fired_date)
            local = local.mark_fired(remote.last_fired_date)
            try:
                self.local.write(local)
            except Exception:
                logger.exception("Failed to persist adopted last_fired_date")
        return local

    def mirror_tasks(self, tasks: list[Task]) -> None:
        if self.remote is None:
            return
        self._spawn(self._mirror_tasks(list(tasks)))

    async def flush(self) -> None:
        """Wait for outstanding mirror writes (shutdown / tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ---- internals ----

    def _spawn(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; background store not updated.")
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _mirror_settings(self, settings: ReminderSettings) -> None:
        if self.remote is None:
            return
        try:
            async with self._mirror_lock:
                await self.remote.write(settings)
        except Exception:
            logger.exception("Mirroring settings to background store failed")

    async def _mirror_tasks(self, tasks: list[Task]) -> None:
        if self.remote is None:
            return
        try:
            async with self._mirror_lock:
                await self.remote.replace_tasks(tasks)
        except Exception:
            logger.exception("Mirroring tasks to background store failed")

    def _notify_worker(self) -> None:
        if self.worker is None or not self.worker.is_active():
            return
        try:
            self.worker.post_message({"type": "SYNC_SETTINGS"})
        except Exception:
            logger.exception("Posting SYNC_SETTINGS failed")
