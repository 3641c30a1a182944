# src/flowdo/core/state.py

from __future__ import annotations

import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from ..reminders.background import BackgroundWorker
from ..reminders.delivery import DeliveryRouter, ToastPresenter
from ..reminders.foreground import ForegroundScheduler
from ..reminders.settings_store import BackgroundSettingsStore, LocalKeyValueStore, SettingsSync
from ..tasks.task_store import TaskListStore
from .ports import NotificationHost

CoroRunner = Callable[[Coroutine[Any, Any, Any]], Any]


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    kv: LocalKeyValueStore
    task_list: TaskListStore
    worker_store: BackgroundSettingsStore
    sync: SettingsSync
    host: NotificationHost | None

    worker: BackgroundWorker
    router: DeliveryRouter
    toast: ToastPresenter | None = None
    scheduler: ForegroundScheduler | None = None
    wake_registry: Any = None  # PeriodicWakeRegistry (optional host capability)

    # Set by the connector that owns the event loop thread.
    run_coro: CoroRunner | None = None
    lock: threading.RLock = field(default_factory=threading.RLock)

    def run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run a coroutine on the app's event loop and return its result."""
        if self.run_coro is None:
            coro.close()
            raise RuntimeError("event loop is not running")
        return self.run_coro(coro)
