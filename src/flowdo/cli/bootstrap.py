# src/flowdo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires stores, delivery channels, the foreground scheduler and the background
  worker into AppState,
- starts/stops the async services on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..config import get_settings
from ..connectors.desktop_host import PeriodicWakeRegistry, PlyerNotificationHost
from ..core.ports import AppClients, NotificationHost
from ..core.state import AppState
from ..reminders.background import BackgroundWorker
from ..reminders.delivery import DeliveryRouter, ExecutionContext, Toast, ToastPresenter
from ..reminders.foreground import ForegroundScheduler
from ..reminders.models import PERIODIC_SYNC_TAG
from ..reminders.settings_store import (
    BackgroundSettingsStore,
    ForegroundSettingsStore,
    LocalKeyValueStore,
    SettingsSync,
)
from ..tasks.task_store import TaskListStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_store_path.parent.mkdir(parents=True, exist_ok=True)
    settings.worker_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    with_window: bool = True,
    host: NotificationHost | None = None,
    clients: AppClients | None = None,
    render_toast: Callable[[Toast], None] | None = None,
    wake_registry: PeriodicWakeRegistry | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    with_window=False builds only the background side (headless worker): no
    foreground store sync, no toast, no foreground scheduler.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if host is None:
        host = PlyerNotificationHost(
            app_name=settings.app_name,
            allowed=settings.notifications_enabled,
            icon_path=settings.icon_path,
        )

    kv = LocalKeyValueStore(settings.local_store_path)
    worker_store = BackgroundSettingsStore(settings.worker_db_path)

    worker_router = DeliveryRouter(ExecutionContext.BACKGROUND, host=host, app_url=settings.app_url)
    worker = BackgroundWorker(
        worker_store,
        worker_router,
        clients=clients,
        interval_seconds=settings.background_poll_seconds,
    )

    toast: ToastPresenter | None = None
    scheduler: ForegroundScheduler | None = None
    task_list = TaskListStore(kv)
    sync = SettingsSync(ForegroundSettingsStore(kv), worker_store, worker)

    if with_window:
        toast = ToastPresenter(render=render_toast, duration_seconds=settings.toast_seconds)
        router = DeliveryRouter(
            ExecutionContext.FOREGROUND,
            host=host,
            toaster=toast,
            worker=worker,
            app_url=settings.app_url,
        )
        scheduler = ForegroundScheduler(
            sync,
            task_list,
            router,
            toaster=toast,
            host=host,
            interval_seconds=settings.foreground_poll_seconds,
            match=settings.foreground_match,
        )
    else:
        router = worker_router

    return AppState(
        settings=settings,
        kv=kv,
        task_list=task_list,
        worker_store=worker_store,
        sync=sync,
        host=host,
        worker=worker,
        router=router,
        toast=toast,
        scheduler=scheduler,
        wake_registry=wake_registry,
    )


async def start_services(state: AppState) -> None:
    """Bring up the background context, then resume the foreground one (if any)."""
    state.worker.activate()

    if state.wake_registry is not None:
        minutes = float(getattr(state.settings, "periodic_sync_minutes", 60.0))
        state.wake_registry.register(PERIODIC_SYNC_TAG, minutes * 60.0, state.worker.on_periodic_sync)

    if state.scheduler is None:
        return

    # Adopt anything the worker recorded while the app was closed, then push the
    # foreground copy (and the task list) so both stores agree.
    settings = await state.sync.refresh()
    state.sync.apply(settings)
    state.sync.mirror_tasks(state.task_list.list_tasks())
    await state.scheduler.resume()


async def stop_services(state: AppState) -> None:
    if state.scheduler is not None:
        state.scheduler.stop()
    if state.toast is not None:
        state.toast.dismiss()
    if state.wake_registry is not None:
        state.wake_registry.unregister(PERIODIC_SYNC_TAG)
        state.wake_registry.shutdown()
    state.worker.terminate()
    await state.sync.flush()


async def run_services(state: AppState, stop_event: asyncio.Event) -> None:
    try:
        await start_services(state)
    except Exception:
        logger.exception("Failed to start reminder services.")
    try:
        await stop_event.wait()
    finally:
        await stop_services(state)
