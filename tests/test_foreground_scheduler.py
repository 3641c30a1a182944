# tests/test_foreground_scheduler.py

from __future__ import annotations

import asyncio

import pytest

from flowdo.core.ports import Permission
from flowdo.reminders.background import BackgroundWorker
from flowdo.reminders.delivery import BLOCKED_NOTICE, DeliveryRouter, ExecutionContext
from flowdo.reminders.errors import NotificationUnsupportedError
from flowdo.reminders.foreground import ForegroundScheduler
from flowdo.reminders.models import REMINDER_TITLE, CheckOutcome, ReminderSettings, Task
from flowdo.reminders.settings_store import SettingsSync

from .fakes import (
    FakeNotificationHost,
    FakeTaskSource,
    FakeToaster,
    FakeWorkerPort,
    FixedClock,
    InMemoryAsyncStore,
    at,
)

TODAY = "2026-10-16"


def _build(fg_store, *, host=None, toaster=None, worker=None, clock=None, tasks=None):
    host = host or FakeNotificationHost()
    toaster = toaster if toaster is not None else FakeToaster()
    worker = worker or FakeWorkerPort()
    remote = InMemoryAsyncStore()
    sync = SettingsSync(fg_store, remote, worker)
    router = DeliveryRouter(ExecutionContext.FOREGROUND, host=host, toaster=toaster, worker=worker)
    scheduler = ForegroundScheduler(
        sync,
        FakeTaskSource(tasks or [Task(id="1", title="A", due_date=TODAY)]),
        router,
        toaster=toaster,
        host=host,
        interval_seconds=0.01,
        clock=clock or FixedClock(at(12, 0)),
    )
    return scheduler, sync, remote, worker, toaster


def _shown(worker: FakeWorkerPort) -> list[dict]:
    return [m for m in worker.messages if m["type"] == "SHOW_NOTIFICATION"]


@pytest.mark.asyncio
async def test_disabled_never_dispatches(fg_store) -> None:
    scheduler, _, _, worker, _ = _build(fg_store)
    fg_store.write(ReminderSettings(enabled=False, target_time="21:00"))

    assert await scheduler.check(at(21, 0)) == CheckOutcome.DISABLED
    assert worker.messages == []


@pytest.mark.asyncio
async def test_fires_once_in_target_minute(fg_store) -> None:
    scheduler, sync, remote, worker, toaster = _build(fg_store)
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))

    assert await scheduler.check(at(21, 0)) == CheckOutcome.FIRED
    assert await scheduler.check(at(21, 0)) == CheckOutcome.ALREADY_FIRED
    await sync.flush()

    shown = _shown(worker)
    assert len(shown) == 1
    assert "1 due today" in shown[0]["body"]
    assert fg_store.read().last_fired_date == TODAY
    assert remote.settings.last_fired_date == TODAY
    assert toaster.shown == [("Nightly Reminder", "You have 1 pending task")]


@pytest.mark.asyncio
async def test_exact_minute_misses_later_minutes(fg_store) -> None:
    scheduler, _, _, worker, _ = _build(fg_store)
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))

    assert await scheduler.check(at(20, 59)) == CheckOutcome.NOT_YET
    assert await scheduler.check(at(21, 1)) == CheckOutcome.NOT_YET
    assert _shown(worker) == []


@pytest.mark.asyncio
async def test_time_change_allows_second_fire_same_day(fg_store) -> None:
    scheduler, _, _, worker, _ = _build(fg_store)
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))
    assert await scheduler.check(at(21, 0)) == CheckOutcome.FIRED

    scheduler.set_time("22:00")
    assert await scheduler.check(at(22, 0)) == CheckOutcome.FIRED
    assert len(_shown(worker)) == 2


@pytest.mark.asyncio
async def test_background_fire_suppresses_foreground(fg_store) -> None:
    scheduler, _, remote, worker, _ = _build(fg_store)
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))
    remote.settings = ReminderSettings(enabled=True, target_time="21:00", last_fired_date=TODAY)

    assert await scheduler.check(at(21, 0)) == CheckOutcome.ALREADY_FIRED
    assert _shown(worker) == []


@pytest.mark.asyncio
async def test_failed_delivery_does_not_mark_fired(fg_store) -> None:
    host = FakeNotificationHost(perm=Permission.DENIED)
    scheduler, _, _, _, _ = _build(fg_store, host=host, worker=FakeWorkerPort(active=False))
    scheduler.router.toaster = None
    scheduler.toaster = None
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))

    assert await scheduler.check(at(21, 0)) == CheckOutcome.FAILED
    assert fg_store.read().last_fired_date == ""


@pytest.mark.asyncio
async def test_denied_permission_falls_back_to_toast_and_fires(fg_store) -> None:
    host = FakeNotificationHost(perm=Permission.DENIED)
    scheduler, _, _, worker, toaster = _build(fg_store, host=host)
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))

    assert await scheduler.check(at(21, 0)) == CheckOutcome.FIRED
    assert _shown(worker) == []
    assert len(toaster.shown) == 1
    assert toaster.shown[0][1].startswith("📋 1 due today")


@pytest.mark.asyncio
async def test_start_checks_immediately_and_stop_cancels(fg_store) -> None:
    scheduler, _, _, worker, _ = _build(fg_store, clock=FixedClock(at(21, 0)))
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))

    scheduler.start()
    await asyncio.sleep(0.05)
    assert scheduler.is_polling
    scheduler.stop()
    assert not scheduler.is_polling

    assert len(_shown(worker)) == 1


@pytest.mark.asyncio
async def test_enable_blocked_stays_disabled(fg_store) -> None:
    host = FakeNotificationHost(perm=Permission.DENIED)
    scheduler, _, _, _, toaster = _build(fg_store, host=host)

    assert await scheduler.enable() is False
    assert not fg_store.read().enabled
    assert not scheduler.is_polling
    assert toaster.shown[0][0] == "Notifications blocked"


@pytest.mark.asyncio
async def test_enable_requests_permission_and_confirms(fg_store) -> None:
    host = FakeNotificationHost(perm=Permission.DEFAULT, requested=Permission.GRANTED)
    scheduler, sync, remote, worker, toaster = _build(fg_store, host=host)

    assert await scheduler.enable() is True
    await sync.flush()
    try:
        assert scheduler.is_polling
        assert fg_store.read().enabled
        assert remote.settings.enabled
        assert {"type": "SYNC_SETTINGS"} in worker.messages
        assert _shown(worker)[0]["body"] == "Nightly reminders set for 9:00 PM"
        assert toaster.shown[0] == ("Notifications enabled", "You'll get reminders at 9:00 PM")
        assert scheduler.status_text() == "Reminder set for 9:00 PM every night"
    finally:
        scheduler.disable()

    assert not scheduler.is_polling
    assert scheduler.status_text() == "Enable notifications to get nightly reminders"


@pytest.mark.asyncio
async def test_worker_without_backend_falls_back_to_toast(fg_store) -> None:
    # Granted until the first show, which finds no notification backend.
    host = FakeNotificationHost(show_error=NotificationUnsupportedError("no backend"))
    worker = BackgroundWorker(
        InMemoryAsyncStore(), DeliveryRouter(ExecutionContext.BACKGROUND, host=host), interval_seconds=60
    )
    scheduler, _, _, _, toaster = _build(
        fg_store, host=host, worker=worker, tasks=[Task(id="1", title="Pay rent", due_date=TODAY)]
    )
    fg_store.write(ReminderSettings(enabled=True, target_time="21:00"))

    worker.activate()
    try:
        assert await scheduler.check(at(21, 0)) == CheckOutcome.FIRED
    finally:
        worker.terminate()

    assert host.shown == []
    assert len(toaster.shown) == 1
    title, message = toaster.shown[0]
    assert title == REMINDER_TITLE
    assert "Pay rent" in message
    assert message.endswith(BLOCKED_NOTICE)
    assert fg_store.read().last_fired_date == TODAY
