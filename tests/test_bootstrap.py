# tests/test_bootstrap.py

from __future__ import annotations

import pytest

from flowdo.cli.bootstrap import create_initial_state, start_services, stop_services
from flowdo.reminders.delivery import ExecutionContext
from flowdo.reminders.models import PERIODIC_SYNC_TAG, ReminderSettings

from .fakes import FakeNotificationHost


@pytest.mark.asyncio
async def test_app_start_adopts_worker_fire_and_mirrors(settings) -> None:
    host = FakeNotificationHost()
    state = create_initial_state(settings=settings, host=host)
    assert state.scheduler is not None and state.toast is not None
    assert state.router.context == ExecutionContext.FOREGROUND

    state.task_list.add_task("Water plants")
    state.sync.local.write(ReminderSettings(enabled=True, target_time="21:00"))
    await state.worker_store.write(
        ReminderSettings(enabled=True, target_time="21:00", last_fired_date="2026-10-16")
    )

    await start_services(state)
    try:
        assert state.worker.is_active()
        assert state.scheduler.is_polling
    finally:
        await stop_services(state)

    assert not state.worker.is_active()
    assert not state.scheduler.is_polling
    assert state.sync.read().last_fired_date == "2026-10-16"
    assert (await state.worker_store.read()).last_fired_date == "2026-10-16"
    assert [t.title for t in await state.worker_store.read_tasks()] == ["Water plants"]


@pytest.mark.asyncio
async def test_headless_state_has_no_window_side(settings) -> None:
    state = create_initial_state(settings=settings, with_window=False, host=FakeNotificationHost())
    assert state.scheduler is None
    assert state.toast is None
    assert state.router.context == ExecutionContext.BACKGROUND

    await start_services(state)
    try:
        assert state.worker.is_active()
    finally:
        await stop_services(state)


def test_state_run_without_loop_raises(settings) -> None:
    state = create_initial_state(settings=settings, host=FakeNotificationHost())

    async def noop() -> None:
        return None

    with pytest.raises(RuntimeError):
        state.run(noop())



class _RecordingWakeRegistry:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def register(self, tag, min_interval_seconds, callback) -> bool:
        self.calls.append(("register", tag))
        return True

    def unregister(self, tag) -> None:
        self.calls.append(("unregister", tag))

    def shutdown(self) -> None:
        self.calls.append(("shutdown", ""))


@pytest.mark.asyncio
async def test_periodic_wake_registered_and_released(settings) -> None:
    wake = _RecordingWakeRegistry()
    state = create_initial_state(
        settings=settings, with_window=False, host=FakeNotificationHost(), wake_registry=wake
    )

    await start_services(state)
    await stop_services(state)

    assert wake.calls == [
        ("register", PERIODIC_SYNC_TAG),
        ("unregister", PERIODIC_SYNC_TAG),
        ("shutdown", ""),
    ]
