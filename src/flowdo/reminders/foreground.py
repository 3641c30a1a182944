# src/flowdo/reminders/foreground.py

from __future__ import annotations

"""
Foreground reminder scheduler.

Runs while the app is open: Idle -> Polling on enable, Polling -> Idle on disable.
Each tick re-reads settings (never cached) and fires at most once per local day.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..core.ports import NotificationHost, Permission, TaskSource, Toaster
from .delivery import DeliveryChannel, DeliveryRouter
from .models import (
    APP_NAME,
    REMINDER_TITLE,
    CheckOutcome,
    ReminderSettings,
    TimeMatch,
    format_time_12h,
    is_due,
    local_today,
)
from .settings_store import SettingsSync
from .summarizer import summarize, toast_message

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class ForegroundScheduler:
    def __init__(
        self,
        sync: SettingsSync,
        tasks: TaskSource,
        router: DeliveryRouter,
        *,
        toaster: Toaster | None = None,
        host: NotificationHost | None = None,
        interval_seconds: float = 30.0,
        match: TimeMatch = TimeMatch.EXACT_MINUTE,
        clock: Clock = _local_now,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.sync = sync
        self.tasks = tasks
        self.router = router
        self.toaster = toaster
        self.host = host
        self.interval_seconds = max(0.01, float(interval_seconds))
        self.match = match
        self._clock = clock
        self._sleep = sleep
        self._poll: asyncio.Task[None] | None = None

    # ---- loop control ----

    @property
    def is_polling(self) -> bool:
        return self._poll is not None and not self._poll.done()

    def start(self) -> None:
        """Start polling (must be called on the event loop); the first check runs immediately."""
        self.stop()
        self._poll = asyncio.get_running_loop().create_task(self._run())
        logger.info("Foreground reminder polling started (every %.0fs)", self.interval_seconds)

    def stop(self) -> None:
        if self._poll is None:
            return
        self._poll.cancel()
        self._poll = None
        logger.info("Foreground reminder polling stopped")

    async def resume(self) -> None:
        """App launch: pick up polling if reminders were left enabled."""
        settings = await self.sync.refresh()
        if settings.enabled:
            self.start()

    async def _run(self) -> None:
        while True:
            try:
                await self.check()
            except Exception:
                logger.exception("Foreground reminder check failed")
            await self._sleep(self.interval_seconds)

    # ---- the check ----

    async def check(self, now: datetime | None = None) -> CheckOutcome:
        now = now or self._clock()
        today = local_today(now)

        settings = await self.sync.refresh()
        outcome = self._gate(settings, today)
        if outcome is not None:
            return outcome
        if not is_due(now, settings.target_time, self.match):
            return CheckOutcome.NOT_YET

        tasks = self.tasks.list_tasks()
        body = summarize(tasks, today)

        # The worker may have fired while we were composing.
        latest = await self.sync.refresh()
        outcome = self._gate(latest, today)
        if outcome is not None:
            return outcome

        key = f"{today} {latest.target_time}"
        result = await self.router.dispatch(REMINDER_TITLE, body, dedupe_key=key)
        if not result.ok:
            logger.warning("Reminder delivery failed for %s; will retry next tick", today)
            return CheckOutcome.FAILED

        if result.channel in (DeliveryChannel.WORKER, DeliveryChannel.PERSISTENT) and self.toaster:
            self.toaster.show("Nightly Reminder", toast_message(tasks))

        self.sync.apply(latest.mark_fired(today))
        logger.info("Nightly reminder fired for %s via %s", today, result.channel.value)
        return CheckOutcome.FIRED

    @staticmethod
    def _gate(settings: ReminderSettings, today: str) -> CheckOutcome | None:
        if not settings.enabled:
            return CheckOutcome.DISABLED
        if settings.fired_on(today):
            return CheckOutcome.ALREADY_FIRED
        return None

    # ---- user-facing settings operations ----

    async def enable(self) -> bool:
        if not await self._ensure_permission():
            return False

        settings = self.sync.update(enabled=True)
        self.start()
        when = format_time_12h(settings.target_time)
        self._toast("Notifications enabled", f"You'll get reminders at {when}")

        worker = self.router.worker
        if worker is not None and worker.is_active():
            worker.post_message(
                {"type": "SHOW_NOTIFICATION", "title": APP_NAME, "body": f"Nightly reminders set for {when}"}
            )
        return True

    def disable(self) -> None:
        self.sync.update(enabled=False)
        self.stop()

    def set_time(self, target_time: str) -> ReminderSettings:
        """Raises InvalidTimeError on a malformed time."""
        settings = self.sync.update(target_time=target_time)
        if settings.enabled:
            self._toast("Reminder updated", f"Notifications set for {format_time_12h(settings.target_time)}")
        return settings

    def status_text(self) -> str:
        settings = self.sync.read()
        if settings.enabled:
            return f"Reminder set for {format_time_12h(settings.target_time)} every night"
        return "Enable notifications to get nightly reminders"

    async def _ensure_permission(self) -> bool:
        perm = Permission.UNSUPPORTED if self.host is None else self.host.permission()
        if perm == Permission.DEFAULT:
            try:
                perm = await self.host.request_permission()  # type: ignore[union-attr]
            except Exception:
                logger.exception("Permission request failed")
                perm = Permission.DENIED

        if perm == Permission.GRANTED:
            return True
        if perm == Permission.UNSUPPORTED:
            self._toast("Notifications not supported", "This system doesn't support notifications.")
        else:
            self._toast("Notifications blocked", "Please allow notifications in your system settings.")
        return False

    def _toast(self, title: str, message: str) -> None:
        if self.toaster is None:
            logger.info("%s: %s", title, message)
            return
        try:
            self.toaster.show(title, message)
        except Exception:
            logger.exception("Toast failed")
