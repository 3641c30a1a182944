# src/flowdo/connectors/desktop_host.py

from __future__ import annotations

"""
Desktop host services for the reminder worker.

- PlyerNotificationHost: persistent (system) notifications via plyer.
- PeriodicWakeRegistry: best-effort periodic wake signal via APScheduler.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from plyer import notification as plyer_notification

from ..core.ports import NotificationHost, Permission
from ..reminders.delivery import Notification
from ..reminders.errors import NotificationPermissionError, NotificationUnsupportedError

logger = logging.getLogger(__name__)

WakeCallback = Callable[[str], Awaitable[Any]]


class PlyerNotificationHost(NotificationHost):
    """
    System notifications through plyer's platform backends.

    "Permission" maps onto configuration (allowed=False behaves like a user who
    blocked notifications). A platform without a plyer backend is reported as
    UNSUPPORTED after the first failed attempt.
    """

    def __init__(
        self,
        *,
        app_name: str = "Flowdo",
        allowed: bool = True,
        icon_path: str | Path | None = None,
        timeout_seconds: int = 10,
    ) -> None:
        self.app_name = app_name
        self.allowed = allowed
        self.icon_path = Path(icon_path) if icon_path else None
        self.timeout_seconds = int(timeout_seconds)
        self._supported = True

    def permission(self) -> Permission:
        if not self._supported:
            return Permission.UNSUPPORTED
        return Permission.GRANTED if self.allowed else Permission.DENIED

    async def request_permission(self) -> Permission:
        return self.permission()

    async def show_notification(self, notification: Notification) -> None:
        perm = self.permission()
        if perm == Permission.UNSUPPORTED:
            raise NotificationUnsupportedError("no desktop notification backend")
        if perm != Permission.GRANTED:
            raise NotificationPermissionError("desktop notifications are not allowed")

        kwargs: dict[str, Any] = {
            "title": notification.title,
            "message": notification.body,
            "app_name": self.app_name,
            "timeout": self.timeout_seconds,
        }
        if self.icon_path is not None and self.icon_path.exists():
            kwargs["app_icon"] = str(self.icon_path)

        try:
            await asyncio.to_thread(plyer_notification.notify, **kwargs)
        except NotImplementedError as e:
            self._supported = False
            raise NotificationUnsupportedError("no desktop notification backend") from e
        logger.debug("Desktop notification shown tag=%s", notification.tag)


class PeriodicWakeRegistry:
    """
    Host-controlled recurring wake-ups, keyed by tag.

    Best-effort: register() returns False (and logs) instead of raising when the
    scheduler can't take the job; the worker's own re-arming loop keeps working.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler

    @property
    def scheduler(self) -> AsyncIOScheduler | None:
        return self._scheduler

    def register(self, tag: str, min_interval_seconds: float, callback: WakeCallback) -> bool:
        """Must be called on the event loop that should receive the wake-ups."""
        try:
            if self._scheduler is None:
                self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
            if not self._scheduler.running:
                self._scheduler.start()
            self._scheduler.add_job(
                callback,
                IntervalTrigger(seconds=max(1, int(min_interval_seconds))),
                args=[tag],
                id=tag,
                name=f"periodic-wake:{tag}",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        except Exception:
            logger.warning("Periodic wake registration unavailable tag=%s", tag, exc_info=True)
            return False
        logger.info("Periodic wake registered tag=%s every %ss", tag, int(min_interval_seconds))
        return True

    def unregister(self, tag: str) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(tag)
        except Exception:
            logger.debug("Periodic wake tag=%s was not registered", tag)

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
