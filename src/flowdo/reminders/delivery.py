# src/flowdo/reminders/delivery.py

from __future__ import annotations

"""
Reminder delivery.

DeliveryRouter picks exactly one channel per call:
- background context          -> host persistent notification
- foreground + active worker  -> SHOW_NOTIFICATION message to the worker, which
                                answers whether the host showed it
- foreground, host permitted  -> host persistent notification directly
- otherwise                   -> in-app toast

dispatch() never raises. Persistent-channel refusals degrade to the toast and
the user is told about it once per router.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.ports import NotificationHost, Permission, Toaster, WorkerPort
from .errors import NotificationPermissionError, NotificationUnsupportedError
from .models import APP_NAME, NOTIFICATION_TAG

logger = logging.getLogger(__name__)

DEFAULT_ICON = "./icon-192.png"
TOAST_SECONDS = 8.0
WORKER_REPLY_SECONDS = 5.0
BLOCKED_TITLE = "Notifications blocked"
BLOCKED_NOTICE = "System notifications are blocked; reminders will only show inside the app."


class ExecutionContext(StrEnum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"


class DeliveryChannel(StrEnum):
    PERSISTENT = "persistent"
    WORKER = "worker"
    TOAST = "toast"
    SKIPPED = "skipped"
    NONE = "none"


@dataclass(slots=True, frozen=True)
class NotificationAction:
    action: str
    title: str


DEFAULT_ACTIONS = (
    NotificationAction(action="open", title=f"📋 Open {APP_NAME}"),
    NotificationAction(action="dismiss", title="Dismiss"),
)


@dataclass(slots=True, frozen=True)
class Notification:
    title: str
    body: str
    icon: str = DEFAULT_ICON
    badge: str = DEFAULT_ICON
    tag: str = NOTIFICATION_TAG
    renotify: bool = True
    vibrate: tuple[int, ...] = (200, 100, 200)
    url: str = "./"
    actions: tuple[NotificationAction, ...] = DEFAULT_ACTIONS


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    channel: DeliveryChannel
    ok: bool
    reported_denial: bool = False


@dataclass(slots=True)
class Toast:
    title: str
    message: str


@dataclass
class ToastPresenter(Toaster):
    """
    One in-app toast at a time.

    show() replaces the current toast and arms an auto-dismiss timer on the
    running event loop; dismiss() closes it early.
    """

    render: Callable[[Toast], None] | None = None
    on_dismiss: Callable[[Toast], None] | None = None
    duration_seconds: float = TOAST_SECONDS
    current: Toast | None = None
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def show(self, title: str, message: str) -> None:
        self.dismiss()
        toast = Toast(title=title, message=message)
        self.current = toast
        if self.render is not None:
            try:
                self.render(toast)
            except Exception:
                logger.exception("Toast render failed")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; toast will not auto-dismiss.")
            return
        self._timer = loop.call_later(self.duration_seconds, self._expire, toast)

    def dismiss(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        toast, self.current = self.current, None
        if toast is not None and self.on_dismiss is not None:
            try:
                self.on_dismiss(toast)
            except Exception:
                logger.debug("Toast dismiss hook failed.", exc_info=True)

    def _expire(self, toast: Toast) -> None:
        if self.current is toast:
            self._timer = None
            self.dismiss()


class DeliveryRouter:
    def __init__(
        self,
        context: ExecutionContext,
        *,
        host: NotificationHost | None = None,
        toaster: Toaster | None = None,
        worker: WorkerPort | None = None,
        app_url: str = "./",
        worker_reply_seconds: float = WORKER_REPLY_SECONDS,
    ) -> None:
        self.context = context
        self.host = host
        self.toaster = toaster
        self.worker = worker
        self.app_url = app_url
        self.worker_reply_seconds = worker_reply_seconds
        self._denial_reported = False
        self._last_delivered_key: str | None = None

    def build_notification(self, title: str, body: str, **overrides: Any) -> Notification:
        return Notification(title=title, body=body, url=self.app_url, **overrides)

    async def dispatch(self, title: str, body: str, *, dedupe_key: str | None = None) -> DeliveryResult:
        """
        Present one reminder. dedupe_key (e.g. "<day> <target time>") suppresses
        a repeat delivery of the same reminder by this router.
        """
        if dedupe_key is not None and dedupe_key == self._last_delivered_key:
            logger.info("Reminder %s already delivered; skipping", dedupe_key)
            return DeliveryResult(channel=DeliveryChannel.SKIPPED, ok=True)

        try:
            result = await self._route(title, body)
        except Exception:
            # _route handles expected failures; this is the last line of defence.
            logger.exception("Delivery routing crashed")
            result = self._toast(title, body, denied=False)

        if result.ok and dedupe_key is not None:
            self._last_delivered_key = dedupe_key
        return result

    async def show_persistent(self, notification: Notification) -> bool:
        """Present through the host; False on any refusal or failure."""
        if self.host is None:
            return False
        try:
            await self.host.show_notification(notification)
            return True
        except (NotificationPermissionError, NotificationUnsupportedError) as e:
            logger.warning("Persistent notification refused: %s", e)
        except Exception:
            logger.exception("Persistent notification failed")
        return False

    # ---- routing ----

    async def _route(self, title: str, body: str) -> DeliveryResult:
        if self.context == ExecutionContext.BACKGROUND:
            if await self.show_persistent(self.build_notification(title, body)):
                return DeliveryResult(channel=DeliveryChannel.PERSISTENT, ok=True)
            logger.error("Background reminder could not be presented (no window to fall back to)")
            return DeliveryResult(channel=DeliveryChannel.NONE, ok=False)

        if not self._host_permitted():
            return self._toast(title, body, denied=self.host is not None)

        if self.worker is not None and self.worker.is_active():
            shown = await self._show_via_worker(self.worker, title, body)
            if shown:
                return DeliveryResult(channel=DeliveryChannel.WORKER, ok=True)
            if shown is False:
                return self._toast(title, body, denied=True)

        if await self.show_persistent(self.build_notification(title, body)):
            return DeliveryResult(channel=DeliveryChannel.PERSISTENT, ok=True)
        return self._toast(title, body, denied=True)

    async def _show_via_worker(self, worker: WorkerPort, title: str, body: str) -> bool | None:
        """
        Ask the worker to present and wait for its answer.

        True: shown. False: the host refused it. None: no answer (post failed or
        the worker went away), so the caller presents directly.
        """
        reply: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        try:
            worker.post_message({"type": "SHOW_NOTIFICATION", "title": title, "body": body, "reply": reply})
            return await asyncio.wait_for(reply, timeout=self.worker_reply_seconds)
        except asyncio.TimeoutError:
            logger.warning("Worker did not answer SHOW_NOTIFICATION within %.1fs", self.worker_reply_seconds)
        except Exception:
            logger.exception("Posting SHOW_NOTIFICATION failed; presenting directly")
        return None

    def _host_permitted(self) -> bool:
        if self.host is None:
            return False
        try:
            return self.host.permission() == Permission.GRANTED
        except Exception:
            logger.exception("Permission query failed")
            return False

    def _toast(self, title: str, body: str, *, denied: bool) -> DeliveryResult:
        if self.toaster is None:
            logger.error("No delivery channel available for %r", title)
            return DeliveryResult(channel=DeliveryChannel.NONE, ok=False)

        report = denied and not self._denial_reported
        message = f"{body}\n{BLOCKED_NOTICE}" if report else body
        try:
            self.toaster.show(title, message)
        except Exception:
            logger.exception("Toast presentation failed")
            return DeliveryResult(channel=DeliveryChannel.NONE, ok=False)

        if report:
            self._denial_reported = True
        return DeliveryResult(channel=DeliveryChannel.TOAST, ok=True, reported_denial=report)
