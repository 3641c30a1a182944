# src/flowdo/reminders/background.py

from __future__ import annotations

"""
Background reminder worker.

Runs independently of any app window. The host may terminate and relaunch it at
any time, so there is no long-lived interval: every wake-up arms exactly one
future wake-up (arm-on-completion) and then runs the check. A check that finds
reminders disabled cancels that pending wake-up, so disabling converges within
one interval.

A second trigger path is the host's periodic wake signal (on_periodic_sync).
Both paths call the same idempotent check().
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from ..core.ports import AppClients, AsyncSettingsRepository, WorkerPort
from .delivery import DEFAULT_ICON, DeliveryRouter, Notification
from .models import (
    APP_NAME,
    PERIODIC_SYNC_TAG,
    REMINDER_TITLE,
    CheckOutcome,
    TimeMatch,
    is_due,
    local_today,
)
from .summarizer import summarize

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]

PUSH_DEFAULT_BODY = "Check your pending tasks!"
MESSAGE_DEFAULT_BODY = "Check your tasks!"


def _local_now() -> datetime:
    return datetime.now().astimezone()


def parse_push_payload(payload: bytes | str | None) -> dict[str, str]:
    """
    Merge a push payload over the defaults.

    JSON objects override title/body/icon/badge; anything else (invalid JSON,
    JSON that isn't an object) becomes the body text verbatim.
    """
    data = {
        "title": REMINDER_TITLE,
        "body": PUSH_DEFAULT_BODY,
        "icon": DEFAULT_ICON,
        "badge": DEFAULT_ICON,
    }
    if payload is None:
        return data

    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else str(payload)
    try:
        parsed: Any = json.loads(text)
    except ValueError:
        parsed = None

    if not isinstance(parsed, dict):
        data["body"] = text
        return data

    for key in data:
        val = parsed.get(key)
        if isinstance(val, str) and val:
            data[key] = val
    return data


def _reject_reply(message: dict[str, Any]) -> None:
    """Unblock a sender waiting on a message that will never be handled."""
    reply = message.get("reply")
    if isinstance(reply, asyncio.Future) and not reply.done():
        reply.set_exception(RuntimeError("background worker is not running"))


class BackgroundWorker(WorkerPort):
    def __init__(
        self,
        store: AsyncSettingsRepository,
        router: DeliveryRouter,
        *,
        clients: AppClients | None = None,
        interval_seconds: float = 60.0,
        clock: Clock = _local_now,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.store = store
        self.router = router
        self.clients = clients
        self.interval_seconds = max(0.01, float(interval_seconds))
        self._clock = clock
        self._sleep = sleep

        self._active = False
        self._inbox: asyncio.Queue[dict[str, Any]] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._timer: asyncio.Task[None] | None = None
        self._check_lock = asyncio.Lock()

    # ---- lifecycle (driven by the host) ----

    def is_active(self) -> bool:
        return self._active

    @property
    def is_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def activate(self) -> None:
        """Host (re)launched the context: start the inbox and arm one check."""
        if self._active:
            return
        loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._consumer = loop.create_task(self._consume())
        self._active = True
        self.schedule_next_check()
        logger.info("Background worker activated")

    def terminate(self) -> None:
        """Host killed the context: drop timers and pending messages, nothing persisted."""
        self.cancel_next_check()
        if self._consumer is not None:
            self._consumer.cancel()
            self._consumer = None
        if self._inbox is not None:
            while not self._inbox.empty():
                _reject_reply(self._inbox.get_nowait())
        self._inbox = None
        self._active = False
        logger.info("Background worker terminated")

    # ---- self-re-arming timer ----

    def schedule_next_check(self) -> None:
        self.cancel_next_check()
        self._timer = asyncio.get_running_loop().create_task(self._wake_after_interval())

    def cancel_next_check(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _wake_after_interval(self) -> None:
        await self._sleep(self.interval_seconds)
        # Arm the next wake-up before doing any work so a fault here can't strand us.
        self._timer = None
        self.schedule_next_check()
        armed = self._timer

        outcome = await self.check()
        # A SYNC_SETTINGS that arrived during the check has armed a newer timer; keep it.
        if outcome == CheckOutcome.DISABLED and self._timer is armed:
            self.cancel_next_check()
            logger.info("Reminders disabled; background loop stops re-arming")

    # ---- the check ----

    async def check(self, now: datetime | None = None) -> CheckOutcome:
        async with self._check_lock:
            try:
                return await self._check(now or self._clock())
            except Exception:
                logger.exception("Background reminder check failed")
                return CheckOutcome.FAILED

    async def _check(self, now: datetime) -> CheckOutcome:
        today = local_today(now)

        settings = await self.store.read()
        if not settings.enabled:
            return CheckOutcome.DISABLED
        if settings.fired_on(today):
            return CheckOutcome.ALREADY_FIRED
        # The worker may wake late; anything at or after the target minute counts.
        if not is_due(now, settings.target_time, TimeMatch.AT_OR_AFTER):
            return CheckOutcome.NOT_YET

        body = summarize(await self.store.read_tasks(), today)

        latest = await self.store.read()
        if not latest.enabled:
            return CheckOutcome.DISABLED
        if latest.fired_on(today):
            return CheckOutcome.ALREADY_FIRED

        key = f"{today} {latest.target_time}"
        result = await self.router.dispatch(REMINDER_TITLE, body, dedupe_key=key)
        if not result.ok:
            return CheckOutcome.FAILED

        await self.store.write(latest.mark_fired(today))
        logger.info("Background reminder fired for %s", today)
        return CheckOutcome.FIRED

    # ---- host events ----

    def post_message(self, message: dict[str, Any]) -> None:
        if self._inbox is None:
            logger.debug("Worker inactive; dropping message %s", message.get("type"))
            _reject_reply(message)
            return
        self._inbox.put_nowait(dict(message))

    async def _consume(self) -> None:
        inbox = self._inbox
        if inbox is None:
            return
        while True:
            message = await inbox.get()
            try:
                await self.handle_message(message)
            except Exception:
                logger.exception("Worker message handler failed type=%s", message.get("type"))
                _reject_reply(message)

    async def handle_message(self, message: dict[str, Any]) -> None:
        kind = message.get("type")

        if kind == "SHOW_NOTIFICATION":
            title = message.get("title") or APP_NAME
            body = message.get("body") or MESSAGE_DEFAULT_BODY
            shown = await self.router.show_persistent(self.router.build_notification(str(title), str(body)))
            reply = message.get("reply")
            if isinstance(reply, asyncio.Future) and not reply.done():
                reply.set_result(shown)
            return

        if kind == "SYNC_SETTINGS":
            self.schedule_next_check()
            logger.debug("Settings synced; background check re-armed")
            return

        logger.warning("Unknown worker message type=%r", kind)

    async def on_periodic_sync(self, tag: str) -> CheckOutcome | None:
        if tag != PERIODIC_SYNC_TAG:
            logger.debug("Ignoring periodic sync tag=%s", tag)
            return None
        return await self.check()

    async def on_push(self, payload: bytes | str | None) -> bool:
        data = parse_push_payload(payload)
        notification = self.router.build_notification(
            data["title"], data["body"], icon=data["icon"], badge=data["badge"]
        )
        return await self.router.show_persistent(notification)

    async def on_notification_click(self, action: str, notification: Notification) -> None:
        if action == "dismiss":
            return
        if self.clients is None:
            logger.info("No window layer; ignoring notification action=%s", action)
            return
        try:
            if self.clients.has_window() and self.clients.focus():
                return
            await self.clients.open_window(notification.url or "./")
        except Exception:
            logger.exception("Handling notification click failed")
