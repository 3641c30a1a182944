# src/flowdo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the reminder subsystem.

Schedulers and the delivery router depend on Protocols instead of concrete
host implementations. This keeps the notification backend / window layer
swappable and makes testing easier.
"""

from enum import StrEnum
from typing import Any, Awaitable, Protocol

from ..reminders.models import ReminderSettings, Task


class Permission(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"  # not asked yet
    UNSUPPORTED = "unsupported"


class NotificationHost(Protocol):
    """
    Host-side persistent notification API (survives the app window).

    show_notification raises NotificationPermissionError / NotificationUnsupportedError
    when the host refuses; any other exception is a transport failure.
    """

    def permission(self) -> Permission: ...
    def request_permission(self) -> Awaitable[Permission]: ...
    def show_notification(self, notification: Any) -> Awaitable[None]: ...


class Toaster(Protocol):
    """In-app transient message channel."""

    def show(self, title: str, message: str) -> None: ...
    def dismiss(self) -> None: ...


class AppClients(Protocol):
    """Open app windows as seen from the background context."""

    def has_window(self) -> bool: ...
    def focus(self) -> bool: ...
    def open_window(self, url: str) -> Awaitable[bool]: ...


class WorkerPort(Protocol):
    """
    Foreground handle to the background context.

    post_message is fire-and-forget; is_active tells whether a background
    handler is currently registered and able to receive it. A message may carry
    a "reply" future, which the handler resolves with its outcome.
    """

    def is_active(self) -> bool: ...
    def post_message(self, message: dict[str, Any]) -> None: ...


class SettingsRepository(Protocol):
    """Synchronous settings store (foreground, same-context)."""

    def read(self) -> ReminderSettings: ...
    def write(self, settings: ReminderSettings) -> None: ...


class AsyncSettingsRepository(Protocol):
    """Asynchronous transactional settings store (reachable from the background)."""

    def read(self) -> Awaitable[ReminderSettings]: ...
    def write(self, settings: ReminderSettings) -> Awaitable[None]: ...
    def read_tasks(self) -> Awaitable[list[Task]]: ...
    def replace_tasks(self, tasks: list[Task]) -> Awaitable[None]: ...


class TaskSource(Protocol):
    """Read-only view of the task list owned by the task-list collaborator."""

    def list_tasks(self) -> list[Task]: ...
