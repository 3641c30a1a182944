# src/flowdo/reminders/errors.py

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder subsystem errors."""


class StorageError(ReminderError):
    """A settings/task store could not be read or written."""


class InvalidTimeError(ReminderError, ValueError):
    """Target time is not a valid 24h "HH:MM" string."""


class NotificationPermissionError(ReminderError):
    """The host refused to present a persistent notification."""


class NotificationUnsupportedError(ReminderError):
    """The host has no persistent notification capability at all."""
