# src/flowdo/reminders/models.py

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from .errors import InvalidTimeError

DEFAULT_TARGET_TIME = "21:00"

# Storage keys (kept identical to the on-disk contract of older installs).
FOREGROUND_SETTINGS_KEY = "flowdo-notif"
SETTINGS_KEY = "notif-settings"
TASKS_KEY = "flowdo-tasks"

APP_NAME = "Flowdo"
REMINDER_TITLE = "Flowdo — Nightly Reminder"
NOTIFICATION_TAG = "flowdo-reminder"
PERIODIC_SYNC_TAG = "flowdo-nightly-check"

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_hhmm(value: str) -> tuple[int, int]:
    """Parse a 24h "HH:MM" string into (hour, minute)."""
    m = _HHMM_RE.match((value or "").strip())
    if not m:
        raise InvalidTimeError(f"invalid time {value!r}, expected HH:MM")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeError(f"invalid time {value!r}, out of range")
    return hour, minute


def normalize_hhmm(value: str) -> str:
    hour, minute = parse_hhmm(value)
    return f"{hour:02d}:{minute:02d}"


def format_time_12h(value: str) -> str:
    """"21:05" -> "9:05 PM"."""
    hour, minute = parse_hhmm(value)
    period = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{minute:02d} {period}"


def local_today(now: datetime | None = None) -> str:
    """Local calendar date as YYYY-MM-DD."""
    if now is None:
        now = datetime.now().astimezone()
    return now.strftime("%Y-%m-%d")


class TimeMatch(StrEnum):
    """
    How "now" is compared against the target time-of-day.

    EXACT_MINUTE fires only during the target minute (foreground poll loop).
    AT_OR_AFTER fires any time later the same day (background, which may wake late).
    """

    EXACT_MINUTE = "exact"
    AT_OR_AFTER = "at_or_after"

    @classmethod
    def from_config(cls, raw: str | None, default: TimeMatch) -> TimeMatch:
        if not raw:
            return default
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return default


def is_due(now: datetime, target_time: str, match: TimeMatch) -> bool:
    target = parse_hhmm(target_time)
    current = (now.hour, now.minute)
    if match == TimeMatch.EXACT_MINUTE:
        return current == target
    return current >= target


@dataclass(slots=True, frozen=True)
class ReminderSettings:
    """
    Singleton reminder record shared by the foreground and background contexts.

    On disk it is a flat object {enabled, time, lastNotifDate}.
    """

    enabled: bool = False
    target_time: str = DEFAULT_TARGET_TIME
    last_fired_date: str = ""

    @classmethod
    def defaults(cls) -> ReminderSettings:
        return cls()

    @classmethod
    def from_dict(cls, raw: Any) -> ReminderSettings:
        if not isinstance(raw, dict):
            return cls()

        enabled = raw.get("enabled", False)
        enabled = enabled if isinstance(enabled, bool) else False

        time_raw = raw.get("time", raw.get("targetTime", DEFAULT_TARGET_TIME))
        try:
            target_time = normalize_hhmm(str(time_raw))
        except InvalidTimeError:
            target_time = DEFAULT_TARGET_TIME

        last_raw = raw.get("lastNotifDate", raw.get("lastFiredDate", ""))
        last = last_raw if isinstance(last_raw, str) and _DATE_RE.match(last_raw) else ""

        return cls(enabled=enabled, target_time=target_time, last_fired_date=last)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "time": self.target_time,
            "lastNotifDate": self.last_fired_date,
        }

    def with_enabled(self, enabled: bool) -> ReminderSettings:
        return replace(self, enabled=bool(enabled))

    def with_target_time(self, target_time: str) -> ReminderSettings:
        """Changing the time clears last_fired_date so the new time can fire today."""
        new_time = normalize_hhmm(target_time)
        if new_time == self.target_time:
            return self
        return replace(self, target_time=new_time, last_fired_date="")

    def mark_fired(self, day: str) -> ReminderSettings:
        return replace(self, last_fired_date=day)

    def fired_on(self, day: str) -> bool:
        return bool(self.last_fired_date) and self.last_fired_date == day


@dataclass(slots=True, frozen=True)
class Task:
    """The subset of a task record the reminder reads."""

    id: str
    title: str
    due_date: str = ""
    important: bool = False
    completed: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        due = raw.get("dueDate") or ""
        return cls(
            id=str(raw.get("id", "")),
            title=str(raw.get("title") or ""),
            due_date=due if isinstance(due, str) else "",
            important=bool(raw.get("important", False)),
            completed=bool(raw.get("completed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "dueDate": self.due_date,
            "important": self.important,
            "completed": self.completed,
        }


class CheckOutcome(StrEnum):
    DISABLED = "disabled"
    ALREADY_FIRED = "already_fired"
    NOT_YET = "not_yet"
    FIRED = "fired"
    FAILED = "failed"
