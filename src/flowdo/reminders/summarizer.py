# src/flowdo/reminders/summarizer.py

from __future__ import annotations

"""
Reminder body composition.

Pure functions: task list + "today" -> human-readable text. No I/O.
"""

from collections.abc import Iterable

from .models import Task

ALL_DONE_MESSAGE = "🎉 All tasks completed! Great job today!"
ALL_DONE_TOAST = "All tasks completed! Enjoy your evening 🌙"
CLAUSE_SEPARATOR = " • "
LIST_LIMIT = 3


def summarize(tasks: Iterable[Task], today: str) -> str:
    """
    Build the nightly reminder body.

    - no pending tasks -> celebratory message only
    - otherwise "📋 <n> due today • <n> important • <n> total pending"
      (zero-count clauses dropped, total always present),
      followed by one "• <title>" line per task when at most LIST_LIMIT are pending.
    """
    pending = [t for t in tasks if not t.completed]
    if not pending:
        return ALL_DONE_MESSAGE

    due_today = [t for t in pending if t.due_date and t.due_date == today]
    important = [t for t in pending if t.important]

    parts: list[str] = []
    if due_today:
        parts.append(f"{len(due_today)} due today")
    if important:
        parts.append(f"{len(important)} important")
    parts.append(f"{len(pending)} total pending")

    body = "📋 " + CLAUSE_SEPARATOR.join(parts)

    if len(pending) <= LIST_LIMIT:
        body += "\n" + "\n".join(f"• {t.title}" for t in pending)

    return body


def toast_message(tasks: Iterable[Task]) -> str:
    """Short one-liner for the in-app toast."""
    n = sum(1 for t in tasks if not t.completed)
    if n == 0:
        return ALL_DONE_TOAST
    return f"You have {n} pending task{'' if n == 1 else 's'}"
