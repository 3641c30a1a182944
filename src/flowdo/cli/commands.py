# src/flowdo/cli/commands.py

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..reminders.errors import InvalidTimeError
from ..reminders.models import APP_NAME, local_today
from ..reminders.summarizer import summarize

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_DATE_ARG = re.compile(r"^@(\d{4}-\d{2}-\d{2})$")


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /remind, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    async def _collect():
        local = await state.sync.refresh()
        remote = await state.worker_store.read()
        return local, remote

    local, remote = state.run(_collect())
    scheduler = state.scheduler
    polling = "ON" if scheduler is not None and scheduler.is_polling else "OFF"
    worker = "active" if state.worker.is_active() else "inactive"
    armed = " (armed)" if state.worker.is_armed else ""
    perm = state.host.permission().value if state.host is not None else "unsupported"
    pending = sum(1 for t in state.task_list.list_tasks() if not t.completed)
    status_line = scheduler.status_text() if scheduler is not None else "Headless worker"
    return (
        "Status:\n"
        f"  {status_line}\n"
        f"  Foreground polling: {polling}\n"
        f"  Background worker: {worker}{armed}\n"
        f"  Last fired: {local.last_fired_date or 'never'} (worker store: {remote.last_fired_date or 'never'})\n"
        f"  Notification permission: {perm}\n"
        f"  Pending tasks: {pending}"
    )


def cmd_remind(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /remind             -> show status line
    /remind on | off    -> enable / disable nightly reminders
    /remind time HH:MM  -> change the reminder time
    /remind check       -> run one foreground check now
    /remind test        -> show a reminder right away (bypasses the schedule)
    """
    scheduler = state.scheduler
    if scheduler is None:
        return "Reminder settings are only available in the app."

    if not args:
        return scheduler.status_text()

    sub = args[0].lower()

    if sub in ("on", "1", "true", "yes"):
        ok = state.run(scheduler.enable())
        return scheduler.status_text() if ok else "Reminders stay off: notifications are unavailable."

    if sub in ("off", "0", "false", "no"):

        async def _off() -> None:
            scheduler.disable()

        state.run(_off())
        return "Reminders disabled."

    if sub == "time":
        if len(args) < 2:
            return "Usage: /remind time HH:MM"

        async def _set_time():
            return scheduler.set_time(args[1])

        try:
            state.run(_set_time())
        except InvalidTimeError as e:
            return f"Invalid time: {e}"
        return scheduler.status_text()

    if sub == "check":
        outcome = state.run(scheduler.check())
        return f"Check result: {outcome.value}"

    if sub == "test":
        body = summarize(state.task_list.list_tasks(), local_today())
        result = state.run(state.router.dispatch(APP_NAME, body))
        return f"Test reminder delivered via {result.channel.value}."

    return "Usage: /remind on | off | time HH:MM | check | test"


def cmd_task(state: AppState, args: list[str]) -> str:
    """
    /task add <title> [!] [@YYYY-MM-DD]
    /task done <id>
    """
    if not args:
        return "Usage: /task add <title> [!] [@YYYY-MM-DD] | /task done <id>"

    sub = args[0].lower()

    if sub == "add":
        words: list[str] = []
        due = ""
        important = False
        for word in args[1:]:
            m = _DATE_ARG.match(word)
            if m:
                due = m.group(1)
            elif word == "!":
                important = True
            else:
                words.append(word)
        try:
            task = state.task_list.add_task(" ".join(words), due_date=due, important=important)
        except ValueError as e:
            return f"Cannot add task: {e}"
        _mirror_tasks(state)
        return f"Added task {task.id}: {task.title}"

    if sub == "done":
        if len(args) < 2:
            return "Usage: /task done <id>"
        if not state.task_list.complete_task(args[1]):
            return f"No open task with id {args[1]}."
        _mirror_tasks(state)
        return f"Completed task {args[1]}."

    return "Usage: /task add <title> [!] [@YYYY-MM-DD] | /task done <id>"


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = state.task_list.list_tasks()
    if not tasks:
        return "No tasks."
    lines = ["Tasks:"]
    for t in tasks:
        mark = "x" if t.completed else " "
        flags = (" !" if t.important else "") + (f" @{t.due_date}" if t.due_date else "")
        lines.append(f"  [{mark}] {t.id} {t.title}{flags}")
    return "\n".join(lines)


def cmd_push(state: AppState, args: list[str]) -> str:
    payload = " ".join(args) if args else None
    shown = state.run(state.worker.on_push(payload))
    return "Push notification shown." if shown else "Push notification could not be shown."


def cmd_toast(state: AppState, args: list[str]) -> str:
    toast = state.toast
    if toast is None or toast.current is None:
        return "No toast is showing."

    async def _close() -> None:
        toast.dismiss()

    state.run(_close())
    return "Toast dismissed."


def _mirror_tasks(state: AppState) -> None:
    async def _mirror() -> None:
        state.sync.mirror_tasks(state.task_list.list_tasks())

    try:
        state.run(_mirror())
    except Exception:
        logger.exception("Task mirror failed")


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show reminder, worker and permission status.")
registry.register(
    "remind", cmd_remind, help_text="Nightly reminder: /remind on | off | time HH:MM | check | test."
)
registry.register("task", cmd_task, help_text="Tasks: /task add <title> [!] [@YYYY-MM-DD] | /task done <id>.")
registry.register("tasks", cmd_tasks, help_text="List tasks.")
registry.register("push", cmd_push, help_text="Simulate a push message: /push <json or text>.")
registry.register("toast", cmd_toast, help_text="Close the current toast: /toast close.")
