# src/flowdo/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
import webbrowser
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.ports import AppClients
from ..core.state import AppState
from ..reminders.delivery import Toast

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def render_toast(toast: Toast) -> None:
    """Draw a toast above the prompt (best-effort on non-TTY output)."""
    lines = toast.message.splitlines() or [""]
    body = "\n".join(f"    {line}" for line in lines)
    prefix = "\n" if sys.stdout.isatty() else ""
    print(f"{prefix}[{_ts_local()}] 🔔 {toast.title}\n{body}", flush=True)


class ConsoleClients(AppClients):
    """The console REPL is the app's only window."""

    def __init__(self) -> None:
        self.attached = False

    def has_window(self) -> bool:
        return self.attached

    def focus(self) -> bool:
        if not self.attached:
            return False
        _print_ts("[CONSOLE] Opened from notification. Use /tasks to review.")
        return True

    async def open_window(self, url: str) -> bool:
        return bool(await asyncio.to_thread(webbrowser.open, url))


def run_console_loop(state: AppState, clients: ConsoleClients | None = None) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    if clients is not None:
        clients.attached = True

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                with state.lock:
                    response = command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                response = "Commands start with '/'. Use /help to list them."
            _print_ts(response)
    finally:
        if clients is not None:
            clients.attached = False

    logger.info("Console connector finished.")
