# src/flowdo/cli/main.py

"""
CLI entrypoints.

- main(): the app. Console REPL in the main thread, foreground scheduler and the
  embedded background worker on an event loop thread.
- worker_main(): the background worker alone (no window), e.g. as a login service.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from ..cli.bootstrap import create_initial_state, run_services
from ..cli.runner import start_loop_in_background
from ..config import get_settings
from ..connectors.console_connector import ConsoleClients, render_toast, run_console_loop
from ..connectors.desktop_host import PeriodicWakeRegistry
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _configure_logging(settings, log_name: str) -> None:
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level, log_name=log_name)


def main() -> None:
    settings = get_settings()
    _configure_logging(settings, "flowdo.log")
    logger.info("Starting %s...", settings.app_name)

    clients = ConsoleClients()
    state = create_initial_state(
        settings=settings,
        clients=clients,
        render_toast=render_toast,
        wake_registry=PeriodicWakeRegistry(),
    )

    runner = start_loop_in_background(lambda stop_event: run_services(state, stop_event))
    if runner is None:
        logger.error("Could not start the event loop; exiting.")
        return
    state.run_coro = runner.submit

    try:
        run_console_loop(state, clients)
    finally:
        runner.stop()
        runner.join(timeout=10.0)
        logger.info("Bye.")


def worker_main() -> None:
    settings = get_settings()
    _configure_logging(settings, "flowdo-worker.log")
    logger.info("Starting %s background worker...", settings.app_name)

    state = create_initial_state(settings=settings, with_window=False, wake_registry=PeriodicWakeRegistry())

    async def _run() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _handle_signal(signum: int) -> None:
            logger.info("Signal %s received, shutting down...", signum)
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _handle_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Some platforms may not support signal handlers on the loop.
                pass

        await run_services(state, stop_event)

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass
    logger.info("Bye.")


if __name__ == "__main__":
    main()
