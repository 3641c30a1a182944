# src/flowdo/cli/runner.py

from __future__ import annotations

"""
Event loop in a background thread.

The console REPL is blocking (input()), while the schedulers are async and want
their own event loop. Commands hand coroutines over with submit().
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Coroutine

logger = logging.getLogger(__name__)

LoopMain = Callable[[asyncio.Event], Awaitable[None]]


@dataclass
class LoopRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    submit_timeout: float = 30.0

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Any:
        fut: Future[Any] = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=self.submit_timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal loop stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_loop_in_background(main: LoopMain) -> LoopRunner | None:
    """Start `main(stop_event)` on a fresh event loop in a daemon thread."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(main(stop_event))
        except Exception:
            logger.exception("Event loop thread crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="flowdo-loop", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Event loop thread did not initialize properly.")
        return None

    logger.debug("Event loop thread started.")
    return LoopRunner(thread=t, loop=loop, stop_event=stop_event)
