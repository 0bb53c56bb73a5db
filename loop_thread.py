"""Background thread hosting the asyncio loop that owns the pipeline."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Coroutine, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventLoopThread:
    def __init__(self, name: str = "pipeline-loop") -> None:
        self.loop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None
        self._name = name

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule a plain callable on the loop thread."""
        self.loop.call_soon_threadsafe(fn, *args)

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self, timeout_s: float = 2.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        thread.join(timeout=timeout_s)
        if thread.is_alive():
            logger.warning("Event loop thread did not stop within %.1fs", timeout_s)
            return
        self._thread = None
        self.loop.close()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        logger.debug("Event loop thread started")
        self.loop.run_forever()
