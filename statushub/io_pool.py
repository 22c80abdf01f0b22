"""A fixed set of event loops, each running in its own thread."""

from __future__ import annotations

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
    asyncio.set_event_loop(loop)
    loop.run_forever()


async def _drain_and_stop() -> None:
    current = asyncio.current_task()
    pending = [task for task in asyncio.all_tasks() if task is not current]
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    asyncio.get_running_loop().stop()


class IOServicePool:
    """Hands out event loops round-robin; stopping lets queued work finish."""

    def __init__(self, size: int = 2) -> None:
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._loops = [asyncio.new_event_loop() for _ in range(size)]
        self._next = 0
        self._lock = threading.Lock()
        self._stopped = False
        self._threads = [
            threading.Thread(target=_run_loop, args=(loop,), daemon=True)
            for loop in self._loops
        ]
        for thread in self._threads:
            thread.start()

    def get_io_service(self) -> asyncio.AbstractEventLoop:
        """Return the next event loop in round-robin order."""
        with self._lock:
            loop = self._loops[self._next]
            self._next = (self._next + 1) % len(self._loops)
            return loop

    def stop(self) -> None:
        """Wait for outstanding tasks, stop every loop and join the threads."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        for loop in self._loops:
            asyncio.run_coroutine_threadsafe(_drain_and_stop(), loop)
        for thread in self._threads:
            thread.join()
        for loop in self._loops:
            loop.close()
        logger.debug("io service pool stopped")

    def __enter__(self) -> IOServicePool:
        return self

    def __exit__(self, *args) -> None:
        self.stop()