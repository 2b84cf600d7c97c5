"""A pool of event loops, each running on its own thread."""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
import threading

logger = logging.getLogger(__name__)


class IOServicePool:
    """Runs ``size`` asyncio event loops and hands them out round-robin."""

    def __init__(self, size: int | None = None):
        if size is None:
            size = os.cpu_count() or 1
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._loops = [asyncio.new_event_loop() for _ in range(size)]
        self._cycle = itertools.cycle(self._loops)
        self._lock = threading.Lock()
        self._stopped = False
        self._threads = [
            threading.Thread(
                target=self._run, args=(loop,), name=f"io-pool-{index}", daemon=True
            )
            for index, loop in enumerate(self._loops)
        ]
        for thread in self._threads:
            thread.start()

    @staticmethod
    def _run(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    @property
    def loops(self) -> tuple[asyncio.AbstractEventLoop, ...]:
        """Every loop in the pool."""
        return tuple(self._loops)

    def __len__(self) -> int:
        return len(self._loops)

    def get_loop(self) -> asyncio.AbstractEventLoop:
        """Return the next loop in round-robin order."""
        with self._lock:
            if self._stopped:
                raise RuntimeError("pool is stopped")
            return next(self._cycle)

    def stop(self) -> None:
        """Stop every loop, cancel its pending tasks and join its thread."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        for loop in self._loops:
            loop.call_soon_threadsafe(loop.stop)
        for thread in self._threads:
            thread.join()
        logger.debug("io service pool stopped")

    def __enter__(self) -> IOServicePool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()