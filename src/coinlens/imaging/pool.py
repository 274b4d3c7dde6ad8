"""Bounded worker pool for coin photo scans.

Decoding, resampling, the JPEG round trip and the gradient scan all run in
Pillow and numpy and hold the CPU for the whole request. ``AnalysisPool``
moves them onto a fixed set of ``coin-analysis`` threads and admits at most
``max_concurrent`` uploads at once; an upload that finds no free slot within
the acquire timeout is turned away (the API maps this to 503) instead of
piling up behind full-resolution photos. Once a scan starts it always runs to
completion, since the pixel work cannot be interrupted from the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from coinlens.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCAN_SLOT_TIMEOUT_SECONDS: float = 5.0


class AnalysisPool:
    """Admission control and worker threads for coin photo scans.

    ``active_count`` and ``queue_depth`` feed the health endpoint.
    """

    def __init__(self, settings: Settings, acquire_timeout: float = SCAN_SLOT_TIMEOUT_SECONDS) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="coin-analysis",
        )
        self._acquire_timeout = acquire_timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    @asynccontextmanager
    async def _analysis_slot(self) -> AsyncIterator[None]:
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._acquire_timeout)
        except TimeoutError:
            logger.warning(
                "Rejecting scan: %d uploads still being analyzed after %.1fs",
                self.active_count,
                self._acquire_timeout,
            )
            raise
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            yield
        finally:
            self._slots.release()
            with self._counter_lock:
                self._active_count -= 1

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a blocking scan such as ``analyze_image`` on a worker thread.

        Raises:
            TimeoutError: If no scan slot frees up within the acquire timeout.
        """
        async with self._analysis_slot():
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)

    @property
    def active_count(self) -> int:
        """Scans currently running on worker threads."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Uploads waiting for a scan slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Wait for running scans, then stop the worker threads."""
        self._executor.shutdown(wait=True)
