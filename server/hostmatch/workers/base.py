"""Base class for periodic background workers."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Runs ``process`` every ``interval_seconds`` on the event loop.

    An iteration that raises is logged and retried on the next tick; it
    never stops the loop. The interval is measured start to start, so a
    slow iteration shortens the following sleep rather than delaying it.
    """

    def __init__(self, name: str, interval_seconds: int = 60):
        self.name = name
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    async def process(self) -> Any:
        """Process one iteration of the background task."""

    async def start(self) -> None:
        if self.is_running:
            logger.warning(f"{self.name} worker is already running")
            return

        self._task = asyncio.create_task(self._run(), name=f"worker:{self.name}")
        logger.info(f"{self.name} worker started with {self.interval_seconds}s interval")

    async def stop(self) -> None:
        """Cancel the loop and wait for the current iteration to unwind."""
        if not self.is_running:
            logger.warning(f"{self.name} worker is not running")
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info(f"{self.name} worker stopped")

    async def run_once(self) -> float:
        """Run one iteration, logging any failure; returns its duration in seconds."""
        started = time.perf_counter()
        try:
            await self.process()
        except Exception as e:
            logger.error(
                f"{self.name} worker error: {e!s}",
                exc_info=True,
                extra={"worker": self.name}
            )
        duration = time.perf_counter() - started
        logger.debug(
            f"{self.name} worker iteration completed",
            extra={"duration_seconds": round(duration, 4), "worker": self.name}
        )
        return duration

    async def _run(self) -> None:
        while True:
            duration = await self.run_once()
            await asyncio.sleep(max(0.0, self.interval_seconds - duration))
