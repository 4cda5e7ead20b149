"""Worker manager for the engine's background tasks."""

import asyncio
import logging
from typing import Dict, Optional

from .base import BaseWorker
from .expiry_sweep_worker import ExpirySweepWorker

logger = logging.getLogger(__name__)


def default_workers() -> Dict[str, BaseWorker]:
    """The sweep that expires lapsed claims and invitations between accesses."""
    return {"expiry_sweep": ExpirySweepWorker()}


class WorkerManager:
    """
    Starts, stops and reports on a fixed set of named workers.

    A worker that fails to start is logged and skipped; the API keeps
    serving because every read path already expires records lazily.
    """

    def __init__(self, workers: Optional[Dict[str, BaseWorker]] = None):
        self.workers = workers if workers is not None else default_workers()

    async def start_all(self) -> None:
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error(f"Failed to start worker {name}: {e!s}", exc_info=True)

        running = sum(worker.is_running for worker in self.workers.values())
        logger.info(f"Started {running} of {len(self.workers)} workers")

    async def stop_all(self) -> None:
        """Stop every running worker concurrently."""
        running = {name: worker for name, worker in self.workers.items() if worker.is_running}
        results = await asyncio.gather(
            *(worker.stop() for worker in running.values()),
            return_exceptions=True,
        )
        for name, result in zip(running, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {result!s}")

        logger.info(f"Stopped {len(running)} workers")

    def get_worker_status(self) -> Dict[str, bool]:
        """Map worker names to their running status."""
        return {name: worker.is_running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
