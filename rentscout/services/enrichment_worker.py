import asyncio
import contextlib
from typing import Any, Optional

from loguru import logger

from rentscout.models import SearchResultSet
from rentscout.services.enrichment_service import EnrichmentService


class EnrichmentWorker:
    """
    Single-consumer queue for background enrichment jobs.

    Request handlers ``submit`` a finished search and return immediately; one
    background task pulls jobs off the queue and runs them one at a time, so
    at most one analytics browser session is open. Job failures are logged
    here and never reach the request that queued them.
    """

    def __init__(self, service: EnrichmentService, max_pending: int = 50):
        self.service = service
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.running = False
        self._worker_task: Optional[asyncio.Task] = None
        self.completed = 0
        self.failed = 0
        self.last_summary: Optional[dict[str, Any]] = None

    async def start(self):
        """Start the background worker."""
        if self.running:
            return
        self.running = True
        self._worker_task = asyncio.create_task(self._worker())
        logger.info("EnrichmentWorker started.")

    async def stop(self, drain: bool = False):
        """Stop the worker. With ``drain`` the queued jobs are finished first."""
        logger.info("Stopping EnrichmentWorker...")
        self.running = False
        if self._worker_task:
            if drain:
                await self.queue.join()
            self._worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker_task
            self._worker_task = None
        dropped = self.queue.qsize()
        if dropped:
            logger.warning(f"EnrichmentWorker stopped with {dropped} jobs still queued")
        logger.info("EnrichmentWorker stopped.")

    def submit(self, key: str, result: SearchResultSet) -> bool:
        """Queue a search for enrichment. Returns False if the job was not accepted."""
        if not self.running:
            logger.warning(f"EnrichmentWorker not running; enrichment for {key} not queued")
            return False
        if not result.listings:
            return False
        try:
            self.queue.put_nowait((key, result))
        except asyncio.QueueFull:
            logger.warning(f"Enrichment queue full ({self.queue.maxsize}); dropping job for {key}")
            return False
        logger.info(f"Queued enrichment for {key} ({result.total_listings} listings, {self.queue.qsize()} pending)")
        return True

    async def join(self):
        """Wait until every queued job has been processed."""
        await self.queue.join()

    async def _worker(self):
        """Background loop to process queued jobs."""
        while self.running or not self.queue.empty():
            try:
                try:
                    # Timeout allows checking self.running periodically
                    key, result = await asyncio.wait_for(self.queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                try:
                    self.last_summary = await self.service.enrich_result(key, result)
                    self.completed += 1
                except Exception as e:
                    self.failed += 1
                    logger.exception(f"Enrichment job for {key} failed: {e}")
                finally:
                    self.queue.task_done()

            except asyncio.CancelledError:
                break
