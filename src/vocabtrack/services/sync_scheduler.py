"""Service that decides when the sync queue is flushed."""
import asyncio
import logging
from typing import Dict, Optional

from vocabtrack.config import settings
from vocabtrack.services.sync_queue import FlushResult, FlushStatus, SyncQueue

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Flushes the sync queue on an interval and on app/network events."""

    def __init__(
        self,
        queue: SyncQueue,
        interval_seconds: Optional[float] = None,
        teardown_timeout: Optional[float] = None,
    ):
        """Initialize the scheduler for a sync queue."""
        self.queue = queue
        self.interval_seconds = interval_seconds or settings.sync.interval_seconds
        self.teardown_timeout = teardown_timeout or settings.sync.teardown_timeout
        self.tasks: Dict[str, asyncio.Task] = {}
        self.running = False
        self.online = True
        self.visible = True
        self.last_result: Optional[FlushResult] = None

    async def start(self) -> None:
        """Start the periodic flush task."""
        if self.running:
            return

        self.running = True
        logger.info("Starting sync scheduler (interval %.0fs)...", self.interval_seconds)
        self.tasks["periodic_flush"] = asyncio.create_task(self._run_periodic_flush())

    async def stop(self) -> None:
        """Stop the periodic task and make a last best-effort flush."""
        if not self.running:
            return

        self.running = False
        logger.info("Stopping sync scheduler...")

        for task in self.tasks.values():
            task.cancel()
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()

        await self.on_teardown()

    async def _run_periodic_flush(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(self.interval_seconds)
                if self.online:
                    await self.flush_now()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in periodic flush task: %s", str(e))

    async def flush_now(self) -> FlushResult:
        """Flush immediately; errors are reported in the result, never raised."""
        try:
            result = await self.queue.flush()
        except Exception as e:
            logger.error("Sync flush raised: %s", str(e))
            result = FlushResult(FlushStatus.FAILED, error=str(e))
        self.last_result = result
        if result.status is FlushStatus.FAILED:
            logger.warning("Sync flush failed, %d items left to retry", result.retried)
        return result

    async def on_visibility_change(self, visible: bool) -> Optional[FlushResult]:
        """Flush when the app comes back to the foreground."""
        regained = visible and not self.visible
        self.visible = visible
        if regained and self.online:
            logger.debug("App visible again, flushing")
            return await self.flush_now()
        return None

    async def on_connectivity_change(self, online: bool) -> Optional[FlushResult]:
        """Flush when connectivity comes back."""
        regained = online and not self.online
        self.online = online
        if regained:
            logger.info("Back online, flushing pending updates")
            return await self.flush_now()
        return None

    async def on_teardown(self) -> Optional[FlushResult]:
        """Best-effort flush before exit, bounded by the teardown timeout."""
        if not self.online or self.queue.pending_count() == 0:
            return None
        try:
            return await asyncio.wait_for(self.flush_now(), timeout=self.teardown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Teardown flush timed out; pending updates stay queued")
            return None

    def status(self) -> Dict[str, object]:
        """Derived sync indicators for the UI."""
        return {
            "pending": self.queue.pending_count(),
            "unique_words": self.queue.unique_word_count(),
            "syncing": self.queue.is_flushing,
            "online": self.online,
            "last_status": self.last_result.status.value if self.last_result else None,
        }
