"""
Periodic removal of expired cache entries.
Uses APScheduler so memory stays bounded even when nobody reads the cache.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from storefront.services.cache import CacheStore

SWEEP_JOB_ID = "cache_sweep_job"


class CacheSweeper:
    """Runs CacheStore.clear_expired on an interval."""

    def __init__(self, store: CacheStore, interval_minutes: float = 5):
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be > 0, got {interval_minutes}")
        self.store = store
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()
        self._is_running = False

    async def sweep_job(self) -> int:
        """Scheduled sweep. Errors are logged so the schedule keeps going."""
        try:
            removed = await self.store.clear_expired()
        except Exception as e:
            logger.error(f"Error in scheduled cache sweep: {e}")
            return 0

        if removed:
            logger.info(f"Cache sweep removed {removed} expired entries")
        return removed

    async def sweep_now(self) -> int:
        """Run a sweep immediately."""
        return await self.store.clear_expired()

    def start(self) -> None:
        """Start the scheduler. Needs a running event loop."""
        if self._is_running:
            logger.warning("Cache sweeper is already running")
            return

        self.scheduler.add_job(
            self.sweep_job,
            trigger="interval",
            minutes=self.interval_minutes,
            id=SWEEP_JOB_ID,
            name="Cache Sweeper",
            replace_existing=True,
        )
        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Cache sweeper started: sweeping every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        if not self._is_running:
            logger.warning("Cache sweeper is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache sweeper stopped")

    def is_running(self) -> bool:
        return self._is_running
