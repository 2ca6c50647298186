import logging
from datetime import datetime
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from iptv_catalog.config import settings
from iptv_catalog.services.catalog_types import ScanResult


logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "catalog_cleanup"


class CleanupScheduler:
    """Scheduler for periodic liveness cleanups"""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None
        self._cleanup: Callable[[], Awaitable[ScanResult]] | None = None

    async def _cleanup_job(self) -> None:
        """Background job that runs the liveness scan"""
        logger.info("Scheduled catalog cleanup triggered")
        if self._cleanup is None:
            logger.error("Scheduled cleanup has no target")
            return
        try:
            result = await self._cleanup()
            if result.status == "skipped":
                logger.warning("Scheduled cleanup skipped: a scan is already running")
        except Exception as e:
            logger.error(f"Exception in scheduled cleanup: {e}", exc_info=True)

    def start(self, cleanup: Callable[[], Awaitable[ScanResult]], cron: str | None = None) -> None:
        """Start the scheduler with the cleanup job; no-op when no schedule is configured"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        cron = cron or settings.cleanup_cron
        if not cron:
            logger.info("Scheduled cleanup disabled (CLEANUP_CRON not set)")
            return

        try:
            trigger = CronTrigger.from_crontab(cron)
        except (ValueError, KeyError) as exc:
            logger.error(f"Invalid cron expression '{cron}': {exc}")
            raise

        self._cleanup = cleanup
        self.scheduler = AsyncIOScheduler(timezone='UTC')
        self.scheduler.add_job(
            self._cleanup_job,
            trigger=trigger,
            id=CLEANUP_JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=settings.cleanup_misfire_grace_sec
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(f"Scheduler started. Next cleanup: {next_time.isoformat() if next_time else 'unknown'}")

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
        self.scheduler = None
        self._cleanup = None

    def is_running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled cleanup time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(CLEANUP_JOB_ID)
        return job.next_run_time if job else None


cleanup_scheduler = CleanupScheduler()
