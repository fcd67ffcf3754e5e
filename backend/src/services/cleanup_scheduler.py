"""
Cleanup scheduler for expired notifications.

Expiry is already enforced when notifications are read; this scheduler only
deletes expired rows periodically so the table does not grow without bound.
"""

import asyncio
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore

from core.config import NOTIFICATION_CLEANUP_INTERVAL_MINUTES
from core.database import get_db_context
from services.notification_service import NotificationService
from utils.datetime_utils import CLINIC_TZ

logger = logging.getLogger(__name__)

# Global singleton instance
_cleanup_scheduler: Optional['CleanupScheduler'] = None


class CleanupScheduler:
    """
    Scheduler for running cleanup tasks.

    Runs the expired-notification purge every
    NOTIFICATION_CLEANUP_INTERVAL_MINUTES minutes.
    """

    def __init__(self, interval_minutes: int = NOTIFICATION_CLEANUP_INTERVAL_MINUTES):
        """
        Initialize the cleanup scheduler.

        Note: Database sessions are created fresh for each scheduler run
        to avoid stale session issues.
        """
        self.scheduler = AsyncIOScheduler(timezone=CLINIC_TZ)
        self.interval_minutes = interval_minutes
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler for cleanup tasks.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Cleanup scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_cleanup,
            IntervalTrigger(minutes=self.interval_minutes),
            id="notification_cleanup",
            name="Expired notification cleanup",
            replace_existing=True,
            misfire_grace_time=300,
            coalesce=True,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Cleanup scheduler started (purges expired notifications every {self.interval_minutes} min)")

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Cleanup scheduler stopped")

    async def _run_cleanup(self) -> None:
        """
        Run cleanup tasks.

        Offloads the blocking database work to a thread so the event loop
        serving requests is never blocked.
        """
        await asyncio.to_thread(self.execute_cleanup_logic)

    def execute_cleanup_logic(self) -> int:
        """
        Purge expired notifications (synchronous).

        Returns:
            Number of notifications deleted, 0 if the run failed
        """
        with get_db_context() as db:
            try:
                return NotificationService.purge_expired(db)
            except Exception as e:
                logger.exception(f"Error during scheduled notification cleanup: {e}")
                # Don't re-raise - allow scheduler to continue
                return 0


def get_cleanup_scheduler() -> CleanupScheduler:
    """
    Get the global cleanup scheduler instance.

    Returns:
        CleanupScheduler: The global scheduler instance
    """
    global _cleanup_scheduler
    if _cleanup_scheduler is None:
        _cleanup_scheduler = CleanupScheduler()
    return _cleanup_scheduler


async def start_cleanup_scheduler() -> None:
    """
    Start the global cleanup scheduler.

    This should be called during application startup.
    """
    scheduler = get_cleanup_scheduler()
    await scheduler.start_scheduler()


async def stop_cleanup_scheduler() -> None:
    """
    Stop the global cleanup scheduler.

    This should be called during application shutdown.
    """
    global _cleanup_scheduler
    if _cleanup_scheduler:
        await _cleanup_scheduler.stop_scheduler()
