"""
Reconciliation Scheduler using APScheduler.

Manages the background reconciliation jobs:
- Status sync: every STATUS_SYNC_INTERVAL_HOURS
- Temp-ID resolution: every TEMP_ID_INTERVAL_HOURS, offset by TEMP_ID_OFFSET_MINUTES
- Pending check: every PENDING_CHECK_INTERVAL_HOURS
"""

from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from delifast_sync.config.constants import (
    PENDING_CHECK_INTERVAL_HOURS,
    STATUS_SYNC_INTERVAL_HOURS,
    TEMP_ID_INTERVAL_HOURS,
    TEMP_ID_OFFSET_MINUTES,
)
from delifast_sync.core.logger import setup_logger
from delifast_sync.services.reconciliation_service import JobResult, ReconciliationService

logger = setup_logger(__name__)


class ReconciliationScheduler:
    """Manages scheduled reconciliation jobs using APScheduler."""

    def __init__(self, reconciliation_service: ReconciliationService):
        self.service = reconciliation_service
        self.scheduler = AsyncIOScheduler()
        self._started = False

    def start(self) -> None:
        """Start scheduler with configured jobs."""
        if self._started:
            logger.warning("Scheduler already started")
            return

        now = datetime.now(timezone.utc)

        self.scheduler.add_job(
            self._run_status_sync,
            IntervalTrigger(hours=STATUS_SYNC_INTERVAL_HOURS),
            id="sync_statuses",
            name="Shipment Status Sync",
            replace_existing=True,
        )
        logger.info(f"Added status sync job (every {STATUS_SYNC_INTERVAL_HOURS} hour(s))")

        self.scheduler.add_job(
            self._run_temp_id_resolution,
            IntervalTrigger(
                hours=TEMP_ID_INTERVAL_HOURS,
                start_date=now + timedelta(minutes=TEMP_ID_OFFSET_MINUTES),
            ),
            id="update_temp_ids",
            name="Temporary ID Resolution",
            replace_existing=True,
        )
        logger.info(
            f"Added temp-ID resolution job (every {TEMP_ID_INTERVAL_HOURS} hour(s), "
            f"offset {TEMP_ID_OFFSET_MINUTES} min)"
        )

        self.scheduler.add_job(
            self._run_pending_check,
            IntervalTrigger(hours=PENDING_CHECK_INTERVAL_HOURS),
            id="check_pending",
            name="Pending Shipment Check",
            replace_existing=True,
        )
        logger.info(f"Added pending check job (every {PENDING_CHECK_INTERVAL_HOURS} hours)")

        self.scheduler.start()
        self._started = True
        logger.info("Reconciliation scheduler started")

    def stop(self) -> None:
        """Gracefully stop scheduler."""
        if not self._started:
            return

        self.scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Reconciliation scheduler stopped")

    async def _run(self, name: str, job: Callable[[], Awaitable[JobResult]]) -> None:
        try:
            logger.info(f"{name} triggered")
            result = await job()
            if result.success:
                logger.info(
                    f"{name} completed: {result.processed} processed, {result.updated} updated"
                )
            else:
                logger.warning(f"{name} had issues: {result.errors}")
        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)

    async def _run_status_sync(self) -> None:
        await self._run("Status sync", self.service.sync_all_statuses)

    async def _run_temp_id_resolution(self) -> None:
        await self._run("Temp-ID resolution", self.service.resolve_all_temp_ids)

    async def _run_pending_check(self) -> None:
        await self._run("Pending check", self.service.check_all_pending)

    def get_next_run_times(self) -> dict:
        """Next run time per job ID, ISO formatted (None while paused)."""
        return {
            job.id: job.next_run_time.isoformat() if job.next_run_time else None
            for job in self.scheduler.get_jobs()
        }

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self.scheduler.running
