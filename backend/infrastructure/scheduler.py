"""
Background scheduler for time-triggered field transitions.

Runs the lifecycle sweep on a fixed interval. Deadlines live in the database,
so the scheduler keeps no state of its own beyond the last sweep's report: a
restarted process resumes on its next tick, and several scheduler instances
may run side by side because every transition is guarded in the store.

Architecture note:
- The scheduler only decides *when* to sweep
- It delegates the transitions to LifecycleService.sweep()
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from domain.entities.field_models import SweepReport
from services.lifecycle_service import LifecycleService
from utils.serializers import utc_now

logger = logging.getLogger("SpawnScheduler")

# Suppress noisy APScheduler "max instances reached" warnings
# These are expected when a sweep outlasts the interval and not actionable
logging.getLogger("apscheduler.scheduler").setLevel(logging.ERROR)

SWEEP_JOB_ID = "sweep_field_lifecycle"


class BackgroundScheduler:
    """Manages the periodic field lifecycle sweep."""

    def __init__(self, lifecycle_service: LifecycleService, interval_seconds: float = 2.0):
        self.scheduler = AsyncIOScheduler()
        self.lifecycle_service = lifecycle_service
        self.interval_seconds = interval_seconds
        self.is_running = False
        self.sweep_count = 0
        self.last_sweep_at: Optional[datetime] = None
        self.last_report: Optional[SweepReport] = None

    def start(self):
        """Start the background scheduler."""
        if not self.is_running:
            self.scheduler.add_job(
                self._run_sweep,
                "interval",
                seconds=self.interval_seconds,
                id=SWEEP_JOB_ID,
                replace_existing=True,
                max_instances=1,  # Only one sweep at a time per process
                coalesce=True,  # Skip missed runs if previous sweep still running
                misfire_grace_time=None,  # Never misfire - just skip if busy (suppresses warnings)
            )

            self.scheduler.start()
            self.is_running = True
            logger.info(f"Background scheduler started - sweeping fields every {self.interval_seconds} seconds")

    def stop(self):
        """Stop the background scheduler."""
        if self.is_running:
            self.scheduler.shutdown()
            self.is_running = False
            logger.info("Background scheduler stopped")

    async def _run_sweep(self):
        """Job body: one sweep, never raising into APScheduler."""
        try:
            await self.force_sweep()
        except Exception as e:
            logger.error(f"Error in field sweep: {e}", exc_info=True)

    async def force_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one sweep immediately and remember its report."""
        started_at = now or utc_now()
        report = await self.lifecycle_service.sweep(started_at)
        self.sweep_count += 1
        self.last_sweep_at = started_at
        self.last_report = report
        return report

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "sweep_count": self.sweep_count,
            "last_sweep_at": self.last_sweep_at,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }
