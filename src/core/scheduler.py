"""Background supervisor that runs the deadline check on a fixed interval."""

import logging
from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.config import constants, settings
from src.core.scheduler_tracker import JobTracker
from src.models.service_models import TickReport
from src.services.notification_scheduler import NotificationScheduler


logger = logging.getLogger(__name__)

CONSECUTIVE_FAILURE_THRESHOLD = 3


class ReminderSupervisor:
    """Owns the scheduler that drives periodic deadline checks.

    Started and stopped explicitly by the host process; nothing here is tied
    to module import or to any UI lifecycle.
    """

    def __init__(
        self,
        *,
        engine: NotificationScheduler,
        tracker: JobTracker | None = None,
        interval_minutes: int | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._engine = engine
        self._tracker = tracker or JobTracker()
        self._interval_minutes = interval_minutes or settings.reminder_interval_minutes
        self._scheduler = scheduler or AsyncIOScheduler(timezone=UTC)

    @property
    def tracker(self) -> JobTracker:
        return self._tracker

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self, *, run_immediately: bool = True) -> None:
        """Register the deadline job and start the scheduler.

        Must be called from within a running event loop.
        """
        if self._scheduler.running:
            logger.warning("Reminder supervisor already running")
            return

        logger.info("Starting reminder supervisor")
        self._engine.resume()

        # max_instances=1 with coalesce: a late tick is skipped, never overlapped
        extra = {"next_run_time": datetime.now(UTC)} if run_immediately else {}
        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=constants.REMINDER_JOB_ID,
            name="Check Task Deadlines",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **extra,
        )
        self._scheduler.start()
        logger.info(f"Scheduled deadline check job: every {self._interval_minutes} minutes")

    async def run_once(self) -> TickReport:
        """Run one tick and record its health."""
        job_name = constants.REMINDER_JOB_ID
        await self._tracker.record_job_start(job_name)

        report = await self._engine.run_tick()

        if report.aborted and report.error:
            consecutive_failures = await self._tracker.record_job_failure(job_name, report.error)
            if consecutive_failures >= CONSECUTIVE_FAILURE_THRESHOLD:
                await self._tracker.add_to_dead_letter_queue(
                    job_name=job_name,
                    error=report.error,
                    context=f"Failed {consecutive_failures} consecutive times",
                )
        else:
            await self._tracker.record_job_success(job_name)

        return report

    async def stop(self) -> None:
        """Stop scheduling new ticks and let an in-flight tick wind down."""
        logger.info("Stopping reminder supervisor")
        self._engine.request_cancel()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        await self._engine.wait_idle()
        logger.info("Reminder supervisor stopped")
