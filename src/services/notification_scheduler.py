"""Deadline notification engine.

Each tick classifies every open task and emits at most one alert per task per
escalation. The per-task record stores the last tier seen, not just a
"notified" flag, so a task that de-escalates (deadline moved out) is recorded
silently and can notify again if it later re-escalates.

State per task id:
    UNSEEN --first non-NONE tier--> NOTIFIED(t)       (alert)
    NOTIFIED(t) --t' more severe--> NOTIFIED(t')      (alert)
    NOTIFIED(t) --t' less severe--> NOTIFIED(t')      (silent)
    NOTIFIED(t) --completed/deleted--> UNSEEN         (record purged)

Records are per process. After a restart every task starts UNSEEN again, so
a tier that was already announced may be announced once more.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from src.core.logging import log_with_task_context, span
from src.core.ports import NotificationSink, TaskStore
from src.domain.task import Task, UrgencyTier, utc_now
from src.models.service_models import TickReport
from src.services.deadline_evaluator import classify_task, render_alert


logger = logging.getLogger(__name__)


class NotificationScheduler:
    """Evaluates open tasks and drives the per-task notification state machine."""

    def __init__(
        self,
        *,
        store: TaskStore,
        sink: NotificationSink,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._sink = sink
        self._clock = clock
        self._records: dict[int, UrgencyTier] = {}
        self._tick_lock = asyncio.Lock()
        self._cancel_requested = False

    @property
    def records(self) -> dict[int, UrgencyTier]:
        """Snapshot of the notification record."""
        return dict(self._records)

    def last_tier(self, task_id: int) -> UrgencyTier | None:
        return self._records.get(task_id)

    def forget(self, task_id: int) -> None:
        """Purge the record for a completed or deleted task."""
        if self._records.pop(task_id, None) is not None:
            logger.debug("Notification record cleared", extra={"task_id": task_id})

    def request_cancel(self) -> None:
        """Ask the in-flight tick (if any) to stop before its next task."""
        self._cancel_requested = True

    def resume(self) -> None:
        self._cancel_requested = False

    @property
    def is_running(self) -> bool:
        return self._tick_lock.locked()

    async def wait_idle(self) -> None:
        """Return once no tick is in flight."""
        async with self._tick_lock:
            pass

    async def run_tick(self, now: datetime | None = None) -> TickReport:
        """Run one evaluation pass. Ticks never overlap: a caller waits for the previous one."""
        async with self._tick_lock:
            return await self._tick(now or self._clock())

    async def _tick(self, now: datetime) -> TickReport:
        with span("notification_scheduler.tick"):
            try:
                tasks = await self._store.list_open_tasks()
            except Exception as e:
                # Retried at the next tick; never surfaced to the user
                logger.warning("Deadline check skipped: failed to read tasks", extra={"error": str(e)})
                return TickReport(aborted=True, error=str(e))

            open_ids = {task.id for task in tasks}
            for task_id in set(self._records) - open_ids:
                self.forget(task_id)

            report = TickReport()
            for task in tasks:
                if self._cancel_requested:
                    logger.info("Deadline check abandoned on shutdown", extra={"evaluated": report.evaluated})
                    report.aborted = True
                    break

                report.evaluated += 1
                try:
                    if await self._evaluate(task, now):
                        report.notified.append(task.id)
                except Exception:
                    log_with_task_context(logger, "exception", "Deadline check failed for task", task_id=task.id)
                    report.failed.append(task.id)

            logger.info(
                "Checked %d tasks for deadlines",
                report.evaluated,
                extra={"notified": len(report.notified), "failed": len(report.failed)},
            )
            return report

    async def _evaluate(self, task: Task, now: datetime) -> bool:
        """Apply one state-machine step for ``task``. Returns True if an alert was sent."""
        tier = classify_task(task, now)
        previous = self._records.get(task.id)

        escalated = tier != UrgencyTier.NONE and (previous is None or tier.severity > previous.severity)
        if not escalated:
            if previous is not None and previous != tier:
                log_with_task_context(
                    logger, "debug", "Tier de-escalated silently", task_id=task.id, old=previous, new=tier
                )
                self._records[task.id] = tier
            return False

        alert = render_alert(task, tier, now)
        self._records[task.id] = tier
        try:
            await self._sink.notify(task.id, alert.title, alert.body, tier)
        except Exception:
            # Roll back so the next tick retries this alert
            if previous is None:
                self._records.pop(task.id, None)
            else:
                self._records[task.id] = previous
            raise

        log_with_task_context(logger, "info", "Deadline alert emitted", task_id=task.id, tier=tier)
        return True
