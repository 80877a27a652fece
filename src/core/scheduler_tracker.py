"""Health tracking for scheduled jobs.

State is per process. The host exposes it through ``/health/scheduler``; a job
lands in the dead letter queue once the supervisor decides its failures are
persistent.
"""

import logging
from collections import deque
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from src.core.config import Constants


logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class JobRecord(BaseModel):
    """Run history of one scheduled job."""

    last_success: str | None = None
    last_failure: str | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    success_count: int = 0
    failure_count: int = 0
    current_run: str | None = None


class DeadLetter(BaseModel):
    """A job parked after repeated failures."""

    job_name: str
    error: str
    context: str


class JobTracker:
    """In-memory run history and dead letter queue for scheduled jobs."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobRecord] = {}
        self._dead_letters: deque[DeadLetter] = deque(maxlen=Constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN)

    def _record(self, job_name: str) -> JobRecord:
        return self._jobs.setdefault(job_name, JobRecord())

    async def record_job_start(self, job_name: str) -> None:
        self._record(job_name).current_run = _now_iso()

    async def record_job_success(self, job_name: str) -> None:
        """Mark the current run successful and reset the failure streak."""
        record = self._record(job_name)
        record.last_success = _now_iso()
        record.consecutive_failures = 0
        record.success_count += 1
        record.current_run = None

    async def record_job_failure(self, job_name: str, error: str) -> int:
        """Mark the current run failed.

        Args:
            job_name: Name of the scheduled job
            error: Error message (truncated for storage)

        Returns:
            Length of the failure streak including this run
        """
        record = self._record(job_name)
        record.last_failure = _now_iso()
        record.last_error = error[: Constants.TRACKER_ERROR_MAX_CHARS]
        record.consecutive_failures += 1
        record.failure_count += 1
        record.current_run = None

        logger.warning(
            "Scheduled job failed",
            extra={"job_name": job_name, "consecutive_failures": record.consecutive_failures},
        )
        return record.consecutive_failures

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        """Status snapshot for the health endpoint (zeros for a job that never ran)."""
        record = self._jobs.get(job_name, JobRecord())
        status = record.model_dump(exclude={"current_run"})
        status["job_name"] = job_name
        status["currently_running"] = record.current_run is not None
        status["current_run_started"] = record.current_run
        return status

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        self._dead_letters.append(DeadLetter(job_name=job_name, error=error, context=context))
        logger.error(
            "Job added to dead letter queue",
            extra={"job_name": job_name, "error": error, "context": context, "timestamp": _now_iso()},
        )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        """Parked jobs, oldest first."""
        return [letter.model_dump() for letter in self._dead_letters]
