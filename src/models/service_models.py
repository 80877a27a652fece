"""Pydantic models for service layer return types.

These models give the reconciler and scheduler typed results at their
boundaries instead of ad-hoc tuples and dictionaries.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class SyncStatus(StrEnum):
    """Result of one reconciliation attempt for one task."""

    SYNCED = "synced"
    FAILED = "failed"
    SKIPPED = "skipped"


class SyncOutcome(BaseModel):
    """Per-task outcome of a reconciliation call (never persisted)."""

    status: SyncStatus
    task_id: int | None = None
    remote_id: str | None = None
    reason: str | None = None
    error_code: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def synced(cls, *, remote_id: str, task_id: int | None = None) -> "SyncOutcome":
        return cls(status=SyncStatus.SYNCED, task_id=task_id, remote_id=remote_id)

    @classmethod
    def failed(
        cls,
        *,
        reason: str,
        error_code: str | None = None,
        task_id: int | None = None,
        remote_id: str | None = None,
    ) -> "SyncOutcome":
        return cls(
            status=SyncStatus.FAILED,
            task_id=task_id,
            remote_id=remote_id,
            reason=reason,
            error_code=error_code,
        )

    @classmethod
    def skipped(
        cls,
        *,
        reason: str,
        error_code: str | None = None,
        task_id: int | None = None,
        remote_id: str | None = None,
    ) -> "SyncOutcome":
        return cls(
            status=SyncStatus.SKIPPED,
            task_id=task_id,
            remote_id=remote_id,
            reason=reason,
            error_code=error_code,
        )

    @property
    def ok(self) -> bool:
        return self.status == SyncStatus.SYNCED


class Alert(BaseModel):
    """Rendered notification text for one task at one tier."""

    title: str
    body: str


class TickReport(BaseModel):
    """Summary of one deadline-check tick."""

    evaluated: int = 0
    notified: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)
    aborted: bool = False
    error: str | None = None

