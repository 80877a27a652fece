"""Task domain models and enums."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_epoch_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds."""
    return int(ensure_utc(value).timestamp() * 1000)


def from_epoch_millis(value: int) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=UTC)


class Priority(StrEnum):
    """Task priority level."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def from_value(cls, value: Any) -> "Priority":
        """Parse a priority, falling back to MEDIUM for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.MEDIUM


class UrgencyTier(StrEnum):
    """Urgency classification derived from time-to-deadline (never stored)."""

    NONE = "NONE"
    UPCOMING = "UPCOMING"  # due within 3 days
    NEAR = "NEAR"  # due within 1 day
    OVERDUE = "OVERDUE"  # deadline has passed

    @property
    def severity(self) -> int:
        """Ordering key: NONE < UPCOMING < NEAR < OVERDUE."""
        return _TIER_SEVERITY[self]


_TIER_SEVERITY = {
    UrgencyTier.NONE: 0,
    UrgencyTier.UPCOMING: 1,
    UrgencyTier.NEAR: 2,
    UrgencyTier.OVERDUE: 3,
}


class Task(BaseModel):
    """Task record as held by the local store."""

    id: int | None = Field(default=None, description="Local store id (assigned on insert)")
    remote_id: str | None = Field(default=None, description="Remote replica id (assigned on first push)")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    deadline: datetime = Field(..., description="Deadline instant (UTC)")
    priority: Priority = Field(default=Priority.MEDIUM, description="HIGH, MEDIUM or LOW")
    category: str = Field(default="", description="Free-text category")
    is_completed: bool = Field(default=False, description="Completion flag")
    image_url: str | None = Field(default=None, description="Locator of the attached image asset")
    created_at: datetime = Field(default_factory=utc_now, description="Creation instant (UTC)")
    updated_at: datetime = Field(default_factory=utc_now, description="Last local mutation instant (UTC)")

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Priority:
        return Priority.from_value(value)

    @field_validator("deadline", "created_at", "updated_at")
    @classmethod
    def _normalize_instant(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class TaskDocument(BaseModel):
    """Remote representation of a task.

    Field names follow the remote store's camelCase schema and instants are
    epoch milliseconds. The remote id is the document key, not a field.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    description: str = ""
    deadline: int = 0
    priority: str = Priority.MEDIUM.value
    category: str = ""
    is_completed: bool = Field(default=False, alias="isCompleted")
    image_url: str | None = Field(default=None, alias="imageUrl")
    created_at: int = Field(default_factory=lambda: to_epoch_millis(utc_now()), alias="createdAt")
    updated_at: int = Field(default_factory=lambda: to_epoch_millis(utc_now()), alias="updatedAt")
    user_id: str = Field(default="", alias="userId")

    @classmethod
    def from_task(cls, task: Task, *, updated_at: datetime | None = None, user_id: str = "") -> "TaskDocument":
        """Build the remote document for a task, optionally stamping a fresh updated-at."""
        return cls(
            title=task.title,
            description=task.description,
            deadline=to_epoch_millis(task.deadline),
            priority=task.priority.value,
            category=task.category,
            is_completed=task.is_completed,
            image_url=task.image_url,
            created_at=to_epoch_millis(task.created_at),
            updated_at=to_epoch_millis(updated_at or task.updated_at),
            user_id=user_id,
        )

    def to_task(self, *, remote_id: str, local_id: int | None = None) -> Task:
        """Convert back into a local task carrying the given ids."""
        return Task(
            id=local_id,
            remote_id=remote_id,
            title=self.title,
            description=self.description,
            deadline=from_epoch_millis(self.deadline),
            priority=Priority.from_value(self.priority),
            category=self.category,
            is_completed=self.is_completed,
            image_url=self.image_url or None,
            created_at=from_epoch_millis(self.created_at),
            updated_at=from_epoch_millis(self.updated_at),
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the remote store's field names."""
        return self.model_dump(by_alias=True)
