"""Update models for database operations."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator

from src.domain.task import Priority, ensure_utc


class TaskUpdate(BaseModel):
    """Partial update for a task; only explicitly set fields are applied."""

    title: str | None = None
    description: str | None = None
    deadline: datetime | None = None
    priority: Priority | None = None
    category: str | None = None

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: object) -> Priority | None:
        """Accept any casing and fall back to MEDIUM for unknown values."""
        return None if v is None else Priority.from_value(v)

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, v: datetime | None) -> datetime | None:
        """Store deadlines in UTC."""
        return None if v is None else ensure_utc(v)

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually set."""
        return self.model_dump(exclude_unset=True, exclude_none=True)
