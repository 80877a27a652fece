"""Pydantic models for creating records in the local store."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.domain.task import Priority, ensure_utc


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    deadline: datetime = Field(..., description="Deadline instant")
    priority: Priority = Field(default=Priority.MEDIUM, description="HIGH, MEDIUM or LOW")
    category: str = Field(default="", description="Free-text category")
    image_url: str | None = Field(default=None, description="Locator of an already-uploaded image")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is not blank."""
        if not v.strip():
            msg = "Title must not be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: object) -> Priority:
        """Accept any casing and fall back to MEDIUM for unknown values."""
        return Priority.from_value(v)

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, v: datetime) -> datetime:
        """Store deadlines in UTC."""
        return ensure_utc(v)
