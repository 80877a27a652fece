"""Domain models and DTOs."""

from src.domain.create_models import TaskCreate
from src.domain.task import Priority, Task, TaskDocument, UrgencyTier
from src.domain.update_models import TaskUpdate


__all__ = [
    "Priority",
    "Task",
    "TaskCreate",
    "TaskDocument",
    "TaskUpdate",
    "UrgencyTier",
]
