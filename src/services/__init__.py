from src.services import (
    deadline_evaluator,
    notification_scheduler,
    sync_reconciler,
    task_service,
)


__all__ = [
    "deadline_evaluator",
    "notification_scheduler",
    "sync_reconciler",
    "task_service",
]
