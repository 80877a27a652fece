"""Local task mutations.

Every mutation is applied to the local store first and then reconciled with
the remote replica. The caller gets both the stored task and the sync outcome,
so a failed push never hides a successful local write.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from src.core.logging import span
from src.core.task_store import SqliteTaskStore
from src.domain.create_models import TaskCreate
from src.domain.task import Priority, Task, utc_now
from src.domain.update_models import TaskUpdate
from src.models.service_models import SyncOutcome
from src.services.notification_scheduler import NotificationScheduler
from src.services.sync_reconciler import SyncReconciler


logger = logging.getLogger(__name__)


class TaskService:
    """Create, edit, complete and delete tasks, keeping remote and alerts in step."""

    def __init__(
        self,
        *,
        store: SqliteTaskStore,
        reconciler: SyncReconciler,
        notifications: NotificationScheduler,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._notifications = notifications
        self._clock = clock

    async def create_task(self, data: TaskCreate) -> tuple[Task, SyncOutcome]:
        """Insert a task locally, then push it."""
        with span("task_service.create_task"):
            now = self._clock()
            task = Task(**data.model_dump(), created_at=now, updated_at=now)
            task_id = await self._store.upsert(task)
            stored = await self._store.require(task_id)
            logger.info("Task created", extra={"task_id": task_id, "title": stored.title})

            outcome = await self._reconciler.push_task(stored)
            return await self._store.require(task_id), outcome

    async def update_task(self, task_id: int, changes: TaskUpdate) -> tuple[Task, SyncOutcome]:
        """Apply a partial edit locally, then push it."""
        with span("task_service.update_task"):
            current = await self._store.require(task_id)
            updated = current.model_copy(update={**changes.changes(), "updated_at": self._clock()})
            await self._store.upsert(updated)
            logger.info("Task updated", extra={"task_id": task_id, "fields": sorted(changes.changes())})

            outcome = await self._reconciler.push_task(updated)
            return await self._store.require(task_id), outcome

    async def set_completed(self, task_id: int, is_completed: bool) -> tuple[Task, SyncOutcome]:
        """Mark a task done (or reopen it), then push it."""
        with span("task_service.set_completed"):
            task = await self._store.set_completed(task_id, is_completed=is_completed, updated_at=self._clock())
            if is_completed:
                self._notifications.forget(task_id)
            logger.info("Task status changed", extra={"task_id": task_id, "is_completed": is_completed})

            outcome = await self._reconciler.push_task(task)
            return await self._store.require(task_id), outcome

    async def delete_task(self, task_id: int) -> SyncOutcome:
        """Delete a task locally, then remove its remote document and image.

        A SKIPPED outcome caused by a sync already running for the task leaves
        the task untouched, so the delete can simply be retried.
        """
        with span("task_service.delete_task"):
            await self._store.require(task_id)

            outcome = await self._reconciler.delete_task(task_id)
            if await self._store.get(task_id) is None:
                self._notifications.forget(task_id)
                logger.info("Task deleted", extra={"task_id": task_id, "status": outcome.status})
            for warning in outcome.warnings:
                logger.warning(warning, extra={"task_id": task_id})
            return outcome

    async def attach_image(self, task_id: int, data: bytes, filename: str) -> SyncOutcome:
        return await self._reconciler.attach_image(task_id, data, filename)

    # ==================== QUERIES ====================

    async def get_task(self, task_id: int) -> Task:
        return await self._store.require(task_id)

    async def list_tasks(self) -> list[Task]:
        return await self._store.list_tasks()

    async def list_open_tasks(self) -> list[Task]:
        return await self._store.list_open_tasks()

    async def list_completed(self) -> list[Task]:
        return await self._store.list_completed()

    async def search_tasks(self, query: str) -> list[Task]:
        if not query.strip():
            return await self._store.list_tasks()
        return await self._store.search(query)

    async def list_by_priority(self, priority: Priority | str) -> list[Task]:
        return await self._store.list_by_priority(priority)

    async def list_by_category(self, category: str) -> list[Task]:
        return await self._store.list_by_category(category)

    async def list_by_deadline_range(self, start: datetime, end: datetime) -> list[Task]:
        return await self._store.list_by_deadline_range(start, end)
