"""Pytest configuration and fixtures for unit tests."""

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from src.core.task_store import SqliteTaskStore
from src.domain.task import Priority, Task
from src.services.notification_scheduler import NotificationScheduler
from src.services.sync_reconciler import SyncReconciler
from tests.unit.mocks import FixedClock, InMemoryAssetStore, InMemoryRemoteReplica, RecordingNotificationSink


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2026-03-01 12:00 UTC."""
    return FixedClock()


@pytest.fixture
async def task_store(tmp_path: Path) -> AsyncIterator[SqliteTaskStore]:
    """Provides a fresh SQLite task store for each test."""
    async with SqliteTaskStore(tmp_path / "tasks.db") as store:
        yield store


@pytest.fixture
def replica() -> InMemoryRemoteReplica:
    return InMemoryRemoteReplica()


@pytest.fixture
def assets() -> InMemoryAssetStore:
    return InMemoryAssetStore()


@pytest.fixture
def sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def reconciler(
    task_store: SqliteTaskStore,
    replica: InMemoryRemoteReplica,
    assets: InMemoryAssetStore,
    clock: FixedClock,
) -> SyncReconciler:
    return SyncReconciler(
        store=task_store,
        replica=replica,
        assets=assets,
        timeout_seconds=1.0,
        user_id="user-1",
        clock=clock,
    )


@pytest.fixture
def notifications(
    task_store: SqliteTaskStore, sink: RecordingNotificationSink, clock: FixedClock
) -> NotificationScheduler:
    return NotificationScheduler(store=task_store, sink=sink, clock=clock)


@pytest.fixture
def task_factory(task_store: SqliteTaskStore, clock: FixedClock) -> Callable[..., Awaitable[Task]]:
    """Factory inserting a task due ``due_in`` from the fixed clock.

    Usage:
        task = await task_factory(title="Report", due_in=timedelta(hours=5))
    """

    async def _create(
        *,
        title: str = "Write report",
        due_in: timedelta = timedelta(days=7),
        deadline: datetime | None = None,
        **fields: object,
    ) -> Task:
        task = Task(
            title=title,
            deadline=deadline or clock.now + due_in,
            priority=fields.pop("priority", Priority.MEDIUM),
            created_at=clock.now,
            updated_at=clock.now,
            **fields,
        )
        task_id = await task_store.upsert(task)
        return await task_store.require(task_id)

    return _create
