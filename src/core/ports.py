"""Collaborator interfaces consumed by the scheduler and the reconciler.

The engines depend on these Protocols rather than on the SQLite store or the
HTTP adapters, so tests can pass in-memory fakes.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from src.domain.task import Task, TaskDocument, UrgencyTier


class TaskStore(Protocol):
    """Durable keyed store of task records."""

    async def list_open_tasks(self) -> list[Task]: ...
    async def get(self, task_id: int) -> Task | None: ...
    async def get_by_remote_id(self, remote_id: str) -> Task | None: ...
    async def upsert(self, task: Task) -> int: ...
    async def delete(self, task_id: int) -> None: ...
    async def list_tasks(self) -> list[Task]: ...

    async def mark_synced(self, task_id: int, *, remote_id: str, updated_at: datetime) -> Task:
        """Record a successful push without touching fields the user may have edited meanwhile."""
        ...


class RemoteReplica(Protocol):
    """Keyed document store mirroring the task set; every call may raise TransportError."""

    async def allocate_id(self) -> str: ...
    async def put(self, remote_id: str, document: TaskDocument) -> None: ...
    async def get_all(self) -> Sequence[tuple[str, dict]]: ...
    async def delete(self, remote_id: str) -> None: ...


class AssetStore(Protocol):
    """Binary asset storage; every call may raise TransportError."""

    async def upload(self, data: bytes, key_hint: str) -> str: ...
    async def delete(self, locator: str) -> None: ...


class NotificationSink(Protocol):
    """Fire-and-forget delivery of a rendered alert keyed by task id."""

    async def notify(self, task_id: int, title: str, body: str, tier: UrgencyTier) -> None: ...
