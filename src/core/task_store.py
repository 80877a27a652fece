"""SQLite-backed task store with CRUD and query operations."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.errors import DatabaseError, NotFoundError, RemoteIdConflictError
from src.domain.task import Priority, Task, ensure_utc


logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    remote_id TEXT UNIQUE,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    deadline TEXT NOT NULL,
    priority TEXT NOT NULL DEFAULT 'MEDIUM',
    category TEXT NOT NULL DEFAULT '',
    is_completed INTEGER NOT NULL DEFAULT 0,
    image_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks (deadline);
CREATE INDEX IF NOT EXISTS idx_tasks_open ON tasks (is_completed, deadline);
"""

_COLUMNS = (
    "remote_id",
    "title",
    "description",
    "deadline",
    "priority",
    "category",
    "is_completed",
    "image_url",
    "created_at",
    "updated_at",
)


def _format_instant(value: datetime) -> str:
    # Fixed-width UTC text keeps lexical order equal to chronological order
    return ensure_utc(value).isoformat(timespec="microseconds")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_task(row: aiosqlite.Row) -> Task:
    return Task(
        id=row["id"],
        remote_id=row["remote_id"],
        title=row["title"],
        description=row["description"],
        deadline=datetime.fromisoformat(row["deadline"]),
        priority=Priority.from_value(row["priority"]),
        category=row["category"],
        is_completed=bool(row["is_completed"]),
        image_url=row["image_url"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _task_values(task: Task) -> list[Any]:
    return [
        task.remote_id,
        task.title,
        task.description,
        _format_instant(task.deadline),
        task.priority.value,
        task.category,
        int(task.is_completed),
        task.image_url,
        _format_instant(task.created_at),
        _format_instant(task.updated_at),
    ]


class SqliteTaskStore:
    """Explicitly constructed handle over the local task database.

    The host process owns the lifecycle: call ``connect()`` once at startup
    and ``close()`` at shutdown (or use the handle as an async context manager).
    Read-modify-write operations are serialized with an asyncio lock so
    remote-id immutability and updated-at monotonicity hold across coroutines.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the connection and create the schema if needed."""
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            Path(self._db_path).resolve().parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self._db_path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.executescript(_SCHEMA)
        await conn.commit()
        self._conn = conn

        logger.info("Opened task store", extra={"db_path": self._db_path})

    async def close(self) -> None:
        """Close the connection if open."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
            logger.info("Closed task store", extra={"db_path": self._db_path})
        finally:
            self._conn = None

    async def __aenter__(self) -> "SqliteTaskStore":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Task store is not connected. Call connect() first."
            raise DatabaseError(msg)
        return self._conn

    async def _fetch_all(self, query: str, params: tuple[Any, ...] = ()) -> list[Task]:
        try:
            cursor = await self.connection.execute(query, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error("list_tasks_failed", extra={"query": query, "error": str(e)})
            msg = f"Failed to list tasks: {e}"
            raise DatabaseError(msg) from e
        return [_row_to_task(row) for row in rows]

    async def _fetch_one(self, query: str, params: tuple[Any, ...]) -> Task | None:
        try:
            cursor = await self.connection.execute(query, params)
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error("get_task_failed", extra={"query": query, "error": str(e)})
            msg = f"Failed to get task: {e}"
            raise DatabaseError(msg) from e
        return _row_to_task(row) if row is not None else None

    # ==================== READS ====================

    async def get(self, task_id: int) -> Task | None:
        """Fetch a task by local id, or None."""
        return await self._fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))

    async def require(self, task_id: int) -> Task:
        """Fetch a task by local id, raising NotFoundError if absent."""
        task = await self.get(task_id)
        if task is None:
            msg = f"Task not found: {task_id}"
            raise NotFoundError(msg)
        return task

    async def get_by_remote_id(self, remote_id: str) -> Task | None:
        """Fetch the task joined to a remote document, or None."""
        return await self._fetch_one("SELECT * FROM tasks WHERE remote_id = ?", (remote_id,))

    async def list_tasks(self) -> list[Task]:
        """All tasks, deadline ascending."""
        return await self._fetch_all("SELECT * FROM tasks ORDER BY deadline ASC, id ASC")

    async def list_open_tasks(self) -> list[Task]:
        """Incomplete tasks, deadline ascending."""
        return await self._fetch_all("SELECT * FROM tasks WHERE is_completed = 0 ORDER BY deadline ASC, id ASC")

    async def list_completed(self) -> list[Task]:
        """Completed tasks, most recent deadline first."""
        return await self._fetch_all("SELECT * FROM tasks WHERE is_completed = 1 ORDER BY deadline DESC, id DESC")

    async def list_by_priority(self, priority: Priority | str) -> list[Task]:
        return await self._fetch_all(
            "SELECT * FROM tasks WHERE priority = ? ORDER BY deadline ASC, id ASC",
            (Priority.from_value(priority).value,),
        )

    async def list_by_category(self, category: str) -> list[Task]:
        return await self._fetch_all(
            "SELECT * FROM tasks WHERE category = ? ORDER BY deadline ASC, id ASC",
            (category,),
        )

    async def list_by_deadline_range(self, start: datetime, end: datetime) -> list[Task]:
        """Tasks whose deadline falls within [start, end], deadline ascending."""
        return await self._fetch_all(
            "SELECT * FROM tasks WHERE deadline BETWEEN ? AND ? ORDER BY deadline ASC, id ASC",
            (_format_instant(start), _format_instant(end)),
        )

    async def search(self, query: str) -> list[Task]:
        """Case-insensitive substring match on title, description and category."""
        pattern = f"%{_escape_like(query.strip())}%"
        return await self._fetch_all(
            "SELECT * FROM tasks "
            "WHERE title LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\' OR category LIKE ? ESCAPE '\\' "
            "ORDER BY deadline ASC, id ASC",
            (pattern, pattern, pattern),
        )

    async def count_tasks(self, *, open_only: bool = False) -> int:
        query = "SELECT COUNT(*) FROM tasks WHERE is_completed = 0" if open_only else "SELECT COUNT(*) FROM tasks"
        try:
            cursor = await self.connection.execute(query)
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            msg = f"Failed to count tasks: {e}"
            raise DatabaseError(msg) from e
        return int(row[0]) if row else 0

    # ==================== WRITES ====================

    async def upsert(self, task: Task) -> int:
        """Insert or overwrite a task and return its local id.

        An existing remote id is never changed: a record arriving without one
        keeps the stored id, and a record carrying a different one is rejected.
        The stored updated-at never moves backwards.
        """
        async with self._write_lock:
            existing = await self.get(task.id) if task.id is not None else None

            if existing is None:
                return await self._insert(task)

            remote_id = existing.remote_id or task.remote_id
            if existing.remote_id and task.remote_id and task.remote_id != existing.remote_id:
                msg = f"Task {existing.id} is already bound to remote id {existing.remote_id}, refusing {task.remote_id}"
                raise RemoteIdConflictError(msg)

            merged = task.model_copy(
                update={
                    "remote_id": remote_id,
                    "created_at": existing.created_at,
                    "updated_at": max(existing.updated_at, task.updated_at),
                }
            )
            await self._update(existing.id, merged)
            return existing.id

    async def mark_synced(self, task_id: int, *, remote_id: str, updated_at: datetime) -> Task:
        """Bind a remote id (first push only) and advance updated-at."""
        async with self._write_lock:
            existing = await self.require(task_id)
            if existing.remote_id and existing.remote_id != remote_id:
                msg = f"Task {task_id} is already bound to remote id {existing.remote_id}, refusing {remote_id}"
                raise RemoteIdConflictError(msg)

            new_updated = max(existing.updated_at, ensure_utc(updated_at))
            await self._execute(
                "UPDATE tasks SET remote_id = ?, updated_at = ? WHERE id = ?",
                (remote_id, _format_instant(new_updated), task_id),
            )
            logger.info("Marked task synced", extra={"task_id": task_id, "remote_id": remote_id})
            return existing.model_copy(update={"remote_id": remote_id, "updated_at": new_updated})

    async def set_completed(self, task_id: int, *, is_completed: bool, updated_at: datetime) -> Task:
        """Flip the completion flag."""
        async with self._write_lock:
            existing = await self.require(task_id)
            new_updated = max(existing.updated_at, ensure_utc(updated_at))
            await self._execute(
                "UPDATE tasks SET is_completed = ?, updated_at = ? WHERE id = ?",
                (int(is_completed), _format_instant(new_updated), task_id),
            )
            return existing.model_copy(update={"is_completed": is_completed, "updated_at": new_updated})

    async def delete(self, task_id: int) -> None:
        """Delete a task by id, raising NotFoundError if absent."""
        async with self._write_lock:
            try:
                cursor = await self.connection.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
                await self.connection.commit()
            except aiosqlite.Error as e:
                logger.error("delete_task_failed", extra={"task_id": task_id, "error": str(e)})
                msg = f"Failed to delete task {task_id}: {e}"
                raise DatabaseError(msg) from e

            if cursor.rowcount == 0:
                msg = f"Task not found: {task_id}"
                raise NotFoundError(msg)

        logger.info("Deleted task", extra={"task_id": task_id})

    async def _insert(self, task: Task) -> int:
        columns = ("id", *_COLUMNS) if task.id is not None else _COLUMNS
        values = [task.id, *_task_values(task)] if task.id is not None else _task_values(task)
        placeholders = ", ".join("?" for _ in columns)
        query = f"INSERT INTO tasks ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608 - fixed columns

        try:
            cursor = await self.connection.execute(query, values)
            await self.connection.commit()
        except aiosqlite.IntegrityError as e:
            logger.error("insert_task_conflict", extra={"remote_id": task.remote_id, "error": str(e)})
            msg = f"Remote id {task.remote_id} is already bound to another task"
            raise RemoteIdConflictError(msg) from e
        except aiosqlite.Error as e:
            logger.error("insert_task_failed", extra={"error": str(e)})
            msg = f"Failed to insert task: {e}"
            raise DatabaseError(msg) from e

        task_id = int(cursor.lastrowid)
        logger.info("Inserted task", extra={"task_id": task_id, "remote_id": task.remote_id})
        return task_id

    async def _update(self, task_id: int, task: Task) -> None:
        set_clause = ", ".join(f"{column} = ?" for column in _COLUMNS)
        query = f"UPDATE tasks SET {set_clause} WHERE id = ?"  # noqa: S608 - fixed columns
        await self._execute(query, (*_task_values(task), task_id))
        logger.info("Updated task", extra={"task_id": task_id})

    async def _execute(self, query: str, params: tuple[Any, ...]) -> None:
        try:
            await self.connection.execute(query, params)
            await self.connection.commit()
        except aiosqlite.Error as e:
            logger.error("update_task_failed", extra={"query": query, "error": str(e)})
            msg = f"Failed to update task: {e}"
            raise DatabaseError(msg) from e
