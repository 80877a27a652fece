"""Tests for the SQLite task store."""

import asyncio
from datetime import timedelta
from pathlib import Path

import pytest

from src.core.errors import DatabaseError, NotFoundError, RemoteIdConflictError
from src.core.task_store import SqliteTaskStore
from src.domain.task import Priority, Task


@pytest.mark.unit
async def test_insert_assigns_id_and_round_trips_fields(task_store: SqliteTaskStore, clock) -> None:
    task = Task(
        title="Submit thesis",
        description="Final draft",
        deadline=clock.now + timedelta(days=5, microseconds=250),
        priority="high",
        category="school",
        created_at=clock.now,
        updated_at=clock.now,
    )

    task_id = await task_store.upsert(task)
    stored = await task_store.require(task_id)

    assert stored.id == task_id
    assert stored.title == "Submit thesis"
    assert stored.priority == Priority.HIGH
    assert stored.deadline == task.deadline
    assert stored.deadline.tzinfo is not None
    assert stored.remote_id is None
    assert stored.is_completed is False


@pytest.mark.unit
async def test_get_missing_returns_none_and_require_raises(task_store: SqliteTaskStore) -> None:
    assert await task_store.get(999) is None

    with pytest.raises(NotFoundError, match="Task not found: 999"):
        await task_store.require(999)


@pytest.mark.unit
async def test_upsert_with_explicit_unknown_id_inserts(task_store: SqliteTaskStore, clock) -> None:
    task_id = await task_store.upsert(Task(id=42, title="Imported", deadline=clock.now))

    assert task_id == 42
    assert (await task_store.require(42)).title == "Imported"


@pytest.mark.unit
async def test_update_keeps_created_at(task_store: SqliteTaskStore, task_factory, clock) -> None:
    task = await task_factory(title="Before")

    later = clock.now + timedelta(hours=1)
    await task_store.upsert(task.model_copy(update={"title": "After", "created_at": later, "updated_at": later}))

    stored = await task_store.require(task.id)
    assert stored.title == "After"
    assert stored.created_at == clock.now
    assert stored.updated_at == later


@pytest.mark.unit
async def test_updated_at_never_moves_backwards(task_store: SqliteTaskStore, task_factory, clock) -> None:
    task = await task_factory()
    newer = clock.now + timedelta(hours=2)
    await task_store.upsert(task.model_copy(update={"updated_at": newer}))

    await task_store.upsert(task.model_copy(update={"title": "Stale write", "updated_at": clock.now}))

    stored = await task_store.require(task.id)
    assert stored.title == "Stale write"
    assert stored.updated_at == newer


@pytest.mark.unit
async def test_remote_id_is_immutable(task_store: SqliteTaskStore, task_factory, clock) -> None:
    task = await task_factory()
    await task_store.mark_synced(task.id, remote_id="-first", updated_at=clock.now)

    # A record arriving without a remote id keeps the stored one
    await task_store.upsert(task.model_copy(update={"remote_id": None, "title": "Edited"}))
    assert (await task_store.require(task.id)).remote_id == "-first"

    with pytest.raises(RemoteIdConflictError):
        await task_store.upsert(task.model_copy(update={"remote_id": "-second"}))

    with pytest.raises(RemoteIdConflictError):
        await task_store.mark_synced(task.id, remote_id="-second", updated_at=clock.now)


@pytest.mark.unit
async def test_remote_id_is_unique_across_tasks(task_store: SqliteTaskStore, task_factory, clock) -> None:
    first = await task_factory(title="One")
    await task_store.mark_synced(first.id, remote_id="-shared", updated_at=clock.now)

    with pytest.raises(RemoteIdConflictError):
        await task_store.upsert(Task(title="Two", deadline=clock.now, remote_id="-shared"))


@pytest.mark.unit
async def test_mark_synced_only_touches_sync_fields(task_store: SqliteTaskStore, task_factory, clock) -> None:
    task = await task_factory(title="Original")
    await task_store.upsert(task.model_copy(update={"title": "Edited during push"}))

    result = await task_store.mark_synced(task.id, remote_id="-abc", updated_at=clock.now + timedelta(minutes=1))

    stored = await task_store.require(task.id)
    assert stored.title == "Edited during push"
    assert stored.remote_id == "-abc"
    assert stored.updated_at == clock.now + timedelta(minutes=1)
    assert result.remote_id == "-abc"
    assert await task_store.get_by_remote_id("-abc") == stored


@pytest.mark.unit
async def test_set_completed_moves_task_between_lists(task_store: SqliteTaskStore, task_factory, clock) -> None:
    task = await task_factory()

    done = await task_store.set_completed(task.id, is_completed=True, updated_at=clock.now)

    assert done.is_completed is True
    assert await task_store.list_open_tasks() == []
    assert [t.id for t in await task_store.list_completed()] == [task.id]
    assert await task_store.count_tasks(open_only=True) == 0
    assert await task_store.count_tasks() == 1


@pytest.mark.unit
async def test_delete(task_store: SqliteTaskStore, task_factory) -> None:
    task = await task_factory()

    await task_store.delete(task.id)

    assert await task_store.get(task.id) is None
    with pytest.raises(NotFoundError):
        await task_store.delete(task.id)


@pytest.mark.unit
async def test_delete_waits_for_in_progress_write(task_store: SqliteTaskStore, task_factory) -> None:
    """A delete never interleaves with the read-then-write of an upsert."""
    task = await task_factory()

    async with task_store._write_lock:
        pending = asyncio.create_task(task_store.delete(task.id))
        await asyncio.sleep(0.01)
        assert not pending.done()
        assert await task_store.get(task.id) is not None

    await pending
    assert await task_store.get(task.id) is None


@pytest.mark.unit
async def test_open_tasks_sorted_by_deadline(task_store: SqliteTaskStore, task_factory) -> None:
    late = await task_factory(title="Late", due_in=timedelta(days=9))
    soon = await task_factory(title="Soon", due_in=timedelta(hours=1))
    middle = await task_factory(title="Middle", due_in=timedelta(days=2))

    assert [t.id for t in await task_store.list_open_tasks()] == [soon.id, middle.id, late.id]
    assert [t.id for t in await task_store.list_tasks()] == [soon.id, middle.id, late.id]


@pytest.mark.unit
async def test_filters(task_store: SqliteTaskStore, task_factory, clock) -> None:
    work = await task_factory(title="Deploy", category="work", priority=Priority.HIGH, due_in=timedelta(days=1))
    home = await task_factory(title="Groceries", category="home", priority=Priority.LOW, due_in=timedelta(days=4))

    assert [t.id for t in await task_store.list_by_priority("high")] == [work.id]
    assert [t.id for t in await task_store.list_by_category("home")] == [home.id]
    in_range = await task_store.list_by_deadline_range(clock.now, clock.now + timedelta(days=2))
    assert [t.id for t in in_range] == [work.id]


@pytest.mark.unit
async def test_search_matches_title_description_and_category(task_store: SqliteTaskStore, task_factory) -> None:
    by_title = await task_factory(title="Renew passport")
    by_description = await task_factory(title="Errand", description="bring PASSPORT photos")
    by_category = await task_factory(title="Call", category="passport-office")
    await task_factory(title="Unrelated")

    results = await task_store.search("passport")

    assert {t.id for t in results} == {by_title.id, by_description.id, by_category.id}


@pytest.mark.unit
async def test_search_treats_wildcards_literally(task_store: SqliteTaskStore, task_factory) -> None:
    percent = await task_factory(title="Raise 10% budget")
    await task_factory(title="Raise 100 budget")

    assert [t.id for t in await task_store.search("10%")] == [percent.id]
    assert await task_store.search("_x_") == []


@pytest.mark.unit
async def test_unconnected_store_raises_database_error(tmp_path: Path) -> None:
    store = SqliteTaskStore(tmp_path / "never_opened.db")

    with pytest.raises(DatabaseError, match="not connected"):
        await store.list_tasks()


@pytest.mark.unit
async def test_data_survives_reopen(tmp_path: Path, clock) -> None:
    path = tmp_path / "nested" / "tasks.db"
    async with SqliteTaskStore(path) as store:
        task_id = await store.upsert(Task(title="Persist me", deadline=clock.now))

    async with SqliteTaskStore(path) as reopened:
        assert (await reopened.require(task_id)).title == "Persist me"
