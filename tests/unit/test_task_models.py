"""Tests for task domain models."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from src.domain.task import Priority, Task, TaskDocument, from_epoch_millis, to_epoch_millis
from src.domain.update_models import TaskUpdate


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [("HIGH", Priority.HIGH), ("low", Priority.LOW), (" medium ", Priority.MEDIUM), ("urgent", Priority.MEDIUM)],
)
def test_priority_parsing_falls_back_to_medium(raw: str, expected: Priority) -> None:
    assert Priority.from_value(raw) == expected


@pytest.mark.unit
def test_task_normalizes_instants_to_utc() -> None:
    local = datetime(2026, 3, 1, 17, 0, tzinfo=timezone(timedelta(hours=5)))

    task = Task(title="Call", deadline=local, created_at=datetime(2026, 3, 1, 9, 0))

    assert task.deadline == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    assert task.deadline.tzinfo == UTC
    assert task.created_at.tzinfo == UTC


@pytest.mark.unit
def test_document_uses_remote_field_names() -> None:
    deadline = datetime(2026, 4, 15, 9, 30, tzinfo=UTC)
    task = Task(id=3, remote_id="-abc", title="Taxes", deadline=deadline, image_url="https://img/1")
    stamped = deadline - timedelta(days=1)

    payload = TaskDocument.from_task(task, updated_at=stamped, user_id="user-1").to_payload()

    assert payload["deadline"] == to_epoch_millis(deadline)
    assert payload["updatedAt"] == to_epoch_millis(stamped)
    assert payload["imageUrl"] == "https://img/1"
    assert payload["userId"] == "user-1"
    assert "id" not in payload
    assert "remote_id" not in payload


@pytest.mark.unit
def test_document_to_task_carries_ids() -> None:
    document = TaskDocument.model_validate(
        {
            "title": "Taxes",
            "deadline": 1_776_245_400_000,
            "priority": "bogus",
            "isCompleted": True,
            "imageUrl": "",
            "createdAt": 1_776_000_000_000,
            "updatedAt": 1_776_100_000_000,
            "extraField": "ignored",
        }
    )

    task = document.to_task(remote_id="-abc", local_id=9)

    assert task.id == 9
    assert task.remote_id == "-abc"
    assert task.priority == Priority.MEDIUM
    assert task.is_completed is True
    assert task.image_url is None
    assert task.deadline == from_epoch_millis(1_776_245_400_000)


@pytest.mark.unit
def test_task_update_reports_only_set_fields() -> None:
    update = TaskUpdate(title="New", priority="high")

    assert update.changes() == {"title": "New", "priority": Priority.HIGH}
    assert TaskUpdate().changes() == {}
