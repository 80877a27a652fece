"""Unit tests for error classification utilities."""

import pytest
from pydantic import ValidationError

from src.core.errors import (
    ConcurrentAccessError,
    DatabaseError,
    ErrorCode,
    NotFoundError,
    OperationTimeoutError,
    RemoteIdConflictError,
    TransportError,
    classify_sync_error,
)
from src.domain.task import TaskDocument


@pytest.mark.unit
class TestClassifySyncError:
    """Tests for classify_sync_error function."""

    def test_transport_error(self):
        """Test classification of a failed remote call."""
        code, reason = classify_sync_error(TransportError("Remote store returned 503"))

        assert code == ErrorCode.ERR_TRANSPORT
        assert "503" in reason

    def test_operation_timeout(self):
        code, reason = classify_sync_error(OperationTimeoutError("push exceeded 30s"))

        assert code == ErrorCode.ERR_TIMEOUT
        assert "next sync" in reason

    def test_builtin_timeout(self):
        """Test that a bare TimeoutError is classified as a timeout too."""
        code, _ = classify_sync_error(TimeoutError())

        assert code == ErrorCode.ERR_TIMEOUT

    def test_concurrent_access(self):
        code, reason = classify_sync_error(ConcurrentAccessError("task:3 is already being reconciled"))

        assert code == ErrorCode.ERR_CONCURRENT_ACCESS
        assert "task:3" in reason

    def test_not_found(self):
        code, reason = classify_sync_error(NotFoundError("Task not found: 7"))

        assert code == ErrorCode.ERR_NOT_FOUND
        assert reason == "Task no longer exists: Task not found: 7"

    def test_remote_id_conflict(self):
        code, reason = classify_sync_error(RemoteIdConflictError("Task 1 is already bound"))

        assert code == ErrorCode.ERR_REMOTE_ID_CONFLICT
        assert reason == "Task 1 is already bound"

    def test_database_error(self):
        code, _ = classify_sync_error(DatabaseError("disk full"))

        assert code == ErrorCode.ERR_DATABASE

    def test_invalid_document(self):
        with pytest.raises(ValidationError) as exc_info:
            TaskDocument.model_validate({"deadline": "soon"})

        code, reason = classify_sync_error(exc_info.value)

        assert code == ErrorCode.ERR_INVALID_DOCUMENT
        assert "invalid" in reason.lower()

    def test_unknown_error(self):
        code, reason = classify_sync_error(RuntimeError("something odd"))

        assert code == ErrorCode.ERR_UNKNOWN
        assert "something odd" in reason


@pytest.mark.unit
class TestErrorTypes:
    def test_not_found_is_a_key_error_without_quoted_message(self):
        error = NotFoundError("Task not found: 1")

        assert isinstance(error, KeyError)
        assert str(error) == "Task not found: 1"

    def test_operation_timeout_is_a_timeout_error(self):
        assert isinstance(OperationTimeoutError("slow"), TimeoutError)

