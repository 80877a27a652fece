"""Error taxonomy and classification for store, transport and reconciliation failures."""

from pydantic import ValidationError


class DeadlineTrackerError(Exception):
    """Base class for all deadline-tracker errors."""


class TransportError(DeadlineTrackerError):
    """A remote replica, asset store or notification call failed in transit."""


class NotFoundError(DeadlineTrackerError, KeyError):
    """A task id is absent from the store."""

    def __str__(self) -> str:
        # KeyError wraps its message in quotes
        return str(self.args[0]) if self.args else ""


class OperationTimeoutError(DeadlineTrackerError, TimeoutError):
    """An operation exceeded its deadline."""


class ConcurrentAccessError(DeadlineTrackerError):
    """Another reconciliation is already in flight for the same task."""


class RemoteIdConflictError(DeadlineTrackerError):
    """An attempt was made to change a task's already-assigned remote id."""


class DatabaseError(DeadlineTrackerError):
    """The local store failed for a reason other than a missing record."""


class ErrorCode:
    """Error codes carried on failed or skipped sync outcomes."""

    ERR_TRANSPORT = "ERR_TRANSPORT"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_TIMEOUT = "ERR_TIMEOUT"
    ERR_CONCURRENT_ACCESS = "ERR_CONCURRENT_ACCESS"
    ERR_REMOTE_ID_CONFLICT = "ERR_REMOTE_ID_CONFLICT"
    ERR_INVALID_DOCUMENT = "ERR_INVALID_DOCUMENT"
    ERR_DATABASE = "ERR_DATABASE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


def classify_sync_error(exception: BaseException) -> tuple[str, str]:
    """Classify a reconciliation failure into an error code and a user-facing reason.

    Args:
        exception: The exception raised while reconciling a task

    Returns:
        Tuple of (error_code, reason)
    """
    detail = str(exception)

    if isinstance(exception, ConcurrentAccessError):
        return ErrorCode.ERR_CONCURRENT_ACCESS, f"Another sync is already running for this task: {detail}"

    if isinstance(exception, TimeoutError):
        return ErrorCode.ERR_TIMEOUT, "Sync timed out. It will be retried on the next sync."

    if isinstance(exception, TransportError):
        return ErrorCode.ERR_TRANSPORT, f"Cloud sync failed: {detail}"

    if isinstance(exception, NotFoundError):
        return ErrorCode.ERR_NOT_FOUND, f"Task no longer exists: {detail}"

    if isinstance(exception, RemoteIdConflictError):
        return ErrorCode.ERR_REMOTE_ID_CONFLICT, detail

    if isinstance(exception, DatabaseError):
        return ErrorCode.ERR_DATABASE, f"Local storage failed: {detail}"

    if isinstance(exception, ValidationError):
        return ErrorCode.ERR_INVALID_DOCUMENT, f"Remote task document is invalid: {detail}"

    return ErrorCode.ERR_UNKNOWN, f"An unexpected error occurred: {detail}"
