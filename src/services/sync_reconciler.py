"""Local/remote task reconciliation.

Conflict policy is last-writer-wins by direction: a push overwrites the remote
document with the local record and a pull overwrites the local record with the
remote document. There is no field-level merge, so an edit made locally and
not yet pushed is lost if a pull runs first. This is a known limitation.

Every operation reports one SyncOutcome per task and never raises to the
caller. At most one operation touches a given task at a time; a second one is
reported as SKIPPED rather than waiting.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import TypeVar

from pydantic import ValidationError

from src.core.config import Constants, settings
from src.core.errors import (
    ConcurrentAccessError,
    ErrorCode,
    NotFoundError,
    OperationTimeoutError,
    classify_sync_error,
)
from src.core.logging import log_with_task_context, span
from src.core.ports import AssetStore, RemoteReplica, TaskStore
from src.domain.task import Task, TaskDocument, utc_now
from src.models.service_models import SyncOutcome


logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightRegistry:
    """Non-blocking per-key exclusion for reconciliation operations."""

    def __init__(self) -> None:
        self._held: set[str] = set()

    def is_held(self, key: str) -> bool:
        return key in self._held

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Claim ``key`` for the duration of the block.

        Raises:
            ConcurrentAccessError: If the key is already claimed
        """
        # No await between the check and the add, so this is atomic on the event loop
        if key in self._held:
            msg = f"{key} is already being reconciled"
            raise ConcurrentAccessError(msg)
        self._held.add(key)
        try:
            yield
        finally:
            self._held.discard(key)


def task_key(task_id: int) -> str:
    return f"task:{task_id}"


def remote_key(remote_id: str) -> str:
    return f"remote:{remote_id}"


def _outcome_from_error(
    exception: BaseException, *, task_id: int | None = None, remote_id: str | None = None
) -> SyncOutcome:
    error_code, reason = classify_sync_error(exception)
    if isinstance(exception, ConcurrentAccessError):
        return SyncOutcome.skipped(reason=reason, error_code=error_code, task_id=task_id, remote_id=remote_id)
    return SyncOutcome.failed(reason=reason, error_code=error_code, task_id=task_id, remote_id=remote_id)


class SyncReconciler:
    """Merges the local task store with the remote replica and manages image assets."""

    def __init__(
        self,
        *,
        store: TaskStore,
        replica: RemoteReplica,
        assets: AssetStore,
        timeout_seconds: float | None = None,
        user_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._replica = replica
        self._assets = assets
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.sync_timeout_seconds
        self._user_id = user_id if user_id is not None else settings.remote_user_id
        self._clock = clock
        self._in_flight = InFlightRegistry()
        # Remote ids deleted from here; a listing taken before the delete must not re-insert them
        self._deleted_remote_ids: set[str] = set()

    @property
    def in_flight(self) -> InFlightRegistry:
        return self._in_flight

    async def _bounded(self, operation: str, coro: Awaitable[T], *, task_id: int | None = None) -> T:
        try:
            async with asyncio.timeout(self._timeout):
                return await coro
        except TimeoutError as e:
            log_with_task_context(
                logger, "warning", f"{operation} timed out", task_id=task_id, timeout=self._timeout
            )
            msg = f"{operation} exceeded {self._timeout}s"
            raise OperationTimeoutError(msg) from e

    # ==================== PUSH ====================

    async def push_task(self, task: Task) -> SyncOutcome:
        """Write the local record to the remote replica (local wins).

        A task without a remote id gets a fresh one; the id is stored locally
        only after the remote write succeeded, so a failed push leaves no
        partial assignment behind.
        """
        if task.id is None:
            return SyncOutcome.failed(
                reason="Task has not been saved locally yet",
                error_code=ErrorCode.ERR_NOT_FOUND,
                remote_id=task.remote_id,
            )

        with span("sync_reconciler.push_task"):
            try:
                with self._in_flight.hold(task_key(task.id)):
                    return await self._bounded("push", self._push(task.id), task_id=task.id)
            except Exception as e:
                log_with_task_context(logger, "error", "Push failed", task_id=task.id, error=str(e))
                return _outcome_from_error(e, task_id=task.id, remote_id=task.remote_id)

    async def _push(self, task_id: int) -> SyncOutcome:
        current = await self._store.get(task_id)
        if current is None:
            msg = f"Task not found: {task_id}"
            raise NotFoundError(msg)

        pushed_at = self._clock()
        document = TaskDocument.from_task(current, updated_at=pushed_at, user_id=self._user_id)

        if current.remote_id:
            await self._replica.put(current.remote_id, document)
            await self._store.mark_synced(task_id, remote_id=current.remote_id, updated_at=pushed_at)
            log_with_task_context(logger, "info", "Task synced", task_id=task_id, remote_id=current.remote_id)
            return SyncOutcome.synced(remote_id=current.remote_id, task_id=task_id)

        remote_id = await self._replica.allocate_id()
        # Held until the id is stored locally so a concurrent pull cannot insert a duplicate
        with self._in_flight.hold(remote_key(remote_id)):
            await self._replica.put(remote_id, document)
            await self._store.mark_synced(task_id, remote_id=remote_id, updated_at=pushed_at)

        log_with_task_context(logger, "info", "Task synced with new remote id", task_id=task_id, remote_id=remote_id)
        return SyncOutcome.synced(remote_id=remote_id, task_id=task_id)

    async def push_all(self) -> list[SyncOutcome]:
        """Push every local task; one task's failure never hides another's outcome."""
        with span("sync_reconciler.push_all"):
            try:
                tasks = await self._store.list_tasks()
            except Exception as e:
                logger.error("Full push aborted: failed to read tasks", extra={"error": str(e)})
                return [_outcome_from_error(e)]

            outcomes = list(await asyncio.gather(*(self.push_task(task) for task in tasks)))
            logger.info(
                "Synced %d of %d tasks to remote",
                sum(1 for outcome in outcomes if outcome.ok),
                len(outcomes),
            )
            return outcomes

    # ==================== PULL ====================

    async def pull_all(self) -> list[SyncOutcome]:
        """Upsert every remote document into the local store (remote wins).

        Documents are joined to local tasks by remote id, so pulling a
        document that was pushed from here updates the existing record instead
        of creating a duplicate. If the remote listing itself fails, a single
        FAILED outcome without ids is returned.
        """
        with span("sync_reconciler.pull_all"):
            try:
                documents = await self._bounded("pull", self._replica.get_all())
            except Exception as e:
                logger.error("Pull failed: could not list remote documents", extra={"error": str(e)})
                return [_outcome_from_error(e)]

            self._deleted_remote_ids &= {remote_id for remote_id, _ in documents}
            outcomes = list(
                await asyncio.gather(*(self._pull_one(remote_id, payload) for remote_id, payload in documents))
            )
            logger.info(
                "Loaded %d of %d tasks from remote",
                sum(1 for outcome in outcomes if outcome.ok),
                len(outcomes),
            )
            return outcomes

    async def _pull_one(self, remote_id: str, payload: object) -> SyncOutcome:
        if remote_id in self._deleted_remote_ids:
            return SyncOutcome.skipped(reason="Task was deleted locally", remote_id=remote_id)

        try:
            document = TaskDocument.model_validate(payload)
        except ValidationError as e:
            logger.warning("Skipping invalid remote document", extra={"remote_id": remote_id, "error": str(e)})
            return _outcome_from_error(e, remote_id=remote_id)

        try:
            with self._in_flight.hold(remote_key(remote_id)):
                return await self._bounded("pull", self._upsert_from_remote(remote_id, document))
        except Exception as e:
            logger.error("Pull failed for remote document", extra={"remote_id": remote_id, "error": str(e)})
            return _outcome_from_error(e, remote_id=remote_id)

    async def _upsert_from_remote(self, remote_id: str, document: TaskDocument) -> SyncOutcome:
        existing = await self._store.get_by_remote_id(remote_id)

        with ExitStack() as stack:
            if existing is not None:
                stack.enter_context(self._in_flight.hold(task_key(existing.id)))

            incoming = document.to_task(remote_id=remote_id, local_id=existing.id if existing else None)
            task_id = await self._store.upsert(incoming)

        log_with_task_context(
            logger,
            "info",
            "Task updated from remote" if existing else "Task inserted from remote",
            task_id=task_id,
            remote_id=remote_id,
        )
        return SyncOutcome.synced(remote_id=remote_id, task_id=task_id)

    # ==================== DELETE ====================

    async def delete_task(self, task_id: int) -> SyncOutcome:
        """Delete a task locally, then remove its remote document and image.

        The task and its remote id are both claimed before the local row goes,
        so an overlapping pull either finishes first or is skipped. When the
        claim fails the row is left in place and SKIPPED is returned.
        """
        with span("sync_reconciler.delete_task"):
            try:
                with ExitStack() as stack:
                    stack.enter_context(self._in_flight.hold(task_key(task_id)))
                    task = await self._store.get(task_id)
                    if task is None:
                        msg = f"Task not found: {task_id}"
                        raise NotFoundError(msg)
                    if task.remote_id:
                        stack.enter_context(self._in_flight.hold(remote_key(task.remote_id)))

                    await self._store.delete(task_id)
                    log_with_task_context(logger, "info", "Task deleted locally", task_id=task_id)
                    return await self._delete_cascade(task)
            except Exception as e:
                log_with_task_context(logger, "error", "Delete failed", task_id=task_id, error=str(e))
                return _outcome_from_error(e, task_id=task_id)

    async def delete_remote(self, task: Task) -> SyncOutcome:
        """Remove an already-deleted task's remote document and, best-effort, its image.

        The asset delete runs whatever the remote outcome was. Its failure is
        logged and added to ``warnings``; it never changes the outcome status.
        """
        with span("sync_reconciler.delete_remote"):
            try:
                with ExitStack() as stack:
                    if task.id is not None:
                        stack.enter_context(self._in_flight.hold(task_key(task.id)))
                    if task.remote_id:
                        stack.enter_context(self._in_flight.hold(remote_key(task.remote_id)))
                    return await self._delete_cascade(task)
            except ConcurrentAccessError as e:
                return _outcome_from_error(e, task_id=task.id, remote_id=task.remote_id)

    async def _delete_cascade(self, task: Task) -> SyncOutcome:
        if task.remote_id:
            self._deleted_remote_ids.add(task.remote_id)
        outcome = await self._delete_document(task)
        if task.image_url:
            warning = await self._delete_asset_quietly(task.image_url, task_id=task.id)
            if warning:
                outcome.warnings.append(warning)
        return outcome

    async def _delete_document(self, task: Task) -> SyncOutcome:
        if not task.remote_id:
            return SyncOutcome.skipped(reason="Task was never synced", task_id=task.id)

        try:
            await self._bounded("delete", self._replica.delete(task.remote_id), task_id=task.id)
        except Exception as e:
            log_with_task_context(logger, "error", "Remote delete failed", task_id=task.id, error=str(e))
            return _outcome_from_error(e, task_id=task.id, remote_id=task.remote_id)

        log_with_task_context(logger, "info", "Task deleted from remote", task_id=task.id, remote_id=task.remote_id)
        return SyncOutcome.synced(remote_id=task.remote_id, task_id=task.id)

    async def _delete_asset_quietly(self, locator: str, *, task_id: int | None) -> str | None:
        """Delete an asset without retrying; returns a warning message on failure."""
        try:
            await self._bounded("asset delete", self._assets.delete(locator), task_id=task_id)
        except Exception as e:
            log_with_task_context(logger, "warning", "Asset delete failed", task_id=task_id, locator=locator)
            return f"Image could not be deleted ({locator}): {e}"
        return None

    # ==================== ASSETS ====================

    async def attach_image(self, task_id: int, data: bytes, filename: str) -> SyncOutcome:
        """Upload an image, bind it to the task, release the replaced one, then push."""
        with span("sync_reconciler.attach_image"):
            try:
                with self._in_flight.hold(task_key(task_id)):
                    updated, replaced = await self._attach(task_id, data, filename)
            except Exception as e:
                log_with_task_context(logger, "error", "Image attach failed", task_id=task_id, error=str(e))
                return _outcome_from_error(e, task_id=task_id)

            outcome = await self.push_task(updated)
            if replaced and replaced != updated.image_url:
                warning = await self._delete_asset_quietly(replaced, task_id=task_id)
                if warning:
                    outcome.warnings.append(warning)
            return outcome

    async def _attach(self, task_id: int, data: bytes, filename: str) -> tuple[Task, str | None]:
        current = await self._store.get(task_id)
        if current is None:
            msg = f"Task not found: {task_id}"
            raise NotFoundError(msg)

        key_hint = f"{Constants.ASSET_PATH_PREFIX}/{task_id}/{int(time.time() * 1000)}-{filename}"
        locator = await self._bounded("upload", self._assets.upload(data, key_hint), task_id=task_id)

        updated = current.model_copy(update={"image_url": locator, "updated_at": self._clock()})
        try:
            await self._store.upsert(updated)
        except Exception:
            # Nothing references the new upload yet
            await self._delete_asset_quietly(locator, task_id=task_id)
            raise
        log_with_task_context(logger, "info", "Image attached", task_id=task_id, locator=locator)
        return updated, current.image_url
