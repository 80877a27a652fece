"""Task CRUD routes.

Every mutation goes through TaskService, so the response carries both the
stored task and the outcome of reconciling it with the remote replica.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from src.core.errors import ErrorCode, NotFoundError
from src.domain.create_models import TaskCreate
from src.domain.task import Task
from src.domain.update_models import TaskUpdate
from src.models.service_models import SyncOutcome
from src.services.task_service import TaskService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _tasks(request: Request) -> TaskService:
    return request.app.state.services.tasks


def _task_response(task: Task, outcome: SyncOutcome, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        content={"task": task.model_dump(mode="json"), "outcome": outcome.model_dump(mode="json")},
        status_code=status_code,
    )


def _not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("")
async def list_tasks(request: Request, query: str = "") -> JSONResponse:
    """All tasks by deadline, or those whose title, description or category match ``query``."""
    tasks = await _tasks(request).search_tasks(query)
    return JSONResponse(content={"tasks": [task.model_dump(mode="json") for task in tasks]})


@router.post("")
async def create_task(request: Request, data: TaskCreate) -> JSONResponse:
    task, outcome = await _tasks(request).create_task(data)
    return _task_response(task, outcome, status_code=status.HTTP_201_CREATED)


@router.get("/{task_id}")
async def get_task(request: Request, task_id: int) -> JSONResponse:
    try:
        task = await _tasks(request).get_task(task_id)
    except NotFoundError as e:
        raise _not_found(e) from e
    return JSONResponse(content=task.model_dump(mode="json"))


@router.patch("/{task_id}")
async def update_task(request: Request, task_id: int, changes: TaskUpdate) -> JSONResponse:
    try:
        task, outcome = await _tasks(request).update_task(task_id, changes)
    except NotFoundError as e:
        raise _not_found(e) from e
    return _task_response(task, outcome)


@router.post("/{task_id}/complete")
async def complete_task(request: Request, task_id: int, completed: bool = True) -> JSONResponse:
    """Mark a task done, or reopen it with ``?completed=false``."""
    try:
        task, outcome = await _tasks(request).set_completed(task_id, completed)
    except NotFoundError as e:
        raise _not_found(e) from e
    return _task_response(task, outcome)


@router.delete("/{task_id}")
async def delete_task(request: Request, task_id: int) -> JSONResponse:
    """Delete a task; a 409 means a sync was running and nothing was deleted."""
    try:
        outcome = await _tasks(request).delete_task(task_id)
    except NotFoundError as e:
        raise _not_found(e) from e

    in_flight = outcome.error_code == ErrorCode.ERR_CONCURRENT_ACCESS
    status_code = status.HTTP_409_CONFLICT if in_flight else status.HTTP_200_OK
    return JSONResponse(content={"outcome": outcome.model_dump(mode="json")}, status_code=status_code)


@router.post("/{task_id}/image")
async def attach_image(request: Request, task_id: int, filename: str) -> JSONResponse:
    """Upload the raw request body as the task's image, replacing any previous one."""
    data = await request.body()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image body is empty")

    outcome = await _tasks(request).attach_image(task_id, data, filename)
    logger.info("Image upload handled", extra={"task_id": task_id, "status": outcome.status})
    status_code = status.HTTP_404_NOT_FOUND if outcome.error_code == ErrorCode.ERR_NOT_FOUND else status.HTTP_200_OK
    return JSONResponse(content={"outcome": outcome.model_dump(mode="json")}, status_code=status_code)
