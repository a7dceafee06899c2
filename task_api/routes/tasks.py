import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..db import get_db
from ..errors import (
    ApiError,
    DuplicateKeyError,
    TaskValidationError,
    duplicate_task,
    invalid_id,
    not_found,
    server_error,
    validation_error,
)
from ..models import Task
from ..schemas import TaskCreate, TaskEnvelope, TaskListEnvelope, TaskResponse, TaskUpdate
from ..utils import clean_text, compute_title_hash, is_valid_task_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

TITLE_REQUIRED = "Title is required and cannot be empty"
TITLE_EXISTS = "Task with this title already exists"

ERROR_RESPONSES = {
    400: {"model": TaskEnvelope, "description": "VALIDATION_ERROR or INVALID_ID"},
    404: {"model": TaskEnvelope, "description": "NOT_FOUND"},
    409: {"model": TaskEnvelope, "description": "DUPLICATE_TASK"},
    500: {"model": TaskEnvelope, "description": "SERVER_ERROR"},
}


def _task_json(task: Task) -> dict:
    return TaskResponse.model_validate(task).to_json()


def _success(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


async def _load_task(db: AsyncSession, task_id: str) -> Task:
    """Resolve a path ID to a stored task or raise INVALID_ID / NOT_FOUND"""
    if not is_valid_task_id(task_id):
        raise invalid_id()
    task = await crud.get_task(db, task_id)
    if task is None:
        raise not_found()
    return task


def _unexpected(action: str, e: Exception) -> ApiError:
    logger.exception("Failed to %s: %s", action, e)
    return server_error()


@router.get(
    "",
    response_model=TaskListEnvelope,
    responses={500: ERROR_RESPONSES[500]},
)
async def get_tasks(db: AsyncSession = Depends(get_db)):
    """Get all tasks, newest first"""
    try:
        tasks = await crud.get_tasks(db)
    except Exception as e:
        raise _unexpected("list tasks", e)

    data = [_task_json(task) for task in tasks]
    return JSONResponse(status_code=200, content={"success": True, "count": len(data), "data": data})


@router.get(
    "/{task_id}",
    response_model=TaskEnvelope,
    responses={code: ERROR_RESPONSES[code] for code in (400, 404, 500)},
)
async def get_task(task_id: str, db: AsyncSession = Depends(get_db)):
    """Get a specific task by ID"""
    try:
        task = await _load_task(db, task_id)
    except ApiError:
        raise
    except Exception as e:
        raise _unexpected("fetch task", e)

    return _success(_task_json(task))


@router.post(
    "",
    status_code=201,
    response_model=TaskEnvelope,
    responses={code: ERROR_RESPONSES[code] for code in (400, 409, 500)},
)
async def create_task(task: TaskCreate, db: AsyncSession = Depends(get_db)):
    """Create a new task"""
    title = clean_text(task.title)
    if not title:
        raise validation_error([TITLE_REQUIRED])

    try:
        existing = await crud.get_task_by_hash(db, compute_title_hash(title))
        if existing is not None:
            logger.info("Rejected duplicate task title (existing %s)", existing.id)
            raise duplicate_task(TITLE_EXISTS, existing_task_id=existing.id)

        db_task = await crud.create_task(db, task.model_dump())
    except ApiError:
        raise
    except TaskValidationError as e:
        raise validation_error(e.messages)
    except DuplicateKeyError:
        logger.info("Unique index rejected duplicate task title on insert")
        raise duplicate_task("Duplicate task detected")
    except Exception as e:
        raise _unexpected("create task", e)

    return _success(_task_json(db_task), status_code=201)


@router.put(
    "/{task_id}",
    response_model=TaskEnvelope,
    responses={code: ERROR_RESPONSES[code] for code in (400, 404, 409, 500)},
)
async def update_task(
    task_id: str,
    task_update: Optional[TaskUpdate] = None,
    db: AsyncSession = Depends(get_db),
):
    """Update a specific task; a missing body is an empty update"""
    changes = task_update.model_dump(exclude_unset=True) if task_update is not None else {}

    try:
        db_task = await _load_task(db, task_id)

        # Only validate the title if it is part of the update
        if "title" in changes:
            title = clean_text(changes["title"])
            if not title:
                raise validation_error([TITLE_REQUIRED])

            if title != db_task.title:
                duplicate = await crud.get_task_by_hash(
                    db, compute_title_hash(title), exclude_id=db_task.id
                )
                if duplicate is not None:
                    logger.info("Rejected duplicate title for task %s (existing %s)", db_task.id, duplicate.id)
                    raise duplicate_task(TITLE_EXISTS, existing_task_id=duplicate.id)

        db_task = await crud.update_task(db, db_task, changes)
    except ApiError:
        raise
    except TaskValidationError as e:
        raise validation_error(e.messages)
    except DuplicateKeyError:
        logger.info("Unique index rejected duplicate title for task %s", task_id)
        raise duplicate_task(TITLE_EXISTS)
    except Exception as e:
        raise _unexpected("update task", e)

    return _success(_task_json(db_task))


@router.delete(
    "/{task_id}",
    response_model=TaskEnvelope,
    responses={code: ERROR_RESPONSES[code] for code in (400, 404, 500)},
)
async def delete_task(task_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a specific task"""
    try:
        db_task = await _load_task(db, task_id)
        await crud.delete_task(db, db_task)
    except ApiError:
        raise
    except Exception as e:
        raise _unexpected("delete task", e)

    return _success({})
