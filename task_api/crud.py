import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import DuplicateKeyError, TaskValidationError
from .models import Task, new_task_id, utcnow
from .utils import compute_title_hash, is_valid_task_id, normalize_task_fields, validate_task_fields

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = ("title", "description", "completed")


async def _commit(db: AsyncSession) -> None:
    """Commit, translating a unique index violation into DuplicateKeyError"""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateKeyError(str(e.orig)) from e


async def get_tasks(db: AsyncSession) -> List[Task]:
    """Get all tasks, newest first"""
    result = await db.execute(select(Task).order_by(Task.created_at.desc()))
    return list(result.scalars().all())


async def count_tasks(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Task.id)))
    return result.scalar_one()


async def get_task(db: AsyncSession, task_id: str) -> Optional[Task]:
    """Get a task by ID; malformed IDs never match"""
    if not is_valid_task_id(task_id):
        return None
    result = await db.execute(select(Task).filter(Task.id == task_id.lower()))
    return result.scalar_one_or_none()


async def get_task_by_hash(
    db: AsyncSession,
    title_hash: str,
    exclude_id: Optional[str] = None,
) -> Optional[Task]:
    """Get the task holding title_hash, optionally ignoring one task ID"""
    query = select(Task).filter(Task.title_hash == title_hash)
    if exclude_id is not None:
        query = query.filter(Task.id != exclude_id)
    result = await db.execute(query)
    return result.scalars().first()


async def create_task(db: AsyncSession, fields: Dict[str, Any]) -> Task:
    """
    Insert a new task.

    Fields are trimmed and validated, then the title hash, ID and timestamps
    are assigned before the write. Raises TaskValidationError for rule
    violations and DuplicateKeyError when the unique index rejects the hash.
    """
    data = normalize_task_fields({k: v for k, v in fields.items() if k in MUTABLE_FIELDS})
    data.setdefault("completed", False)

    errors = validate_task_fields(data)
    if errors:
        raise TaskValidationError(errors)

    now = utcnow()
    db_task = Task(
        id=new_task_id(),
        title=data["title"],
        title_hash=compute_title_hash(data["title"]),
        description=data.get("description"),
        completed=data["completed"],
        created_at=now,
        updated_at=now,
    )
    db.add(db_task)
    await _commit(db)
    await db.refresh(db_task)
    logger.info("Created task %s", db_task.id)
    return db_task


async def update_task(db: AsyncSession, db_task: Task, changes: Dict[str, Any]) -> Task:
    """
    Apply a partial update to an existing task.

    The merged task is validated as a whole; the title hash is recomputed
    only when the title actually changes. updated_at is always refreshed.
    If the unique index rejects the write the change is rolled back and
    db_task is reloaded from the database before DuplicateKeyError propagates.
    """
    update_data = normalize_task_fields({k: v for k, v in changes.items() if k in MUTABLE_FIELDS})

    merged = {
        "title": db_task.title,
        "description": db_task.description,
        "completed": db_task.completed,
    }
    merged.update(update_data)

    errors = validate_task_fields(merged)
    if errors:
        raise TaskValidationError(errors)

    if "title" in update_data and update_data["title"] != db_task.title:
        db_task.title_hash = compute_title_hash(update_data["title"])

    for field, value in update_data.items():
        setattr(db_task, field, value)
    db_task.updated_at = utcnow()

    try:
        await _commit(db)
    except DuplicateKeyError:
        await db.refresh(db_task)
        raise
    await db.refresh(db_task)
    logger.info("Updated task %s", db_task.id)
    return db_task


async def delete_task(db: AsyncSession, db_task: Task) -> None:
    """Hard-delete a task"""
    await db.delete(db_task)
    await db.commit()
    logger.info("Deleted task %s", db_task.id)
