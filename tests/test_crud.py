import asyncio

import pytest

from task_api import crud
from task_api.errors import DuplicateKeyError, TaskValidationError
from task_api.utils import compute_title_hash


async def test_create_assigns_id_hash_and_timestamps(session):
    task = await crud.create_task(session, {"title": "  Buy groceries  ", "description": " milk "})

    assert task.id
    assert task.title == "Buy groceries"
    assert task.description == "milk"
    assert task.completed is False
    assert task.title_hash == compute_title_hash("Buy groceries")
    assert task.created_at == task.updated_at


async def test_create_ignores_unknown_and_protected_fields(session):
    task = await crud.create_task(
        session,
        {"title": "Walk the dog", "title_hash": "bogus", "id": "fixed", "extra": 1},
    )
    assert task.id != "fixed"
    assert task.title_hash == compute_title_hash("Walk the dog")


async def test_create_rejects_invalid_fields_with_all_messages(session):
    with pytest.raises(TaskValidationError) as exc_info:
        await crud.create_task(session, {"title": "ab", "description": "x" * 501})

    assert exc_info.value.messages == [
        "Title needs to be at least 5 characters",
        "Description cannot exceed 500 characters",
    ]
    assert await crud.count_tasks(session) == 0


async def test_unique_index_rejects_duplicate_insert(session):
    await crud.create_task(session, {"title": "Pay rent"})

    with pytest.raises(DuplicateKeyError):
        await crud.create_task(session, {"title": "  Pay rent "})

    assert await crud.count_tasks(session) == 1


async def test_get_tasks_newest_first(session):
    assert await crud.get_tasks(session) == []

    for title in ("First task", "Second task", "Third task"):
        await crud.create_task(session, {"title": title})
        await asyncio.sleep(0.01)

    tasks = await crud.get_tasks(session)
    assert [t.title for t in tasks] == ["Third task", "Second task", "First task"]


async def test_get_task_handles_missing_and_malformed_ids(session):
    task = await crud.create_task(session, {"title": "Read a book"})

    assert (await crud.get_task(session, task.id)).title == "Read a book"
    assert await crud.get_task(session, "not-a-valid-id") is None
    assert await crud.get_task(session, "0f8fad5b-d9cb-469f-a165-70867728950e") is None


async def test_get_task_by_hash_with_exclusion(session):
    task = await crud.create_task(session, {"title": "Clean kitchen"})
    title_hash = compute_title_hash("Clean kitchen")

    assert (await crud.get_task_by_hash(session, title_hash)).id == task.id
    assert await crud.get_task_by_hash(session, title_hash, exclude_id=task.id) is None
    assert await crud.get_task_by_hash(session, compute_title_hash("Other title")) is None


async def test_update_recomputes_hash_and_refreshes_updated_at(session):
    task = await crud.create_task(session, {"title": "Old title"})
    created_at = task.created_at
    await asyncio.sleep(0.01)

    updated = await crud.update_task(session, task, {"title": " New title ", "completed": True})

    assert updated.title == "New title"
    assert updated.completed is True
    assert updated.title_hash == compute_title_hash("New title")
    assert updated.created_at == created_at
    assert updated.updated_at > created_at


async def test_update_without_title_keeps_hash(session):
    task = await crud.create_task(session, {"title": "Water plants"})
    original_hash = task.title_hash

    updated = await crud.update_task(session, task, {"description": "balcony too"})

    assert updated.title_hash == original_hash
    assert updated.description == "balcony too"


async def test_update_validates_merged_task(session):
    task = await crud.create_task(session, {"title": "Call the bank"})

    with pytest.raises(TaskValidationError) as exc_info:
        await crud.update_task(session, task, {"title": "abc"})
    assert exc_info.value.messages == ["Title needs to be at least 5 characters"]

    with pytest.raises(TaskValidationError):
        await crud.update_task(session, task, {"completed": None})


async def test_update_into_existing_title_hits_unique_index(session):
    await crud.create_task(session, {"title": "Taken title"})
    other = await crud.create_task(session, {"title": "Free title"})
    other_id = other.id

    with pytest.raises(DuplicateKeyError):
        await crud.update_task(session, other, {"title": "Taken title"})

    # The rejected change is gone and the instance is still readable
    assert other.id == other_id
    assert other.title == "Free title"
    assert other.title_hash == compute_title_hash("Free title")

    refreshed = await crud.get_task(session, other_id)
    assert refreshed.title == "Free title"


async def test_delete_is_hard(session):
    task = await crud.create_task(session, {"title": "Temporary task"})

    await crud.delete_task(session, task)

    assert await crud.get_task(session, task.id) is None
    assert await crud.count_tasks(session) == 0
    # The title can be used again once the holder is gone
    await crud.create_task(session, {"title": "Temporary task"})


async def test_get_task_accepts_uppercase_id(session):
    task = await crud.create_task(session, {"title": "Sort the mail"})

    found = await crud.get_task(session, task.id.upper())

    assert found is not None
    assert found.id == task.id
