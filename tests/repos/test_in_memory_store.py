from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

import pytest

from lms.models.learning_path import LearningPathEnrollment, LearningPathStep
from lms.repos.base import DuplicateKeyError
from lms.repos.store import InMemoryStore


def _step(path_id, order, title="S"):
    return LearningPathStep.new(path_id=path_id, title=title, step_order=order)


def test_rollback_undoes_writes_inside_the_block() -> None:
    store = InMemoryStore()
    path_id = uuid4()
    kept = _step(path_id, 1)

    async def scenario():
        await store.paths.add_step(kept)
        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.paths.add_step(_step(path_id, 2))
                await store.paths.update_step(replace(kept, title="renamed"))
                raise RuntimeError("boom")
        return await store.paths.list_active_steps(path_id)

    steps = asyncio.run(scenario())
    assert steps == [kept]


def test_failed_savepoint_keeps_outer_writes() -> None:
    store = InMemoryStore()
    path_id = uuid4()

    async def scenario():
        async with store.transaction():
            await store.paths.add_step(_step(path_id, 1, "outer"))
            with pytest.raises(RuntimeError):
                async with store.transaction():
                    await store.paths.add_step(_step(path_id, 2, "inner"))
                    raise RuntimeError("boom")
        return await store.paths.list_active_steps(path_id)

    steps = asyncio.run(scenario())
    assert [s.title for s in steps] == ["outer"]


def test_outer_rollback_undoes_committed_savepoint() -> None:
    store = InMemoryStore()
    path_id = uuid4()

    async def scenario():
        with pytest.raises(RuntimeError):
            async with store.transaction():
                async with store.transaction():
                    await store.paths.add_step(_step(path_id, 1))
                raise RuntimeError("boom")
        return await store.paths.list_active_steps(path_id)

    assert asyncio.run(scenario()) == []


def test_unique_index_and_partial_exemption() -> None:
    store = InMemoryStore()
    user_id, path_id = uuid4(), uuid4()

    async def scenario():
        first = LearningPathEnrollment.new(user_id=user_id, path_id=path_id, enrolled_at=1)
        await store.paths.add_enrollment(first)
        with pytest.raises(DuplicateKeyError) as exc_info:
            await store.paths.add_enrollment(
                LearningPathEnrollment.new(user_id=user_id, path_id=path_id, enrolled_at=2)
            )
        # Completed enrollments drop out of the open (user, path) index.
        await store.paths.update_enrollment(replace(first, status="completed"))
        await store.paths.add_enrollment(
            LearningPathEnrollment.new(user_id=user_id, path_id=path_id, enrolled_at=3)
        )
        return exc_info.value

    error = asyncio.run(scenario())
    assert error.constraint == "open_user_path"


def test_soft_deleted_step_frees_its_order() -> None:
    store = InMemoryStore()
    path_id = uuid4()

    async def scenario():
        old = _step(path_id, 1, "old")
        await store.paths.add_step(old)
        await store.paths.update_step(replace(old, deleted_at=10))
        await store.paths.add_step(_step(path_id, 1, "new"))
        return await store.paths.list_active_steps(path_id)

    assert [s.title for s in asyncio.run(scenario())] == ["new"]


def test_lock_is_reentrant_for_the_owning_task() -> None:
    store = InMemoryStore()

    async def scenario():
        async with store.lock("k"):
            async with store.lock("k"):
                return True

    assert asyncio.run(asyncio.wait_for(scenario(), timeout=1))


def test_lock_serialises_other_tasks() -> None:
    store = InMemoryStore()
    events: list[str] = []

    async def worker(name: str):
        async with store.lock("k"):
            events.append(f"{name}-in")
            await asyncio.sleep(0)
            events.append(f"{name}-out")

    async def scenario():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())
    assert events == ["a-in", "a-out", "b-in", "b-out"]


def test_concurrent_transactions_roll_back_independently() -> None:
    store = InMemoryStore()
    path_id = uuid4()

    async def failing():
        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.paths.add_step(_step(path_id, 1, "failing"))
                await asyncio.sleep(0)
                raise RuntimeError("boom")

    async def succeeding():
        async with store.transaction():
            await store.paths.add_step(_step(path_id, 2, "kept"))
            await asyncio.sleep(0)

    async def scenario():
        await asyncio.gather(failing(), succeeding())
        return await store.paths.list_active_steps(path_id)

    assert [s.title for s in asyncio.run(scenario())] == ["kept"]
