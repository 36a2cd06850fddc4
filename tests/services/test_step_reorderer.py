from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

import pytest

from lms.repos.base import DuplicateKeyError
from lms.services.errors import NotFoundError, RejectedIncompleteReorderError
from lms.services.step_reorderer import TEMP_ORDER_BASE, two_phase_renumber
from lms.services.wiring import LearningServices
from tests.conftest import build_path


def test_two_phase_renumber_parks_then_assigns() -> None:
    orders = {"a": 1, "b": 2, "c": 3}
    seen: list[tuple[str, int]] = []

    async def assign(key: str, order: int) -> None:
        taken = {v for k, v in orders.items() if k != key}
        assert order not in taken, f"{key} collides at {order}"
        orders[key] = order
        seen.append((key, order))

    asyncio.run(two_phase_renumber(["c", "a", "b"], assign))

    assert orders == {"c": 1, "a": 2, "b": 3}
    assert seen[:3] == [
        ("c", TEMP_ORDER_BASE),
        ("a", TEMP_ORDER_BASE + 1),
        ("b", TEMP_ORDER_BASE + 2),
    ]


def test_reorder_full_set(services: LearningServices) -> None:
    async def scenario():
        path, (s1, s2, s3) = await build_path(services)
        result = await services.paths.reorder_steps(path.id, [s3.id, s1.id, s2.id])
        listed = await services.paths.list_steps(path.id)
        return result, listed, (s1, s2, s3)

    result, listed, (s1, s2, s3) = asyncio.run(scenario())
    expected = [(s3.id, 1), (s1.id, 2), (s2.id, 3)]
    assert [(s.id, s.step_order) for s in result] == expected
    assert [(s.id, s.step_order) for s in listed] == expected


def test_reorder_subset_is_rejected(services: LearningServices) -> None:
    async def scenario():
        path, (s1, s2, s3) = await build_path(services)
        with pytest.raises(RejectedIncompleteReorderError) as exc_info:
            await services.paths.reorder_steps(path.id, [s3.id, s1.id])
        return exc_info.value, s2, await services.paths.list_steps(path.id)

    error, s2, listed = asyncio.run(scenario())
    assert error.details["missing"] == [str(s2.id)]
    assert error.details["unknown"] == []
    assert [s.title for s in listed] == ["S1", "S2", "S3"]


def test_reorder_with_unknown_id_is_rejected(services: LearningServices) -> None:
    stranger = uuid4()

    async def scenario():
        path, (s1, s2, s3) = await build_path(services)
        await services.paths.reorder_steps(path.id, [s1.id, s2.id, s3.id, stranger])

    with pytest.raises(RejectedIncompleteReorderError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.details["unknown"] == [str(stranger)]


def test_reorder_with_duplicate_id_is_rejected(services: LearningServices) -> None:
    async def scenario():
        path, (s1, s2, s3) = await build_path(services)
        await services.paths.reorder_steps(path.id, [s1.id, s1.id, s2.id, s3.id])

    with pytest.raises(RejectedIncompleteReorderError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.details["duplicates"] == 1


def test_reorder_ignores_removed_steps(services: LearningServices) -> None:
    async def scenario():
        path, (s1, s2, s3) = await build_path(services)
        await services.paths.remove_step(path.id, s1.id)
        return await services.paths.reorder_steps(path.id, [s3.id, s2.id])

    result = asyncio.run(scenario())
    assert [(s.title, s.step_order) for s in result] == [("S3", 1), ("S2", 2)]


def test_reorder_unknown_path(services: LearningServices) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(services.paths.reorder_steps(uuid4(), []))


def test_single_pass_swap_would_collide(services: LearningServices) -> None:
    """The unique (path, order) index rejects a naive in-place swap."""

    async def scenario():
        _, (s1, _, _) = await build_path(services)
        await services.store.paths.update_step(replace(s1, step_order=2))

    with pytest.raises(DuplicateKeyError):
        asyncio.run(scenario())


def test_concurrent_readers_never_see_intermediate_orders(
    services: LearningServices, monkeypatch
) -> None:
    repo = services.store.paths
    original = repo.update_step

    async def slow_update(step):
        await original(step)
        await asyncio.sleep(0)

    monkeypatch.setattr(repo, "update_step", slow_update)

    async def scenario():
        path, (s1, s2, s3) = await build_path(services, publish=False)
        orders = [[s3.id, s1.id, s2.id], [s2.id, s3.id, s1.id], [s1.id, s2.id, s3.id]]
        readers = [services.paths.list_steps(path.id) for _ in range(20)]
        writers = [services.paths.reorder_steps(path.id, ids) for ids in orders]
        return await asyncio.gather(*writers, *readers)

    results = asyncio.run(scenario())
    for listing in results:
        step_orders = [s.step_order for s in listing]
        assert step_orders == [1, 2, 3]
        assert len({s.id for s in listing}) == 3


@pytest.mark.parametrize("failing_call", [2, 5], ids=["parking", "final"])
def test_failed_reorder_leaves_orders_untouched(
    services: LearningServices, monkeypatch, failing_call: int
) -> None:
    repo = services.store.paths
    original = repo.update_step
    calls = 0

    async def flaky_update(step):
        nonlocal calls
        calls += 1
        if calls == failing_call:
            raise RuntimeError("storage went away")
        await original(step)

    async def scenario():
        path, (s1, s2, s3) = await build_path(services)
        monkeypatch.setattr(repo, "update_step", flaky_update)
        with pytest.raises(RuntimeError):
            await services.paths.reorder_steps(path.id, [s3.id, s1.id, s2.id])
        monkeypatch.setattr(repo, "update_step", original)
        return await services.paths.list_steps(path.id)

    listed = asyncio.run(scenario())
    assert [(s.title, s.step_order) for s in listed] == [("S1", 1), ("S2", 2), ("S3", 3)]
