"""Reordering under a per-path unique (path_id, step_order) constraint.

Rewriting positions one row at a time collides mid-way (swapping 1 and 2
briefly puts two steps at the same order), so every renumbering moves the
rows to a disjoint temporary range first and assigns the final values in
a second pass.  Both passes run in one transaction under the path lock,
which readers of the step list also take.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import replace
from typing import TypeVar
from uuid import UUID

from lms.models.learning_path import LearningPathStep
from lms.repos.store import Store
from lms.services.errors import NotFoundError, RejectedIncompleteReorderError

logger = logging.getLogger(__name__)

TEMP_ORDER_BASE = 100_000

K = TypeVar("K")


async def two_phase_renumber(
    keys: Sequence[K],
    assign: Callable[[K, int], Awaitable[None]],
    temp_base: int = TEMP_ORDER_BASE,
    start: int = 1,
) -> None:
    """Give ``keys`` the positions start..start+N-1 in sequence order.

    Phase 1 parks every key at ``temp_base + index``; phase 2 assigns the
    final values.  ``temp_base`` must lie above every position in use.
    """
    for index, key in enumerate(keys):
        await assign(key, temp_base + index)
    for index, key in enumerate(keys):
        await assign(key, start + index)


class StepReorderer:
    def __init__(self, store: Store) -> None:
        self._store = store

    def path_lock(self, path_id: UUID) -> AbstractAsyncContextManager[None]:
        return self._store.lock(f"path-steps:{path_id}")

    async def reorder(
        self, path_id: UUID, ordered_step_ids: Sequence[UUID]
    ) -> list[LearningPathStep]:
        if await self._store.paths.get_path(path_id) is None:
            raise NotFoundError("learning path", path_id)

        requested = list(ordered_step_ids)
        async with self.path_lock(path_id):
            async with self._store.transaction():
                steps = await self._store.paths.list_active_steps(path_id)
                current = {s.id for s in steps}
                wanted = set(requested)
                if len(wanted) != len(requested) or wanted != current:
                    logger.warning(
                        "Rejected reorder path=%s: %d ids given, %d active steps",
                        path_id,
                        len(requested),
                        len(current),
                    )
                    raise RejectedIncompleteReorderError(
                        "reorder must list every active step exactly once",
                        missing=sorted(str(i) for i in current - wanted),
                        unknown=sorted(str(i) for i in wanted - current),
                        duplicates=len(requested) - len(wanted),
                    )
                result = await self._renumber(steps, requested)

        logger.info("Steps reordered path=%s count=%d", path_id, len(result))
        return result

    async def compact(self, path_id: UUID) -> list[LearningPathStep]:
        """Renumber the active steps 1..N keeping their relative order.

        The caller holds the path lock and an open transaction.
        """
        steps = await self._store.paths.list_active_steps(path_id)
        return await self._renumber(steps, [s.id for s in steps])

    async def _renumber(
        self, steps: list[LearningPathStep], ordered_ids: list[UUID]
    ) -> list[LearningPathStep]:
        by_id = {s.id: s for s in steps}

        async def assign(step_id: UUID, order: int) -> None:
            updated = replace(by_id[step_id], step_order=order)
            await self._store.paths.update_step(updated)
            by_id[step_id] = updated

        await two_phase_renumber(ordered_ids, assign)
        return [by_id[i] for i in ordered_ids]
