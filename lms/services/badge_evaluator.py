"""Automatic badge awards gated on completed courses."""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import UUID

from lms.core.clock import now_ts
from lms.core.metrics import BADGES_AWARDED, CONCURRENCY_CONFLICTS
from lms.models.credential import Badge, UserBadge
from lms.repos.base import DuplicateKeyError
from lms.repos.store import Store
from lms.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class BadgeEligibilityEvaluator:
    def __init__(self, store: Store, *, clock: Callable[[], int] = now_ts) -> None:
        self._store = store
        self._clock = clock

    async def create_badge(
        self,
        name: str,
        required_course_ids: list[UUID] | tuple[UUID, ...] = (),
        description: str = "",
    ) -> Badge:
        if not name.strip():
            raise ValidationError("badge name must be non-empty")
        for course_id in required_course_ids:
            if await self._store.courses.get_course(course_id) is None:
                raise NotFoundError("course", course_id)
        badge = Badge.new(
            name=name.strip(),
            required_course_ids=tuple(dict.fromkeys(required_course_ids)),
            description=description,
        )
        await self._store.credentials.add_badge(badge)
        logger.info("Badge created id=%s name=%s", badge.id, badge.name)
        return badge

    async def check_eligibility(self, user_id: UUID, badge_id: UUID) -> bool:
        badge = await self._store.credentials.get_badge(badge_id)
        if badge is None:
            raise NotFoundError("badge", badge_id)
        return await self._eligible(user_id, badge)

    async def award_if_eligible(
        self,
        user_id: UUID,
        badge_id: UUID,
        course_version_id: UUID | None = None,
    ) -> UserBadge | None:
        """Award the badge when eligible; None when not eligible or already held."""
        badge = await self._store.credentials.get_badge(badge_id)
        if badge is None:
            raise NotFoundError("badge", badge_id)

        async with self._store.lock(f"badge:{user_id}:{badge_id}"):
            if not await self._eligible(user_id, badge):
                return None
            user_badge = UserBadge.new(
                user_id=user_id,
                badge_id=badge_id,
                awarded_at=self._clock(),
                course_version_id=course_version_id,
            )
            try:
                await self._store.credentials.add_user_badge(user_badge)
            except DuplicateKeyError:
                CONCURRENCY_CONFLICTS.labels(operation="badge").inc()
                logger.warning(
                    "Badge already awarded by a concurrent request user=%s badge=%s",
                    user_id,
                    badge_id,
                )
                return None

        BADGES_AWARDED.inc()
        logger.info("Badge awarded user=%s badge=%s", user_id, badge.name)
        return user_badge

    async def evaluate_for_course(
        self, user_id: UUID, course_id: UUID, course_version_id: UUID | None = None
    ) -> list[UserBadge]:
        """Award every eligible badge that requires the course.

        Each award runs in its own savepoint; a failing badge is logged and
        skipped so it cannot undo the completion that triggered it.
        """
        awarded: list[UserBadge] = []
        for badge in await self._store.credentials.list_badges_requiring(course_id):
            try:
                async with self._store.transaction():
                    user_badge = await self.award_if_eligible(
                        user_id, badge.id, course_version_id
                    )
            except Exception:
                logger.exception(
                    "Badge evaluation failed user=%s badge=%s", user_id, badge.id
                )
                continue
            if user_badge is not None:
                awarded.append(user_badge)
        return awarded

    async def list_user_badges(self, user_id: UUID) -> list[UserBadge]:
        return await self._store.credentials.list_user_badges(user_id)

    async def _eligible(self, user_id: UUID, badge: Badge) -> bool:
        if not badge.required_course_ids:
            return False
        if await self._store.credentials.get_user_badge(user_id, badge.id) is not None:
            return False
        completed = await self._store.enrollments.completed_course_ids(user_id)
        return all(course_id in completed for course_id in badge.required_course_ids)
