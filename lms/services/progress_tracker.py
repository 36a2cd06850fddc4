"""Per-lesson consumption tracking.

Stored progress is a high-water mark: a learner scrubbing backwards in a
video does not lose what was already watched.  Completion is a separate,
explicit step (manual, or through a passed quiz) and is final: a completed
row is never modified again.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, replace
from uuid import UUID

from lms.core.clock import now_ts
from lms.core.config import SETTINGS, Settings
from lms.core.metrics import COMPLETION_REJECTIONS, LESSON_COMPLETIONS
from lms.models.course import Lesson
from lms.models.progress import (
    COMPLETED,
    ENROLLED,
    EXPIRED,
    IN_PROGRESS,
    METHOD_MANUAL,
    Enrollment,
    LessonProgress,
)
from lms.repos.base import DuplicateKeyError
from lms.repos.store import Store
from lms.services.errors import (
    IneligibleCompletionError,
    NotFoundError,
    ValidationError,
)
from lms.services.ownership import owned_enrollment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionClaim:
    """What the client says happened.  Only time_spent gates the decision."""

    percentage: float | None = None
    time_spent: int | None = None


def _clamp_percentage(value: float) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("percentage must be a number", field="percentage")
    if not math.isfinite(value):
        raise ValidationError("percentage must be finite", field="percentage")
    # Fractions are truncated so 89.9 never passes a 90 threshold.
    return int(max(0.0, min(100.0, float(value))))


def _ensure_open(enrollment: Enrollment) -> None:
    if enrollment.status in (COMPLETED, EXPIRED):
        raise ValidationError(
            f"enrollment is {enrollment.status}; progress can no longer change",
            status=enrollment.status,
        )


def _non_negative(name: str, value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer", field=name)
    return value


class ProgressTracker:
    def __init__(
        self,
        store: Store,
        *,
        settings: Settings = SETTINGS,
        clock: Callable[[], int] = now_ts,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock

    async def update_progress(
        self,
        user_id: UUID,
        enrollment_id: UUID,
        lesson_id: UUID,
        percentage: float,
        position: int | None = None,
        time_spent: int | None = None,
    ) -> LessonProgress:
        pct = _clamp_percentage(percentage)
        position = _non_negative("position", position)
        time_spent = _non_negative("time_spent", time_spent)

        enrollment = await owned_enrollment(self._store, user_id, enrollment_id)
        _ensure_open(enrollment)
        await self.lesson_in_enrollment(enrollment, lesson_id)

        async with self._store.lock(f"lesson-progress:{enrollment_id}:{lesson_id}"):
            async with self._store.transaction():
                now = self._clock()
                existing = await self._store.enrollments.get_lesson_progress(
                    enrollment_id, lesson_id
                )
                if existing is not None and existing.is_completed:
                    return existing
                enrollment = await self._current_enrollment(enrollment_id)
                _ensure_open(enrollment)

                base = existing or LessonProgress.new(
                    enrollment_id=enrollment_id, lesson_id=lesson_id
                )
                stored_pct = max(base.progress_percentage, pct)
                row = replace(
                    base,
                    progress_percentage=stored_pct,
                    status=IN_PROGRESS if stored_pct > 0 else base.status,
                    last_position=base.last_position if position is None else position,
                    time_spent_seconds=(
                        base.time_spent_seconds
                        if time_spent is None
                        else max(base.time_spent_seconds, time_spent)
                    ),
                    updated_at=now,
                )
                if existing is None:
                    await self._store.enrollments.add_lesson_progress(row)
                else:
                    await self._store.enrollments.update_lesson_progress(row)

                if enrollment.status == ENROLLED:
                    await self._store.enrollments.update(
                        replace(enrollment, status=IN_PROGRESS, started_at=now)
                    )
                    logger.info("Enrollment started id=%s", enrollment_id)

        logger.debug(
            "Progress enrollment=%s lesson=%s pct=%d", enrollment_id, lesson_id, stored_pct
        )
        return row

    async def complete_manually(
        self, user_id: UUID, enrollment_id: UUID, lesson_id: UUID
    ) -> LessonProgress:
        enrollment = await owned_enrollment(self._store, user_id, enrollment_id)
        _ensure_open(enrollment)
        lesson = await self.lesson_in_enrollment(enrollment, lesson_id)

        existing = await self._store.enrollments.get_lesson_progress(
            enrollment_id, lesson_id
        )
        if existing is not None and existing.is_completed:
            return existing

        if lesson.is_video:
            current = existing.progress_percentage if existing else 0
            threshold = self._settings.video_completion_threshold
            if current < threshold:
                COMPLETION_REJECTIONS.labels(reason="insufficient_progress").inc()
                logger.warning(
                    "Rejected manual completion enrollment=%s lesson=%s pct=%d < %d",
                    enrollment_id,
                    lesson_id,
                    current,
                    threshold,
                )
                raise IneligibleCompletionError(
                    f"video must be watched to at least {threshold}% before completion",
                    current_percentage=current,
                    required_percentage=threshold,
                )

        return await self.mark_completed(enrollment_id, lesson_id, METHOD_MANUAL)

    async def validate_completion_eligibility(
        self,
        user_id: UUID,
        enrollment_id: UUID,
        lesson_id: UUID,
        claim: CompletionClaim,
    ) -> LessonProgress | None:
        """Server-side anti-cheat check; returns the stored row when eligible.

        The decision uses stored progress and the lesson's known duration.
        The client's claimed percentage is logged, never trusted.
        """
        enrollment = await owned_enrollment(self._store, user_id, enrollment_id)
        lesson = await self.lesson_in_enrollment(enrollment, lesson_id)
        stored = await self._store.enrollments.get_lesson_progress(enrollment_id, lesson_id)
        current = stored.progress_percentage if stored else 0
        threshold = self._settings.video_completion_threshold

        if claim.percentage is not None and claim.percentage != current:
            logger.info(
                "Claimed percentage differs from stored enrollment=%s lesson=%s "
                "claimed=%s stored=%d",
                enrollment_id,
                lesson_id,
                claim.percentage,
                current,
            )

        if current < threshold:
            COMPLETION_REJECTIONS.labels(reason="insufficient_progress").inc()
            logger.warning(
                "Eligibility failed (progress) enrollment=%s lesson=%s pct=%d",
                enrollment_id,
                lesson_id,
                current,
            )
            raise IneligibleCompletionError(
                f"stored progress is below {threshold}%",
                current_percentage=current,
                reason="insufficient_progress",
            )

        if lesson.duration_seconds:
            required = math.ceil(self._settings.min_watch_ratio * lesson.duration_seconds)
            claimed_time = claim.time_spent or 0
            if claimed_time < required:
                COMPLETION_REJECTIONS.labels(reason="insufficient_watch_time").inc()
                logger.warning(
                    "Eligibility failed (watch time) enrollment=%s lesson=%s "
                    "time=%d required=%d",
                    enrollment_id,
                    lesson_id,
                    claimed_time,
                    required,
                )
                raise IneligibleCompletionError(
                    "time spent is too short for the lesson duration",
                    current_percentage=current,
                    reason="insufficient_watch_time",
                    time_spent=claimed_time,
                    required_time=required,
                )
        return stored

    async def mark_completed(
        self, enrollment_id: UUID, lesson_id: UUID, method: str
    ) -> LessonProgress:
        """Complete a lesson row (creating it at 100 if needed).

        No ownership or threshold checks: callers have done them.
        """
        async with self._store.lock(f"lesson-progress:{enrollment_id}:{lesson_id}"):
            async with self._store.transaction():
                existing = await self._store.enrollments.get_lesson_progress(
                    enrollment_id, lesson_id
                )
                if existing is not None and existing.is_completed:
                    return existing
                enrollment = await self._current_enrollment(enrollment_id)
                _ensure_open(enrollment)

                now = self._clock()
                base = existing or LessonProgress.new(
                    enrollment_id=enrollment_id, lesson_id=lesson_id
                )
                row = replace(
                    base,
                    status=COMPLETED,
                    progress_percentage=100,
                    completion_method=method,
                    completed_at=now,
                    updated_at=now,
                )
                try:
                    if existing is None:
                        await self._store.enrollments.add_lesson_progress(row)
                    else:
                        await self._store.enrollments.update_lesson_progress(row)
                except DuplicateKeyError:
                    # Another writer created the row first; take theirs.
                    winner = await self._store.enrollments.get_lesson_progress(
                        enrollment_id, lesson_id
                    )
                    if winner is None:
                        raise
                    return winner

                if enrollment.status == ENROLLED:
                    await self._store.enrollments.update(
                        replace(enrollment, status=IN_PROGRESS, started_at=now)
                    )

        LESSON_COMPLETIONS.labels(method=method).inc()
        logger.info(
            "Lesson completed enrollment=%s lesson=%s method=%s",
            enrollment_id,
            lesson_id,
            method,
        )
        return row

    async def _current_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self._store.enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment", enrollment_id)
        return enrollment

    async def lesson_in_enrollment(self, enrollment: Enrollment, lesson_id: UUID) -> Lesson:
        lesson = await self._store.courses.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("lesson", lesson_id)
        module = await self._store.courses.get_module(lesson.module_id)
        if module is None or module.course_version_id != enrollment.course_version_id:
            raise NotFoundError("lesson", lesson_id)
        return lesson
