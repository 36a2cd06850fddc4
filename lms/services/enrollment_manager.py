"""Course enrollments: creation, progress aggregation and completion.

Completing an enrollment, running the completion cascade and advancing
learning-path course steps is one atomic unit: if any part fails the
enrollment is left exactly as it was and the call can be retried.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from uuid import UUID

from lms.core.clock import now_ts, percent
from lms.core.metrics import COMPLETION_REJECTIONS, CONCURRENCY_CONFLICTS, COURSE_COMPLETIONS
from lms.models.progress import COMPLETED, EXPIRED, CourseProgress, Enrollment
from lms.repos.base import DuplicateKeyError
from lms.repos.store import Store
from lms.services.completion_cascade import CascadeResult, CompletionCascade
from lms.services.errors import (
    AlreadyEnrolledError,
    IneligibleCompletionError,
    NotFoundError,
    ValidationError,
)
from lms.services.learning_path_engine import LearningPathEngine, StepOutcome
from lms.services.ownership import owned_enrollment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    enrollment: Enrollment
    cascade: CascadeResult
    path_steps: list[StepOutcome] = field(default_factory=list)


class EnrollmentManager:
    def __init__(
        self,
        store: Store,
        cascade: CompletionCascade,
        paths: LearningPathEngine,
        *,
        clock: Callable[[], int] = now_ts,
    ) -> None:
        self._store = store
        self._cascade = cascade
        self._paths = paths
        self._clock = clock

    async def enroll(self, user_id: UUID, course_version_id: UUID) -> Enrollment:
        version = await self._store.courses.get_version(course_version_id)
        if version is None:
            raise NotFoundError("course version", course_version_id)
        if version.status != "published":
            raise ValidationError("course version is not published", status=version.status)

        async with self._store.lock(f"enroll:{user_id}:{course_version_id}"):
            existing = await self._store.enrollments.get_by_user_and_version(
                user_id, course_version_id
            )
            if existing is not None:
                logger.warning(
                    "Rejected duplicate enrollment user=%s version=%s",
                    user_id,
                    course_version_id,
                )
                raise AlreadyEnrolledError(
                    "already enrolled in this course version",
                    enrollment_id=str(existing.id),
                )
            enrollment = Enrollment.new(
                user_id=user_id,
                course_id=version.course_id,
                course_version_id=course_version_id,
                enrolled_at=self._clock(),
            )
            try:
                await self._store.enrollments.add(enrollment)
            except DuplicateKeyError as exc:
                CONCURRENCY_CONFLICTS.labels(operation="enroll").inc()
                raise AlreadyEnrolledError("already enrolled in this course version") from exc

        logger.info(
            "Enrolled user=%s course=%s version=%s id=%s",
            user_id,
            version.course_id,
            course_version_id,
            enrollment.id,
        )
        return enrollment

    async def get_enrollment(self, user_id: UUID, enrollment_id: UUID) -> Enrollment:
        return await owned_enrollment(self._store, user_id, enrollment_id)

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        return await self._store.enrollments.list_for_user(user_id)

    async def compute_course_progress(
        self, user_id: UUID, enrollment_id: UUID
    ) -> CourseProgress:
        enrollment = await owned_enrollment(self._store, user_id, enrollment_id)
        summary = await self._aggregate(enrollment)

        if not enrollment.is_completed and enrollment.progress != summary.percentage:
            async with self._store.lock(f"enrollment:{enrollment_id}"):
                current = await self._store.enrollments.get(enrollment_id)
                if current is not None and not current.is_completed:
                    await self._store.enrollments.update(
                        replace(current, progress=summary.percentage)
                    )
        return summary

    async def complete_enrollment(
        self, user_id: UUID, enrollment_id: UUID, signed_by: UUID | None = None
    ) -> CompletionResult:
        await owned_enrollment(self._store, user_id, enrollment_id)
        newly_completed = False

        async with self._store.lock(f"enrollment:{enrollment_id}"):
            async with self._store.transaction():
                enrollment = await self._store.enrollments.get(enrollment_id)
                if enrollment is None:
                    raise NotFoundError("enrollment", enrollment_id)
                if enrollment.status == EXPIRED:
                    raise ValidationError("enrollment has expired", status=EXPIRED)

                if not enrollment.is_completed:
                    summary = await self._aggregate(enrollment)
                    if summary.total_lessons > 0 and summary.percentage < 100:
                        COMPLETION_REJECTIONS.labels(reason="incomplete_lessons").inc()
                        logger.warning(
                            "Rejected enrollment completion id=%s progress=%d (%d/%d)",
                            enrollment_id,
                            summary.percentage,
                            summary.completed_lessons,
                            summary.total_lessons,
                        )
                        raise IneligibleCompletionError(
                            "all lessons must be completed first",
                            current_percentage=summary.percentage,
                            reason="incomplete_lessons",
                            completed_lessons=summary.completed_lessons,
                            total_lessons=summary.total_lessons,
                        )
                    now = self._clock()
                    enrollment = replace(
                        enrollment,
                        status=COMPLETED,
                        progress=100,
                        started_at=enrollment.started_at or now,
                        completed_at=now,
                    )
                    await self._store.enrollments.update(enrollment)
                    newly_completed = True

                cascade = await self._cascade.on_course_completed(
                    enrollment, signed_by, newly_completed=newly_completed
                )
                steps = await self._paths.sync_course_completion(
                    enrollment.user_id, enrollment.course_id
                )

        if newly_completed:
            COURSE_COMPLETIONS.inc()
            logger.info(
                "Course completed enrollment=%s user=%s course=%s certificate=%s",
                enrollment_id,
                enrollment.user_id,
                enrollment.course_id,
                cascade.certificate.certificate_number,
            )
        return CompletionResult(enrollment=enrollment, cascade=cascade, path_steps=steps)

    async def _aggregate(self, enrollment: Enrollment) -> CourseProgress:
        lessons = await self._store.courses.list_lessons_for_version(
            enrollment.course_version_id
        )
        lesson_ids = {lesson.id for lesson in lessons}
        completed = sum(
            1
            for row in await self._store.enrollments.list_lesson_progress(enrollment.id)
            if row.is_completed and row.lesson_id in lesson_ids
        )
        return CourseProgress(
            enrollment_id=enrollment.id,
            total_lessons=len(lessons),
            completed_lessons=completed,
            percentage=percent(completed, len(lessons)),
        )
