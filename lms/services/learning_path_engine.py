"""Learning paths: authoring, enrollment and the step/enrollment state machines.

Enrollment: active -> completed (every counted step completed or skipped),
active <-> suspended (manual), active -> failed (reserved, never automatic).

Step progress: not_started -> in_progress -> completed | failed | skipped.
Terminal step rows never change again.

Enrollment progress is always recomputed from the step rows whose step is
still active; it is never written on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from uuid import UUID

from lms.core.clock import now_ts, percent
from lms.core.metrics import COMPLETION_REJECTIONS, CONCURRENCY_CONFLICTS, PATH_COMPLETIONS
from lms.models.credential import Certificate
from lms.models.learning_path import (
    ACTIVE,
    COMPLETED,
    FAILED,
    IN_PROGRESS,
    PATH_TYPES,
    SKIPPED,
    STEP_DONE,
    STEP_TYPES,
    SUSPENDED,
    LearningPath,
    LearningPathEnrollment,
    LearningPathStep,
    LearningPathStepProgress,
)
from lms.repos.base import DuplicateKeyError
from lms.repos.store import Store
from lms.services.completion_cascade import CompletionCascade
from lms.services.errors import (
    AlreadyEnrolledError,
    CannotPublishEmptyPathError,
    IneligibleCompletionError,
    NotFoundError,
    ValidationError,
)
from lms.services.ownership import owned_path_enrollment
from lms.services.step_reorderer import StepReorderer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepOutcome:
    step_progress: LearningPathStepProgress
    enrollment: LearningPathEnrollment
    certificate: Certificate | None = None


def _check_score(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        raise ValidationError(f"{name} must be an integer between 0 and 100", field=name)


class LearningPathEngine:
    def __init__(
        self,
        store: Store,
        cascade: CompletionCascade,
        reorderer: StepReorderer,
        *,
        clock: Callable[[], int] = now_ts,
    ) -> None:
        self._store = store
        self._cascade = cascade
        self._reorderer = reorderer
        self._clock = clock

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    async def create_path(
        self,
        title: str,
        description: str = "",
        path_type: str = "linear",
        issues_certificate: bool = True,
        created_by: UUID | None = None,
    ) -> LearningPath:
        if not title.strip():
            raise ValidationError("title must be non-empty", field="title")
        if path_type not in PATH_TYPES:
            raise ValidationError(f"unknown path_type {path_type!r}", field="path_type")
        path = LearningPath.new(
            title=title.strip(),
            description=description,
            path_type=path_type,
            issues_certificate=issues_certificate,
            created_by=created_by,
        )
        await self._store.paths.add_path(path)
        logger.info("Learning path created id=%s type=%s", path.id, path_type)
        return path

    async def get_path(self, path_id: UUID) -> LearningPath:
        path = await self._store.paths.get_path(path_id)
        if path is None:
            raise NotFoundError("learning path", path_id)
        return path

    async def add_step(
        self,
        path_id: UUID,
        title: str,
        step_type: str = "course",
        is_optional: bool = False,
        resource_id: UUID | None = None,
        passing_score: int | None = None,
    ) -> LearningPathStep:
        await self.get_path(path_id)
        if not title.strip():
            raise ValidationError("title must be non-empty", field="title")
        if step_type not in STEP_TYPES:
            raise ValidationError(f"unknown step_type {step_type!r}", field="step_type")
        _check_score("passing_score", passing_score)
        if step_type == "course" and resource_id is not None:
            if await self._store.courses.get_course(resource_id) is None:
                raise NotFoundError("course", resource_id)

        async with self._reorderer.path_lock(path_id):
            async with self._store.transaction():
                steps = await self._store.paths.list_active_steps(path_id)
                step = LearningPathStep.new(
                    path_id=path_id,
                    title=title.strip(),
                    step_order=max((s.step_order for s in steps), default=0) + 1,
                    step_type=step_type,
                    is_optional=is_optional,
                    resource_id=resource_id,
                    passing_score=passing_score,
                )
                await self._store.paths.add_step(step)
        logger.info("Step added path=%s step=%s order=%d", path_id, step.id, step.step_order)
        return step

    async def remove_step(self, path_id: UUID, step_id: UUID) -> list[LearningPathStep]:
        """Soft-delete a step and close the gap; returns the remaining steps."""
        async with self._reorderer.path_lock(path_id):
            async with self._store.transaction():
                step = await self._store.paths.get_step(step_id)
                if step is None or step.path_id != path_id or not step.is_active:
                    raise NotFoundError("learning path step", step_id)
                await self._store.paths.update_step(replace(step, deleted_at=self._clock()))
                remaining = await self._reorderer.compact(path_id)
        logger.info("Step removed path=%s step=%s", path_id, step_id)
        return remaining

    async def list_steps(self, path_id: UUID) -> list[LearningPathStep]:
        await self.get_path(path_id)
        async with self._reorderer.path_lock(path_id):
            return await self._store.paths.list_active_steps(path_id)

    async def publish(self, path_id: UUID) -> LearningPath:
        path = await self.get_path(path_id)
        async with self._reorderer.path_lock(path_id):
            steps = await self._store.paths.list_active_steps(path_id)
            if not steps:
                logger.warning("Rejected publish of empty path=%s", path_id)
                raise CannotPublishEmptyPathError(path_id)
            published = replace(path, status="published")
            await self._store.paths.update_path(published)
        logger.info("Learning path published id=%s steps=%d", path_id, len(steps))
        return published

    async def reorder_steps(
        self, path_id: UUID, ordered_step_ids: Sequence[UUID]
    ) -> list[LearningPathStep]:
        return await self._reorderer.reorder(path_id, ordered_step_ids)

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    async def enroll_user(self, user_id: UUID, path_id: UUID) -> LearningPathEnrollment:
        path = await self.get_path(path_id)
        if path.status != "published":
            raise ValidationError("learning path is not published", status=path.status)

        async with self._store.lock(f"path-enroll:{user_id}:{path_id}"):
            async with self._store.transaction():
                if await self._store.paths.get_open_enrollment(user_id, path_id) is not None:
                    logger.warning(
                        "Rejected duplicate path enrollment user=%s path=%s", user_id, path_id
                    )
                    raise AlreadyEnrolledError(
                        "already enrolled in this learning path", path_id=str(path_id)
                    )
                enrollment = LearningPathEnrollment.new(
                    user_id=user_id, path_id=path_id, enrolled_at=self._clock()
                )
                try:
                    await self._store.paths.add_enrollment(enrollment)
                except DuplicateKeyError as exc:
                    CONCURRENCY_CONFLICTS.labels(operation="path_enroll").inc()
                    raise AlreadyEnrolledError(
                        "already enrolled in this learning path", path_id=str(path_id)
                    ) from exc

                async with self._reorderer.path_lock(path_id):
                    steps = await self._store.paths.list_active_steps(path_id)
                for step in steps:
                    await self._store.paths.add_step_progress(
                        LearningPathStepProgress.new(
                            path_enrollment_id=enrollment.id, step_id=step.id
                        )
                    )

        logger.info(
            "Path enrollment created id=%s user=%s path=%s steps=%d",
            enrollment.id,
            user_id,
            path_id,
            len(steps),
        )
        return enrollment

    async def get_enrollment(
        self, user_id: UUID, path_enrollment_id: UUID
    ) -> LearningPathEnrollment:
        return await owned_path_enrollment(self._store, user_id, path_enrollment_id)

    async def suspend(
        self, user_id: UUID, path_enrollment_id: UUID, reason: str | None = None
    ) -> LearningPathEnrollment:
        async with self._store.lock(f"path-enrollment:{path_enrollment_id}"):
            enrollment = await owned_path_enrollment(self._store, user_id, path_enrollment_id)
            if enrollment.status != ACTIVE:
                raise ValidationError(
                    f"cannot suspend a {enrollment.status} enrollment",
                    status=enrollment.status,
                )
            suspended = replace(
                enrollment,
                status=SUSPENDED,
                suspended_at=self._clock(),
                suspension_reason=reason,
            )
            await self._store.paths.update_enrollment(suspended)
        logger.info("Path enrollment suspended id=%s reason=%s", path_enrollment_id, reason)
        return suspended

    async def resume(self, user_id: UUID, path_enrollment_id: UUID) -> LearningPathEnrollment:
        async with self._store.lock(f"path-enrollment:{path_enrollment_id}"):
            enrollment = await owned_path_enrollment(self._store, user_id, path_enrollment_id)
            if enrollment.status != SUSPENDED:
                raise ValidationError(
                    f"cannot resume a {enrollment.status} enrollment",
                    status=enrollment.status,
                )
            resumed = replace(
                enrollment, status=ACTIVE, suspended_at=None, suspension_reason=None
            )
            await self._store.paths.update_enrollment(resumed)
        logger.info("Path enrollment resumed id=%s", path_enrollment_id)
        return resumed

    # ------------------------------------------------------------------
    # Step progress
    # ------------------------------------------------------------------

    async def update_step_progress(
        self, user_id: UUID, path_enrollment_id: UUID, step_id: UUID, progress: int
    ) -> StepOutcome:
        _check_score("progress", progress)

        async def apply(row: LearningPathStepProgress) -> LearningPathStepProgress:
            return replace(
                row,
                status=IN_PROGRESS,
                progress=progress,
                started_at=row.started_at or self._clock(),
            )

        return await self._transition(
            user_id, path_enrollment_id, step_id, apply, respect_sequence=True
        )

    async def complete_step(
        self,
        user_id: UUID,
        path_enrollment_id: UUID,
        step_id: UUID,
        score: int | None = None,
    ) -> StepOutcome:
        _check_score("score", score)

        async def apply(row: LearningPathStepProgress) -> LearningPathStepProgress:
            step = await self._store.paths.get_step(step_id)
            if (
                step is not None
                and step.passing_score is not None
                and score is not None
                and score < step.passing_score
            ):
                COMPLETION_REJECTIONS.labels(reason="below_passing_score").inc()
                logger.warning(
                    "Rejected step completion below passing score step=%s score=%d < %d",
                    step_id,
                    score,
                    step.passing_score,
                )
                raise IneligibleCompletionError(
                    "score is below the step's passing score",
                    current_percentage=score,
                    reason="below_passing_score",
                    passing_score=step.passing_score,
                )
            now = self._clock()
            return replace(
                row,
                status=COMPLETED,
                progress=100,
                score=score if score is not None else row.score,
                started_at=row.started_at or now,
                completed_at=now,
            )

        return await self._transition(
            user_id, path_enrollment_id, step_id, apply, respect_sequence=True
        )

    async def skip_step(
        self, user_id: UUID, path_enrollment_id: UUID, step_id: UUID
    ) -> StepOutcome:
        async def apply(row: LearningPathStepProgress) -> LearningPathStepProgress:
            return replace(row, status=SKIPPED, completed_at=self._clock())

        return await self._transition(
            user_id, path_enrollment_id, step_id, apply, respect_sequence=False
        )

    async def fail_step(
        self,
        user_id: UUID,
        path_enrollment_id: UUID,
        step_id: UUID,
        score: int | None = None,
    ) -> StepOutcome:
        _check_score("score", score)

        async def apply(row: LearningPathStepProgress) -> LearningPathStepProgress:
            now = self._clock()
            return replace(
                row,
                status=FAILED,
                score=score if score is not None else row.score,
                started_at=row.started_at or now,
                completed_at=now,
            )

        return await self._transition(
            user_id, path_enrollment_id, step_id, apply, respect_sequence=True
        )

    async def get_step_progress(
        self, user_id: UUID, path_enrollment_id: UUID
    ) -> list[tuple[LearningPathStep, LearningPathStepProgress]]:
        enrollment = await owned_path_enrollment(self._store, user_id, path_enrollment_id)
        steps = await self.list_steps(enrollment.path_id)
        rows = {
            r.step_id: r
            for r in await self._store.paths.list_step_progress(path_enrollment_id)
        }
        return [(s, rows[s.id]) for s in steps if s.id in rows]

    async def sync_course_completion(
        self, user_id: UUID, course_id: UUID
    ) -> list[StepOutcome]:
        """Complete open `course` steps referencing the course.

        A completed course is real evidence, so sequence locks of linear
        paths do not apply here.
        """
        outcomes: list[StepOutcome] = []
        for enrollment in await self._store.paths.list_active_enrollments(user_id):
            steps = await self._store.paths.list_active_steps(enrollment.path_id)
            for step in steps:
                if step.step_type != "course" or step.resource_id != course_id:
                    continue
                row = await self._store.paths.get_step_progress(enrollment.id, step.id)
                if row is None or row.is_terminal:
                    continue
                outcomes.append(
                    await self._complete_course_step(user_id, enrollment.id, step.id)
                )
        return outcomes

    async def _complete_course_step(
        self, user_id: UUID, path_enrollment_id: UUID, step_id: UUID
    ) -> StepOutcome:
        async def apply(row: LearningPathStepProgress) -> LearningPathStepProgress:
            now = self._clock()
            return replace(
                row,
                status=COMPLETED,
                progress=100,
                started_at=row.started_at or now,
                completed_at=now,
            )

        outcome = await self._transition(
            user_id, path_enrollment_id, step_id, apply, respect_sequence=False
        )
        logger.info(
            "Course step synced path_enrollment=%s step=%s", path_enrollment_id, step_id
        )
        return outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _transition(
        self,
        user_id: UUID,
        path_enrollment_id: UUID,
        step_id: UUID,
        apply: Callable[[LearningPathStepProgress], Awaitable[LearningPathStepProgress]],
        *,
        respect_sequence: bool,
    ) -> StepOutcome:
        async with self._store.lock(f"path-enrollment:{path_enrollment_id}"):
            async with self._store.transaction():
                enrollment = await owned_path_enrollment(
                    self._store, user_id, path_enrollment_id
                )
                if enrollment.status != ACTIVE:
                    raise ValidationError(
                        f"learning path enrollment is {enrollment.status}",
                        status=enrollment.status,
                    )
                step = await self._store.paths.get_step(step_id)
                if step is None or step.path_id != enrollment.path_id or not step.is_active:
                    raise NotFoundError("learning path step", step_id)
                row = await self._store.paths.get_step_progress(path_enrollment_id, step_id)
                if row is None:
                    raise NotFoundError("learning path step progress", step_id)
                if row.is_terminal:
                    raise ValidationError(
                        f"step is already {row.status}", status=row.status
                    )

                path = await self.get_path(enrollment.path_id)
                if respect_sequence and path.is_linear:
                    await self._check_unlocked(enrollment, step)

                updated = await apply(row)
                await self._store.paths.update_step_progress(updated)
                enrollment, certificate = await self._recompute(enrollment, path)

        logger.info(
            "Step progress path_enrollment=%s step=%s status=%s",
            path_enrollment_id,
            step_id,
            updated.status,
        )
        return StepOutcome(step_progress=updated, enrollment=enrollment, certificate=certificate)

    async def _check_unlocked(
        self, enrollment: LearningPathEnrollment, step: LearningPathStep
    ) -> None:
        steps = await self._store.paths.list_active_steps(enrollment.path_id)
        for earlier in steps:
            if earlier.step_order >= step.step_order or earlier.is_optional:
                continue
            row = await self._store.paths.get_step_progress(enrollment.id, earlier.id)
            if row is not None and not row.is_terminal:
                raise ValidationError(
                    "step is locked until earlier required steps are finished",
                    blocking_step_id=str(earlier.id),
                )

    async def _recompute(
        self, enrollment: LearningPathEnrollment, path: LearningPath
    ) -> tuple[LearningPathEnrollment, Certificate | None]:
        active_ids = {s.id for s in await self._store.paths.list_active_steps(path.id)}
        rows = [
            r
            for r in await self._store.paths.list_step_progress(enrollment.id)
            if r.step_id in active_ids
        ]
        total = len(rows)
        done = sum(1 for r in rows if r.status in STEP_DONE)
        updated = replace(enrollment, progress=percent(done, total))

        certificate = None
        if total > 0 and done == total:
            updated = replace(updated, status=COMPLETED, completion_date=self._clock())
            await self._store.paths.update_enrollment(updated)
            if path.issues_certificate:
                certificate = await self._cascade.on_path_completed(updated)
            PATH_COMPLETIONS.inc()
            logger.info("Learning path completed enrollment=%s path=%s", enrollment.id, path.id)
        else:
            await self._store.paths.update_enrollment(updated)
        return updated, certificate


