"""PostgreSQL implementation of LearningPathRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import (
    LearningPathEnrollmentRow,
    LearningPathRow,
    LearningPathStepProgressRow,
    LearningPathStepRow,
)
from lms.models.learning_path import (
    ACTIVE,
    COMPLETED,
    LearningPath,
    LearningPathEnrollment,
    LearningPathStep,
    LearningPathStepProgress,
)
from lms.repos.pg_base import insert_row, update_row


class PgLearningPathRepo:
    """Satisfies the LearningPathRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- paths ---

    async def get_path(self, path_id: UUID) -> LearningPath | None:
        row = await self._session.get(LearningPathRow, path_id)
        if row is None:
            return None
        return LearningPath(
            id=row.id,
            title=row.title,
            description=row.description or "",
            path_type=row.path_type,
            status=row.status,
            issues_certificate=row.issues_certificate,
            created_by=row.created_by,
        )

    async def add_path(self, path: LearningPath) -> None:
        await insert_row(
            self._session,
            LearningPathRow(
                id=path.id,
                title=path.title,
                description=path.description,
                path_type=path.path_type,
                status=path.status,
                issues_certificate=path.issues_certificate,
                created_by=path.created_by,
            ),
        )

    async def update_path(self, path: LearningPath) -> None:
        await update_row(
            self._session,
            LearningPathRow,
            path.id,
            title=path.title,
            description=path.description,
            path_type=path.path_type,
            status=path.status,
            issues_certificate=path.issues_certificate,
        )

    # --- steps ---

    async def get_step(self, step_id: UUID) -> LearningPathStep | None:
        row = await self._session.get(LearningPathStepRow, step_id)
        if row is None:
            return None
        return _row_to_step(row)

    async def list_active_steps(self, path_id: UUID) -> list[LearningPathStep]:
        stmt = (
            select(LearningPathStepRow)
            .where(
                LearningPathStepRow.path_id == path_id,
                LearningPathStepRow.deleted_at.is_(None),
            )
            .order_by(LearningPathStepRow.step_order)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_step(r) for r in rows]

    async def add_step(self, step: LearningPathStep) -> None:
        await insert_row(
            self._session,
            LearningPathStepRow(
                id=step.id,
                path_id=step.path_id,
                title=step.title,
                step_type=step.step_type,
                step_order=step.step_order,
                is_optional=step.is_optional,
                resource_id=step.resource_id,
                passing_score=step.passing_score,
                deleted_at=step.deleted_at,
            ),
        )

    async def update_step(self, step: LearningPathStep) -> None:
        await update_row(
            self._session,
            LearningPathStepRow,
            step.id,
            title=step.title,
            step_type=step.step_type,
            step_order=step.step_order,
            is_optional=step.is_optional,
            resource_id=step.resource_id,
            passing_score=step.passing_score,
            deleted_at=step.deleted_at,
        )

    # --- enrollments ---

    async def get_enrollment(
        self, path_enrollment_id: UUID
    ) -> LearningPathEnrollment | None:
        row = await self._session.get(LearningPathEnrollmentRow, path_enrollment_id)
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def get_open_enrollment(
        self, user_id: UUID, path_id: UUID
    ) -> LearningPathEnrollment | None:
        stmt = select(LearningPathEnrollmentRow).where(
            LearningPathEnrollmentRow.user_id == user_id,
            LearningPathEnrollmentRow.path_id == path_id,
            LearningPathEnrollmentRow.status != COMPLETED,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def list_active_enrollments(self, user_id: UUID) -> list[LearningPathEnrollment]:
        stmt = select(LearningPathEnrollmentRow).where(
            LearningPathEnrollmentRow.user_id == user_id,
            LearningPathEnrollmentRow.status == ACTIVE,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def add_enrollment(self, enrollment: LearningPathEnrollment) -> None:
        await insert_row(
            self._session,
            LearningPathEnrollmentRow(
                id=enrollment.id,
                user_id=enrollment.user_id,
                path_id=enrollment.path_id,
                status=enrollment.status,
                progress=enrollment.progress,
                enrolled_at=enrollment.enrolled_at,
                completion_date=enrollment.completion_date,
                suspended_at=enrollment.suspended_at,
                suspension_reason=enrollment.suspension_reason,
            ),
        )

    async def update_enrollment(self, enrollment: LearningPathEnrollment) -> None:
        await update_row(
            self._session,
            LearningPathEnrollmentRow,
            enrollment.id,
            status=enrollment.status,
            progress=enrollment.progress,
            completion_date=enrollment.completion_date,
            suspended_at=enrollment.suspended_at,
            suspension_reason=enrollment.suspension_reason,
        )

    # --- step progress ---

    async def get_step_progress(
        self, path_enrollment_id: UUID, step_id: UUID
    ) -> LearningPathStepProgress | None:
        stmt = select(LearningPathStepProgressRow).where(
            LearningPathStepProgressRow.path_enrollment_id == path_enrollment_id,
            LearningPathStepProgressRow.step_id == step_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_step_progress(row)

    async def list_step_progress(
        self, path_enrollment_id: UUID
    ) -> list[LearningPathStepProgress]:
        stmt = select(LearningPathStepProgressRow).where(
            LearningPathStepProgressRow.path_enrollment_id == path_enrollment_id
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_step_progress(r) for r in rows]

    async def add_step_progress(self, progress: LearningPathStepProgress) -> None:
        await insert_row(
            self._session,
            LearningPathStepProgressRow(
                id=progress.id,
                path_enrollment_id=progress.path_enrollment_id,
                step_id=progress.step_id,
                status=progress.status,
                progress=progress.progress,
                score=progress.score,
                started_at=progress.started_at,
                completed_at=progress.completed_at,
            ),
        )

    async def update_step_progress(self, progress: LearningPathStepProgress) -> None:
        await update_row(
            self._session,
            LearningPathStepProgressRow,
            progress.id,
            status=progress.status,
            progress=progress.progress,
            score=progress.score,
            started_at=progress.started_at,
            completed_at=progress.completed_at,
        )


def _row_to_step(row: LearningPathStepRow) -> LearningPathStep:
    return LearningPathStep(
        id=row.id,
        path_id=row.path_id,
        title=row.title,
        step_order=row.step_order,
        step_type=row.step_type,
        is_optional=row.is_optional,
        resource_id=row.resource_id,
        passing_score=row.passing_score,
        deleted_at=row.deleted_at,
    )


def _row_to_enrollment(row: LearningPathEnrollmentRow) -> LearningPathEnrollment:
    return LearningPathEnrollment(
        id=row.id,
        user_id=row.user_id,
        path_id=row.path_id,
        enrolled_at=row.enrolled_at,
        status=row.status,
        progress=row.progress,
        completion_date=row.completion_date,
        suspended_at=row.suspended_at,
        suspension_reason=row.suspension_reason,
    )


def _row_to_step_progress(row: LearningPathStepProgressRow) -> LearningPathStepProgress:
    return LearningPathStepProgress(
        id=row.id,
        path_enrollment_id=row.path_enrollment_id,
        step_id=row.step_id,
        status=row.status,
        progress=row.progress,
        score=row.score,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )
