"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import EnrollmentRow, LessonProgressRow
from lms.models.progress import COMPLETED, Enrollment, LessonProgress
from lms.repos.pg_base import insert_row, update_row


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, enrollment_id)
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def get_by_user_and_version(
        self, user_id: UUID, course_version_id: UUID
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id,
            EnrollmentRow.course_version_id == course_version_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .order_by(EnrollmentRow.enrolled_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def completed_course_ids(self, user_id: UUID) -> set[UUID]:
        stmt = select(EnrollmentRow.course_id).where(
            EnrollmentRow.user_id == user_id, EnrollmentRow.status == COMPLETED
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def add(self, enrollment: Enrollment) -> None:
        await insert_row(
            self._session,
            EnrollmentRow(
                id=enrollment.id,
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                course_version_id=enrollment.course_version_id,
                status=enrollment.status,
                progress=enrollment.progress,
                enrolled_at=enrollment.enrolled_at,
                started_at=enrollment.started_at,
                completed_at=enrollment.completed_at,
            ),
        )

    async def update(self, enrollment: Enrollment) -> None:
        await update_row(
            self._session,
            EnrollmentRow,
            enrollment.id,
            status=enrollment.status,
            progress=enrollment.progress,
            started_at=enrollment.started_at,
            completed_at=enrollment.completed_at,
        )

    async def get_lesson_progress(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.enrollment_id == enrollment_id,
            LessonProgressRow.lesson_id == lesson_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row)

    async def list_lesson_progress(self, enrollment_id: UUID) -> list[LessonProgress]:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.enrollment_id == enrollment_id
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]

    async def add_lesson_progress(self, progress: LessonProgress) -> None:
        await insert_row(
            self._session,
            LessonProgressRow(
                id=progress.id,
                enrollment_id=progress.enrollment_id,
                lesson_id=progress.lesson_id,
                status=progress.status,
                progress_percentage=progress.progress_percentage,
                last_position=progress.last_position,
                time_spent_seconds=progress.time_spent_seconds,
                completion_method=progress.completion_method,
                completed_at=progress.completed_at,
                updated_at=progress.updated_at,
            ),
        )

    async def update_lesson_progress(self, progress: LessonProgress) -> None:
        await update_row(
            self._session,
            LessonProgressRow,
            progress.id,
            status=progress.status,
            progress_percentage=progress.progress_percentage,
            last_position=progress.last_position,
            time_spent_seconds=progress.time_spent_seconds,
            completion_method=progress.completion_method,
            completed_at=progress.completed_at,
            updated_at=progress.updated_at,
        )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        course_version_id=row.course_version_id,
        enrolled_at=row.enrolled_at,
        status=row.status,
        progress=row.progress,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


def _row_to_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        id=row.id,
        enrollment_id=row.enrollment_id,
        lesson_id=row.lesson_id,
        status=row.status,
        progress_percentage=row.progress_percentage,
        last_position=row.last_position,
        time_spent_seconds=row.time_spent_seconds,
        completion_method=row.completion_method,
        completed_at=row.completed_at,
        updated_at=row.updated_at,
    )
