"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import CourseModuleRow, CourseRow, CourseVersionRow, LessonRow
from lms.models.course import Course, CourseModule, CourseVersion, Lesson
from lms.repos.pg_base import insert_row


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return Course(id=row.id, title=row.title, status=row.status)

    async def add_course(self, course: Course) -> None:
        await insert_row(
            self._session, CourseRow(id=course.id, title=course.title, status=course.status)
        )

    async def get_version(self, version_id: UUID) -> CourseVersion | None:
        row = await self._session.get(CourseVersionRow, version_id)
        if row is None:
            return None
        return CourseVersion(
            id=row.id, course_id=row.course_id, version=row.version, status=row.status
        )

    async def add_version(self, version: CourseVersion) -> None:
        await insert_row(
            self._session,
            CourseVersionRow(
                id=version.id,
                course_id=version.course_id,
                version=version.version,
                status=version.status,
            ),
        )

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        row = await self._session.get(CourseModuleRow, module_id)
        if row is None:
            return None
        return CourseModule(
            id=row.id,
            course_version_id=row.course_version_id,
            position=row.position,
            title=row.title,
        )

    async def list_modules(self, version_id: UUID) -> list[CourseModule]:
        stmt = (
            select(CourseModuleRow)
            .where(CourseModuleRow.course_version_id == version_id)
            .order_by(CourseModuleRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            CourseModule(
                id=r.id,
                course_version_id=r.course_version_id,
                position=r.position,
                title=r.title,
            )
            for r in rows
        ]

    async def add_module(self, module: CourseModule) -> None:
        await insert_row(
            self._session,
            CourseModuleRow(
                id=module.id,
                course_version_id=module.course_version_id,
                position=module.position,
                title=module.title,
            ),
        )

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        if row is None:
            return None
        return _row_to_lesson(row)

    async def add_lesson(self, lesson: Lesson) -> None:
        await insert_row(
            self._session,
            LessonRow(
                id=lesson.id,
                module_id=lesson.module_id,
                position=lesson.position,
                title=lesson.title,
                content_type=lesson.content_type,
                duration_seconds=lesson.duration_seconds,
            ),
        )

    async def list_lessons_for_version(self, version_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .join(CourseModuleRow, LessonRow.module_id == CourseModuleRow.id)
            .where(CourseModuleRow.course_version_id == version_id)
            .order_by(CourseModuleRow.position, LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        position=row.position,
        title=row.title,
        content_type=row.content_type,
        duration_seconds=row.duration_seconds,
    )
