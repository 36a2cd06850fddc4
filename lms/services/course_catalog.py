"""Minimal course authoring: just enough structure for the engine to run."""

from __future__ import annotations

import logging
from uuid import UUID

from lms.models.course import CONTENT_TYPES, Course, CourseModule, CourseVersion, Lesson
from lms.repos.store import Store
from lms.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CourseCatalog:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def create_course(self, title: str, status: str = "published") -> Course:
        if not title.strip():
            raise ValidationError("title must be non-empty", field="title")
        course = Course.new(title=title.strip(), status=status)
        await self._store.courses.add_course(course)
        logger.info("Course created id=%s", course.id)
        return course

    async def add_version(
        self, course_id: UUID, version: str, status: str = "published"
    ) -> CourseVersion:
        if await self._store.courses.get_course(course_id) is None:
            raise NotFoundError("course", course_id)
        created = CourseVersion.new(course_id=course_id, version=version, status=status)
        await self._store.courses.add_version(created)
        return created

    async def add_module(self, course_version_id: UUID, title: str) -> CourseModule:
        if await self._store.courses.get_version(course_version_id) is None:
            raise NotFoundError("course version", course_version_id)
        async with self._store.lock(f"course-structure:{course_version_id}"):
            modules = await self._store.courses.list_modules(course_version_id)
            position = max((m.position for m in modules), default=0) + 1
            module = CourseModule.new(
                course_version_id=course_version_id, position=position, title=title
            )
            await self._store.courses.add_module(module)
        return module

    async def add_lesson(
        self,
        module_id: UUID,
        title: str,
        content_type: str = "rich_text",
        duration_seconds: int | None = None,
        position: int | None = None,
    ) -> Lesson:
        if content_type not in CONTENT_TYPES:
            raise ValidationError(f"unknown content_type {content_type!r}", field="content_type")
        if duration_seconds is not None and duration_seconds < 0:
            raise ValidationError("duration_seconds must be non-negative")
        module = await self._store.courses.get_module(module_id)
        if module is None:
            raise NotFoundError("course module", module_id)
        async with self._store.lock(f"course-structure:{module.course_version_id}"):
            if position is None:
                siblings = [
                    lesson.position
                    for lesson in await self._store.courses.list_lessons_for_version(
                        module.course_version_id
                    )
                    if lesson.module_id == module_id
                ]
                position = max(siblings, default=0) + 1
            lesson = Lesson.new(
                module_id=module_id,
                position=position,
                title=title,
                content_type=content_type,
                duration_seconds=duration_seconds,
            )
            await self._store.courses.add_lesson(lesson)
        return lesson
