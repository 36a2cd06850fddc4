from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.course import Course, CourseModule, CourseVersion, Lesson
from lms.repos.base import MemoryJournal, MemoryTable


class CourseRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def add_course(self, course: Course) -> None: ...
    async def get_version(self, version_id: UUID) -> CourseVersion | None: ...
    async def add_version(self, version: CourseVersion) -> None: ...
    async def get_module(self, module_id: UUID) -> CourseModule | None: ...
    async def list_modules(self, version_id: UUID) -> list[CourseModule]: ...
    async def add_module(self, module: CourseModule) -> None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def list_lessons_for_version(self, version_id: UUID) -> list[Lesson]: ...


class InMemoryCourseRepo:
    def __init__(self, journal: MemoryJournal) -> None:
        self._courses: MemoryTable[Course] = MemoryTable(journal, "courses")
        self._versions: MemoryTable[CourseVersion] = MemoryTable(
            journal, "course_versions"
        )
        self._modules: MemoryTable[CourseModule] = MemoryTable(
            journal, "course_modules"
        )
        self._lessons: MemoryTable[Lesson] = MemoryTable(journal, "lessons")

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def add_course(self, course: Course) -> None:
        self._courses.insert(course)

    async def get_version(self, version_id: UUID) -> CourseVersion | None:
        return self._versions.get(version_id)

    async def add_version(self, version: CourseVersion) -> None:
        self._versions.insert(version)

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        return self._modules.get(module_id)

    async def list_modules(self, version_id: UUID) -> list[CourseModule]:
        return sorted(
            self._modules.find(course_version_id=version_id), key=lambda m: m.position
        )

    async def add_module(self, module: CourseModule) -> None:
        self._modules.insert(module)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._lessons.insert(lesson)

    async def list_lessons_for_version(self, version_id: UUID) -> list[Lesson]:
        modules = sorted(
            self._modules.find(course_version_id=version_id), key=lambda m: m.position
        )
        lessons: list[Lesson] = []
        for module in modules:
            rows = self._lessons.find(module_id=module.id)
            lessons.extend(sorted(rows, key=lambda lesson: lesson.position))
        return lessons
