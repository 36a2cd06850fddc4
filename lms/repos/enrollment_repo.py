from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.progress import COMPLETED, Enrollment, LessonProgress
from lms.repos.base import MemoryJournal, MemoryTable


class EnrollmentRepo(Protocol):
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_by_user_and_version(
        self, user_id: UUID, course_version_id: UUID
    ) -> Enrollment | None: ...
    async def list_for_user(self, user_id: UUID) -> list[Enrollment]: ...
    async def completed_course_ids(self, user_id: UUID) -> set[UUID]: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update(self, enrollment: Enrollment) -> None: ...

    async def get_lesson_progress(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None: ...
    async def list_lesson_progress(self, enrollment_id: UUID) -> list[LessonProgress]: ...
    async def add_lesson_progress(self, progress: LessonProgress) -> None: ...
    async def update_lesson_progress(self, progress: LessonProgress) -> None: ...


class InMemoryEnrollmentRepo:
    def __init__(self, journal: MemoryJournal) -> None:
        self._enrollments: MemoryTable[Enrollment] = MemoryTable(
            journal,
            "enrollments",
            {"user_version": lambda e: (e.user_id, e.course_version_id)},
        )
        self._lesson_progress: MemoryTable[LessonProgress] = MemoryTable(
            journal,
            "lesson_progress",
            {"enrollment_lesson": lambda p: (p.enrollment_id, p.lesson_id)},
        )

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._enrollments.get(enrollment_id)

    async def get_by_user_and_version(
        self, user_id: UUID, course_version_id: UUID
    ) -> Enrollment | None:
        return self._enrollments.find_one(
            user_id=user_id, course_version_id=course_version_id
        )

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        return sorted(self._enrollments.find(user_id=user_id), key=lambda e: e.enrolled_at)

    async def completed_course_ids(self, user_id: UUID) -> set[UUID]:
        return {
            e.course_id for e in self._enrollments.find(user_id=user_id, status=COMPLETED)
        }

    async def add(self, enrollment: Enrollment) -> None:
        self._enrollments.insert(enrollment)

    async def update(self, enrollment: Enrollment) -> None:
        self._enrollments.update(enrollment)

    async def get_lesson_progress(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        return self._lesson_progress.find_one(
            enrollment_id=enrollment_id, lesson_id=lesson_id
        )

    async def list_lesson_progress(self, enrollment_id: UUID) -> list[LessonProgress]:
        return self._lesson_progress.find(enrollment_id=enrollment_id)

    async def add_lesson_progress(self, progress: LessonProgress) -> None:
        self._lesson_progress.insert(progress)

    async def update_lesson_progress(self, progress: LessonProgress) -> None:
        self._lesson_progress.update(progress)
