from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

CONTENT_VIDEO = "video"
CONTENT_TYPES = ("video", "rich_text", "document", "quiz")


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    status: str = "draft"  # draft|published|retired

    @staticmethod
    def new(*, title: str, status: str = "draft") -> Course:
        return Course(id=uuid4(), title=title, status=status)


@dataclass(frozen=True, slots=True)
class CourseVersion:
    """A published snapshot of a course; learners enroll in a version."""

    id: UUID
    course_id: UUID
    version: str
    status: str = "published"  # draft|published|retired

    @staticmethod
    def new(*, course_id: UUID, version: str, status: str = "published") -> CourseVersion:
        return CourseVersion(id=uuid4(), course_id=course_id, version=version, status=status)


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_version_id: UUID
    position: int
    title: str

    @staticmethod
    def new(*, course_version_id: UUID, position: int, title: str) -> CourseModule:
        return CourseModule(
            id=uuid4(),
            course_version_id=course_version_id,
            position=position,
            title=title,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    module_id: UUID
    position: int
    title: str
    content_type: str = "rich_text"  # video|rich_text|document|quiz
    duration_seconds: int | None = None

    @property
    def is_video(self) -> bool:
        return self.content_type == CONTENT_VIDEO

    @staticmethod
    def new(
        *,
        module_id: UUID,
        position: int,
        title: str,
        content_type: str = "rich_text",
        duration_seconds: int | None = None,
    ) -> Lesson:
        if content_type not in CONTENT_TYPES:
            raise ValueError(f"unknown content_type {content_type!r}")
        return Lesson(
            id=uuid4(),
            module_id=module_id,
            position=position,
            title=title,
            content_type=content_type,
            duration_seconds=duration_seconds,
        )
