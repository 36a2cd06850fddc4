from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

# Enrollment.status
ENROLLED = "enrolled"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
EXPIRED = "expired"

# LessonProgress.status
NOT_STARTED = "not_started"

# LessonProgress.completion_method
METHOD_MANUAL = "manual"
METHOD_QUIZ = "quiz"
METHOD_AUTO = "auto"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A user's registration in one course version.

    course_id is denormalised from the version so that training records,
    badge requirements and path steps can match on the course regardless
    of which version was taken.
    """

    id: UUID
    user_id: UUID
    course_id: UUID
    course_version_id: UUID
    enrolled_at: int
    status: str = ENROLLED  # enrolled|in_progress|completed|expired
    progress: int = 0
    started_at: int | None = None
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @staticmethod
    def new(
        *,
        user_id: UUID,
        course_id: UUID,
        course_version_id: UUID,
        enrolled_at: int,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            course_version_id=course_version_id,
            enrolled_at=enrolled_at,
        )


@dataclass(frozen=True, slots=True)
class LessonProgress:
    id: UUID
    enrollment_id: UUID
    lesson_id: UUID
    status: str = NOT_STARTED  # not_started|in_progress|completed
    progress_percentage: int = 0
    last_position: int | None = None  # seconds into a video
    time_spent_seconds: int = 0
    completion_method: str | None = None  # manual|quiz|auto
    completed_at: int | None = None
    updated_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @staticmethod
    def new(*, enrollment_id: UUID, lesson_id: UUID) -> LessonProgress:
        return LessonProgress(id=uuid4(), enrollment_id=enrollment_id, lesson_id=lesson_id)


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Aggregate returned by EnrollmentManager.compute_course_progress."""

    enrollment_id: UUID
    total_lessons: int
    completed_lessons: int
    percentage: int
