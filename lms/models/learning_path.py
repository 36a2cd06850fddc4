from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

PATH_TYPES = ("linear", "non_linear", "adaptive")
STEP_TYPES = ("course", "quiz", "video", "document", "external", "assessment")

# LearningPathEnrollment.status
ACTIVE = "active"
COMPLETED = "completed"
FAILED = "failed"
SUSPENDED = "suspended"

# LearningPathStepProgress.status
NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
SKIPPED = "skipped"
STEP_TERMINAL = frozenset({COMPLETED, FAILED, SKIPPED})
STEP_DONE = frozenset({COMPLETED, SKIPPED})


@dataclass(frozen=True, slots=True)
class LearningPath:
    id: UUID
    title: str
    description: str = ""
    path_type: str = "linear"  # linear|non_linear|adaptive
    status: str = "draft"  # draft|published|archived
    issues_certificate: bool = True
    created_by: UUID | None = None

    @property
    def is_linear(self) -> bool:
        return self.path_type == "linear"

    @staticmethod
    def new(
        *,
        title: str,
        description: str = "",
        path_type: str = "linear",
        issues_certificate: bool = True,
        created_by: UUID | None = None,
    ) -> LearningPath:
        return LearningPath(
            id=uuid4(),
            title=title,
            description=description,
            path_type=path_type,
            issues_certificate=issues_certificate,
            created_by=created_by,
        )


@dataclass(frozen=True, slots=True)
class LearningPathStep:
    id: UUID
    path_id: UUID
    title: str
    step_order: int
    step_type: str = "course"
    is_optional: bool = False
    resource_id: UUID | None = None
    passing_score: int | None = None
    deleted_at: int | None = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    @staticmethod
    def new(
        *,
        path_id: UUID,
        title: str,
        step_order: int,
        step_type: str = "course",
        is_optional: bool = False,
        resource_id: UUID | None = None,
        passing_score: int | None = None,
    ) -> LearningPathStep:
        return LearningPathStep(
            id=uuid4(),
            path_id=path_id,
            title=title,
            step_order=step_order,
            step_type=step_type,
            is_optional=is_optional,
            resource_id=resource_id,
            passing_score=passing_score,
        )


@dataclass(frozen=True, slots=True)
class LearningPathEnrollment:
    """progress is derived from step rows; never set on its own."""

    id: UUID
    user_id: UUID
    path_id: UUID
    enrolled_at: int
    status: str = ACTIVE  # active|completed|failed|suspended
    progress: int = 0
    completion_date: int | None = None
    suspended_at: int | None = None
    suspension_reason: str | None = None

    @staticmethod
    def new(*, user_id: UUID, path_id: UUID, enrolled_at: int) -> LearningPathEnrollment:
        return LearningPathEnrollment(
            id=uuid4(), user_id=user_id, path_id=path_id, enrolled_at=enrolled_at
        )


@dataclass(frozen=True, slots=True)
class LearningPathStepProgress:
    id: UUID
    path_enrollment_id: UUID
    step_id: UUID
    status: str = NOT_STARTED
    progress: int = 0
    score: int | None = None
    started_at: int | None = None
    completed_at: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in STEP_TERMINAL

    @staticmethod
    def new(*, path_enrollment_id: UUID, step_id: UUID) -> LearningPathStepProgress:
        return LearningPathStepProgress(
            id=uuid4(), path_enrollment_id=path_enrollment_id, step_id=step_id
        )
