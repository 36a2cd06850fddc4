from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.learning_path import (
    ACTIVE,
    COMPLETED,
    LearningPath,
    LearningPathEnrollment,
    LearningPathStep,
    LearningPathStepProgress,
)
from lms.repos.base import MemoryJournal, MemoryTable


class LearningPathRepo(Protocol):
    async def get_path(self, path_id: UUID) -> LearningPath | None: ...
    async def add_path(self, path: LearningPath) -> None: ...
    async def update_path(self, path: LearningPath) -> None: ...

    async def get_step(self, step_id: UUID) -> LearningPathStep | None: ...
    async def list_active_steps(self, path_id: UUID) -> list[LearningPathStep]: ...
    async def add_step(self, step: LearningPathStep) -> None: ...
    async def update_step(self, step: LearningPathStep) -> None: ...

    async def get_enrollment(
        self, path_enrollment_id: UUID
    ) -> LearningPathEnrollment | None: ...
    async def get_open_enrollment(
        self, user_id: UUID, path_id: UUID
    ) -> LearningPathEnrollment | None: ...
    async def list_active_enrollments(self, user_id: UUID) -> list[LearningPathEnrollment]: ...
    async def add_enrollment(self, enrollment: LearningPathEnrollment) -> None: ...
    async def update_enrollment(self, enrollment: LearningPathEnrollment) -> None: ...

    async def get_step_progress(
        self, path_enrollment_id: UUID, step_id: UUID
    ) -> LearningPathStepProgress | None: ...
    async def list_step_progress(
        self, path_enrollment_id: UUID
    ) -> list[LearningPathStepProgress]: ...
    async def add_step_progress(self, progress: LearningPathStepProgress) -> None: ...
    async def update_step_progress(self, progress: LearningPathStepProgress) -> None: ...


class InMemoryLearningPathRepo:
    def __init__(self, journal: MemoryJournal) -> None:
        self._paths: MemoryTable[LearningPath] = MemoryTable(journal, "learning_paths")
        self._steps: MemoryTable[LearningPathStep] = MemoryTable(
            journal,
            "learning_path_steps",
            {
                "active_path_order": lambda s: (
                    (s.path_id, s.step_order) if s.deleted_at is None else None
                )
            },
        )
        self._enrollments: MemoryTable[LearningPathEnrollment] = MemoryTable(
            journal,
            "learning_path_enrollments",
            {
                "open_user_path": lambda e: (
                    (e.user_id, e.path_id) if e.status != COMPLETED else None
                )
            },
        )
        self._step_progress: MemoryTable[LearningPathStepProgress] = MemoryTable(
            journal,
            "learning_path_step_progress",
            {"enrollment_step": lambda p: (p.path_enrollment_id, p.step_id)},
        )

    async def get_path(self, path_id: UUID) -> LearningPath | None:
        return self._paths.get(path_id)

    async def add_path(self, path: LearningPath) -> None:
        self._paths.insert(path)

    async def update_path(self, path: LearningPath) -> None:
        self._paths.update(path)

    async def get_step(self, step_id: UUID) -> LearningPathStep | None:
        return self._steps.get(step_id)

    async def list_active_steps(self, path_id: UUID) -> list[LearningPathStep]:
        steps = [s for s in self._steps.find(path_id=path_id) if s.deleted_at is None]
        return sorted(steps, key=lambda s: s.step_order)

    async def add_step(self, step: LearningPathStep) -> None:
        self._steps.insert(step)

    async def update_step(self, step: LearningPathStep) -> None:
        self._steps.update(step)

    async def get_enrollment(
        self, path_enrollment_id: UUID
    ) -> LearningPathEnrollment | None:
        return self._enrollments.get(path_enrollment_id)

    async def get_open_enrollment(
        self, user_id: UUID, path_id: UUID
    ) -> LearningPathEnrollment | None:
        for enrollment in self._enrollments.find(user_id=user_id, path_id=path_id):
            if enrollment.status != COMPLETED:
                return enrollment
        return None

    async def list_active_enrollments(self, user_id: UUID) -> list[LearningPathEnrollment]:
        return self._enrollments.find(user_id=user_id, status=ACTIVE)

    async def add_enrollment(self, enrollment: LearningPathEnrollment) -> None:
        self._enrollments.insert(enrollment)

    async def update_enrollment(self, enrollment: LearningPathEnrollment) -> None:
        self._enrollments.update(enrollment)

    async def get_step_progress(
        self, path_enrollment_id: UUID, step_id: UUID
    ) -> LearningPathStepProgress | None:
        return self._step_progress.find_one(
            path_enrollment_id=path_enrollment_id, step_id=step_id
        )

    async def list_step_progress(
        self, path_enrollment_id: UUID
    ) -> list[LearningPathStepProgress]:
        return self._step_progress.find(path_enrollment_id=path_enrollment_id)

    async def add_step_progress(self, progress: LearningPathStepProgress) -> None:
        self._step_progress.insert(progress)

    async def update_step_progress(self, progress: LearningPathStepProgress) -> None:
        self._step_progress.update(progress)
