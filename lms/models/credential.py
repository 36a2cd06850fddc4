from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

AUTO_AWARD_REASON = "automatic award for course completion"


@dataclass(frozen=True, slots=True)
class TrainingRecord:
    """Compliance record of a completed course, one per (user, course).

    locked_at is stamped whenever the record is written by the completion
    cascade; nothing else updates a locked record.
    """

    id: UUID
    user_id: UUID
    course_id: UUID
    course_version_id: UUID
    enrollment_id: UUID
    completed_at: int
    locked_at: int
    signed_by: UUID | None = None

    @staticmethod
    def new(
        *,
        user_id: UUID,
        course_id: UUID,
        course_version_id: UUID,
        enrollment_id: UUID,
        completed_at: int,
        signed_by: UUID | None = None,
    ) -> TrainingRecord:
        return TrainingRecord(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            course_version_id=course_version_id,
            enrollment_id=enrollment_id,
            completed_at=completed_at,
            locked_at=completed_at,
            signed_by=signed_by,
        )


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued for a course completion (training_record_id + enrollment_id)
    or for a learning path completion (path_enrollment_id)."""

    id: UUID
    certificate_number: str
    user_id: UUID
    title: str
    issued_at: int
    training_record_id: UUID | None = None
    enrollment_id: UUID | None = None
    path_enrollment_id: UUID | None = None

    @property
    def kind(self) -> str:
        return "path" if self.path_enrollment_id is not None else "course"

    @staticmethod
    def new(
        *,
        certificate_number: str,
        user_id: UUID,
        title: str,
        issued_at: int,
        training_record_id: UUID | None = None,
        enrollment_id: UUID | None = None,
        path_enrollment_id: UUID | None = None,
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            certificate_number=certificate_number,
            user_id=user_id,
            title=title,
            issued_at=issued_at,
            training_record_id=training_record_id,
            enrollment_id=enrollment_id,
            path_enrollment_id=path_enrollment_id,
        )


@dataclass(frozen=True, slots=True)
class Badge:
    id: UUID
    name: str
    required_course_ids: tuple[UUID, ...] = ()
    description: str = ""

    @staticmethod
    def new(
        *,
        name: str,
        required_course_ids: tuple[UUID, ...] = (),
        description: str = "",
    ) -> Badge:
        return Badge(
            id=uuid4(),
            name=name,
            required_course_ids=tuple(required_course_ids),
            description=description,
        )


@dataclass(frozen=True, slots=True)
class UserBadge:
    id: UUID
    user_id: UUID
    badge_id: UUID
    awarded_at: int
    reason: str = AUTO_AWARD_REASON
    course_version_id: UUID | None = None

    @staticmethod
    def new(
        *,
        user_id: UUID,
        badge_id: UUID,
        awarded_at: int,
        reason: str = AUTO_AWARD_REASON,
        course_version_id: UUID | None = None,
    ) -> UserBadge:
        return UserBadge(
            id=uuid4(),
            user_id=user_id,
            badge_id=badge_id,
            awarded_at=awarded_at,
            reason=reason,
            course_version_id=course_version_id,
        )
