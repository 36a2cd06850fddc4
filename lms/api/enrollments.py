"""Course enrollment and lesson progress endpoints.

All routes act on the caller's own enrollments; another user's
enrollment id yields 403.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from lms.api.dependencies import current_user_id, get_services
from lms.models.credential import Certificate, TrainingRecord, UserBadge
from lms.models.progress import Enrollment, LessonProgress
from lms.services.progress_tracker import CompletionClaim
from lms.services.wiring import LearningServices

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])

UserId = Annotated[UUID, Depends(current_user_id)]
Services = Annotated[LearningServices, Depends(get_services)]


class EnrollIn(BaseModel):
    course_version_id: UUID


class EnrollmentOut(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    course_version_id: UUID
    status: str
    progress: int
    enrolled_at: int
    started_at: int | None
    completed_at: int | None


class CourseProgressOut(BaseModel):
    enrollment_id: UUID
    total_lessons: int
    completed_lessons: int
    percentage: int


class LessonProgressIn(BaseModel):
    percentage: float
    position: int | None = Field(default=None, ge=0)
    time_spent: int | None = Field(default=None, ge=0)


class CompletionClaimIn(BaseModel):
    percentage: float | None = None
    time_spent: int | None = Field(default=None, ge=0)


class LessonProgressOut(BaseModel):
    id: UUID
    enrollment_id: UUID
    lesson_id: UUID
    status: str
    progress_percentage: int
    last_position: int | None
    time_spent_seconds: int
    completion_method: str | None
    completed_at: int | None


class EligibilityOut(BaseModel):
    eligible: bool
    current_percentage: int


class CompleteEnrollmentIn(BaseModel):
    signed_by: UUID | None = None


class TrainingRecordOut(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    course_version_id: UUID
    enrollment_id: UUID
    completed_at: int
    locked_at: int
    signed_by: UUID | None


class CertificateOut(BaseModel):
    id: UUID
    certificate_number: str
    kind: str
    user_id: UUID
    title: str
    issued_at: int
    enrollment_id: UUID | None
    path_enrollment_id: UUID | None


class UserBadgeOut(BaseModel):
    id: UUID
    badge_id: UUID
    awarded_at: int
    reason: str


class CompletionOut(BaseModel):
    enrollment: EnrollmentOut
    training_record: TrainingRecordOut
    certificate: CertificateOut
    badges: list[UserBadgeOut]
    completed_path_steps: list[UUID]


def enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=e.id,
        user_id=e.user_id,
        course_id=e.course_id,
        course_version_id=e.course_version_id,
        status=e.status,
        progress=e.progress,
        enrolled_at=e.enrolled_at,
        started_at=e.started_at,
        completed_at=e.completed_at,
    )


def lesson_progress_out(p: LessonProgress) -> LessonProgressOut:
    return LessonProgressOut(
        id=p.id,
        enrollment_id=p.enrollment_id,
        lesson_id=p.lesson_id,
        status=p.status,
        progress_percentage=p.progress_percentage,
        last_position=p.last_position,
        time_spent_seconds=p.time_spent_seconds,
        completion_method=p.completion_method,
        completed_at=p.completed_at,
    )


def training_record_out(r: TrainingRecord) -> TrainingRecordOut:
    return TrainingRecordOut(
        id=r.id,
        user_id=r.user_id,
        course_id=r.course_id,
        course_version_id=r.course_version_id,
        enrollment_id=r.enrollment_id,
        completed_at=r.completed_at,
        locked_at=r.locked_at,
        signed_by=r.signed_by,
    )


def certificate_out(c: Certificate) -> CertificateOut:
    return CertificateOut(
        id=c.id,
        certificate_number=c.certificate_number,
        kind=c.kind,
        user_id=c.user_id,
        title=c.title,
        issued_at=c.issued_at,
        enrollment_id=c.enrollment_id,
        path_enrollment_id=c.path_enrollment_id,
    )


def user_badge_out(b: UserBadge) -> UserBadgeOut:
    return UserBadgeOut(id=b.id, badge_id=b.badge_id, awarded_at=b.awarded_at, reason=b.reason)


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def enroll(payload: EnrollIn, user_id: UserId, services: Services) -> EnrollmentOut:
    enrollment = await services.enrollments.enroll(user_id, payload.course_version_id)
    return enrollment_out(enrollment)


@router.get("", response_model=list[EnrollmentOut])
async def list_enrollments(user_id: UserId, services: Services) -> list[EnrollmentOut]:
    return [enrollment_out(e) for e in await services.enrollments.list_enrollments(user_id)]


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
async def get_enrollment(
    enrollment_id: UUID, user_id: UserId, services: Services
) -> EnrollmentOut:
    return enrollment_out(await services.enrollments.get_enrollment(user_id, enrollment_id))


@router.get("/{enrollment_id}/progress", response_model=CourseProgressOut)
async def get_course_progress(
    enrollment_id: UUID, user_id: UserId, services: Services
) -> CourseProgressOut:
    summary = await services.enrollments.compute_course_progress(user_id, enrollment_id)
    return CourseProgressOut(
        enrollment_id=summary.enrollment_id,
        total_lessons=summary.total_lessons,
        completed_lessons=summary.completed_lessons,
        percentage=summary.percentage,
    )


@router.put(
    "/{enrollment_id}/lessons/{lesson_id}/progress", response_model=LessonProgressOut
)
async def update_lesson_progress(
    enrollment_id: UUID,
    lesson_id: UUID,
    payload: LessonProgressIn,
    user_id: UserId,
    services: Services,
) -> LessonProgressOut:
    row = await services.tracker.update_progress(
        user_id,
        enrollment_id,
        lesson_id,
        payload.percentage,
        position=payload.position,
        time_spent=payload.time_spent,
    )
    return lesson_progress_out(row)


@router.post(
    "/{enrollment_id}/lessons/{lesson_id}/complete", response_model=LessonProgressOut
)
async def complete_lesson(
    enrollment_id: UUID, lesson_id: UUID, user_id: UserId, services: Services
) -> LessonProgressOut:
    row = await services.tracker.complete_manually(user_id, enrollment_id, lesson_id)
    return lesson_progress_out(row)


@router.post("/{enrollment_id}/lessons/{lesson_id}/validate", response_model=EligibilityOut)
async def validate_lesson_completion(
    enrollment_id: UUID,
    lesson_id: UUID,
    payload: CompletionClaimIn,
    user_id: UserId,
    services: Services,
) -> EligibilityOut:
    """200 when eligible; an ineligible claim is a 422 carrying current_percentage."""
    stored = await services.tracker.validate_completion_eligibility(
        user_id,
        enrollment_id,
        lesson_id,
        CompletionClaim(percentage=payload.percentage, time_spent=payload.time_spent),
    )
    return EligibilityOut(
        eligible=True,
        current_percentage=stored.progress_percentage if stored else 0,
    )


@router.post("/{enrollment_id}/complete", response_model=CompletionOut)
async def complete_enrollment(
    enrollment_id: UUID,
    user_id: UserId,
    services: Services,
    payload: CompleteEnrollmentIn | None = None,
) -> CompletionOut:
    result = await services.enrollments.complete_enrollment(
        user_id, enrollment_id, signed_by=payload.signed_by if payload else None
    )
    return CompletionOut(
        enrollment=enrollment_out(result.enrollment),
        training_record=training_record_out(result.cascade.training_record),
        certificate=certificate_out(result.cascade.certificate),
        badges=[user_badge_out(b) for b in result.cascade.badges],
        completed_path_steps=[o.step_progress.step_id for o in result.path_steps],
    )
