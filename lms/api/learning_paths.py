"""Learning path authoring and learner step progress."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from lms.api.dependencies import current_user_id, get_services, require_author
from lms.api.enrollments import CertificateOut, certificate_out
from lms.models.learning_path import (
    LearningPath,
    LearningPathEnrollment,
    LearningPathStep,
    LearningPathStepProgress,
)
from lms.models.principal import Principal
from lms.services.learning_path_engine import StepOutcome
from lms.services.wiring import LearningServices

router = APIRouter(tags=["learning-paths"])

UserId = Annotated[UUID, Depends(current_user_id)]
Services = Annotated[LearningServices, Depends(get_services)]
Author = Annotated[Principal, Depends(require_author)]


class PathIn(BaseModel):
    title: str
    description: str = ""
    path_type: str = "linear"
    issues_certificate: bool = True


class PathOut(BaseModel):
    id: UUID
    title: str
    description: str
    path_type: str
    status: str
    issues_certificate: bool


class StepIn(BaseModel):
    title: str
    step_type: str = "course"
    is_optional: bool = False
    resource_id: UUID | None = None
    passing_score: int | None = None


class StepOut(BaseModel):
    id: UUID
    path_id: UUID
    title: str
    step_order: int
    step_type: str
    is_optional: bool
    resource_id: UUID | None
    passing_score: int | None


class StepOrderIn(BaseModel):
    step_ids: list[UUID]


class PathEnrollmentOut(BaseModel):
    id: UUID
    user_id: UUID
    path_id: UUID
    status: str
    progress: int
    enrolled_at: int
    completion_date: int | None
    suspended_at: int | None
    suspension_reason: str | None


class StepProgressOut(BaseModel):
    step_id: UUID
    title: str
    step_order: int
    is_optional: bool
    status: str
    progress: int
    score: int | None
    started_at: int | None
    completed_at: int | None


class StepOutcomeOut(BaseModel):
    step: StepProgressOut
    enrollment: PathEnrollmentOut
    certificate: CertificateOut | None


class StepProgressIn(BaseModel):
    progress: int


class StepScoreIn(BaseModel):
    score: int | None = None


class SuspendIn(BaseModel):
    reason: str | None = None


def path_out(p: LearningPath) -> PathOut:
    return PathOut(
        id=p.id,
        title=p.title,
        description=p.description,
        path_type=p.path_type,
        status=p.status,
        issues_certificate=p.issues_certificate,
    )


def step_out(s: LearningPathStep) -> StepOut:
    return StepOut(
        id=s.id,
        path_id=s.path_id,
        title=s.title,
        step_order=s.step_order,
        step_type=s.step_type,
        is_optional=s.is_optional,
        resource_id=s.resource_id,
        passing_score=s.passing_score,
    )


def path_enrollment_out(e: LearningPathEnrollment) -> PathEnrollmentOut:
    return PathEnrollmentOut(
        id=e.id,
        user_id=e.user_id,
        path_id=e.path_id,
        status=e.status,
        progress=e.progress,
        enrolled_at=e.enrolled_at,
        completion_date=e.completion_date,
        suspended_at=e.suspended_at,
        suspension_reason=e.suspension_reason,
    )


def step_progress_out(
    step: LearningPathStep | None, row: LearningPathStepProgress
) -> StepProgressOut:
    return StepProgressOut(
        step_id=row.step_id,
        title=step.title if step else "",
        step_order=step.step_order if step else 0,
        is_optional=step.is_optional if step else False,
        status=row.status,
        progress=row.progress,
        score=row.score,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


async def _outcome_out(services: LearningServices, outcome: StepOutcome) -> StepOutcomeOut:
    step = await services.store.paths.get_step(outcome.step_progress.step_id)
    return StepOutcomeOut(
        step=step_progress_out(step, outcome.step_progress),
        enrollment=path_enrollment_out(outcome.enrollment),
        certificate=certificate_out(outcome.certificate) if outcome.certificate else None,
    )


# ---------------------------------------------------------------------------
# Authoring
# ---------------------------------------------------------------------------


@router.post(
    "/v1/learning-paths", response_model=PathOut, status_code=status.HTTP_201_CREATED
)
async def create_path(payload: PathIn, author: Author, services: Services) -> PathOut:
    path = await services.paths.create_path(
        payload.title,
        description=payload.description,
        path_type=payload.path_type,
        issues_certificate=payload.issues_certificate,
        created_by=_uuid_or_none(author.user_id),
    )
    return path_out(path)


@router.get("/v1/learning-paths/{path_id}", response_model=PathOut)
async def get_path(path_id: UUID, _user: UserId, services: Services) -> PathOut:
    return path_out(await services.paths.get_path(path_id))


@router.get("/v1/learning-paths/{path_id}/steps", response_model=list[StepOut])
async def list_steps(path_id: UUID, _user: UserId, services: Services) -> list[StepOut]:
    return [step_out(s) for s in await services.paths.list_steps(path_id)]


@router.post(
    "/v1/learning-paths/{path_id}/steps",
    response_model=StepOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_step(
    path_id: UUID, payload: StepIn, _author: Author, services: Services
) -> StepOut:
    step = await services.paths.add_step(
        path_id,
        payload.title,
        step_type=payload.step_type,
        is_optional=payload.is_optional,
        resource_id=payload.resource_id,
        passing_score=payload.passing_score,
    )
    return step_out(step)


@router.delete("/v1/learning-paths/{path_id}/steps/{step_id}", response_model=list[StepOut])
async def remove_step(
    path_id: UUID, step_id: UUID, _author: Author, services: Services
) -> list[StepOut]:
    return [step_out(s) for s in await services.paths.remove_step(path_id, step_id)]


@router.put("/v1/learning-paths/{path_id}/steps/order", response_model=list[StepOut])
async def reorder_steps(
    path_id: UUID, payload: StepOrderIn, _author: Author, services: Services
) -> list[StepOut]:
    return [step_out(s) for s in await services.paths.reorder_steps(path_id, payload.step_ids)]


@router.post("/v1/learning-paths/{path_id}/publish", response_model=PathOut)
async def publish_path(path_id: UUID, _author: Author, services: Services) -> PathOut:
    return path_out(await services.paths.publish(path_id))


# ---------------------------------------------------------------------------
# Learner
# ---------------------------------------------------------------------------


@router.post(
    "/v1/learning-paths/{path_id}/enroll",
    response_model=PathEnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_path(
    path_id: UUID, user_id: UserId, services: Services
) -> PathEnrollmentOut:
    return path_enrollment_out(await services.paths.enroll_user(user_id, path_id))


@router.get("/v1/path-enrollments/{path_enrollment_id}", response_model=PathEnrollmentOut)
async def get_path_enrollment(
    path_enrollment_id: UUID, user_id: UserId, services: Services
) -> PathEnrollmentOut:
    enrollment = await services.paths.get_enrollment(user_id, path_enrollment_id)
    return path_enrollment_out(enrollment)


@router.get(
    "/v1/path-enrollments/{path_enrollment_id}/steps", response_model=list[StepProgressOut]
)
async def get_step_progress(
    path_enrollment_id: UUID, user_id: UserId, services: Services
) -> list[StepProgressOut]:
    pairs = await services.paths.get_step_progress(user_id, path_enrollment_id)
    return [step_progress_out(step, row) for step, row in pairs]


@router.put(
    "/v1/path-enrollments/{path_enrollment_id}/steps/{step_id}/progress",
    response_model=StepOutcomeOut,
)
async def update_step_progress(
    path_enrollment_id: UUID,
    step_id: UUID,
    payload: StepProgressIn,
    user_id: UserId,
    services: Services,
) -> StepOutcomeOut:
    outcome = await services.paths.update_step_progress(
        user_id, path_enrollment_id, step_id, payload.progress
    )
    return await _outcome_out(services, outcome)


@router.post(
    "/v1/path-enrollments/{path_enrollment_id}/steps/{step_id}/complete",
    response_model=StepOutcomeOut,
)
async def complete_step(
    path_enrollment_id: UUID,
    step_id: UUID,
    user_id: UserId,
    services: Services,
    payload: StepScoreIn | None = None,
) -> StepOutcomeOut:
    outcome = await services.paths.complete_step(
        user_id, path_enrollment_id, step_id, score=payload.score if payload else None
    )
    return await _outcome_out(services, outcome)


@router.post(
    "/v1/path-enrollments/{path_enrollment_id}/steps/{step_id}/skip",
    response_model=StepOutcomeOut,
)
async def skip_step(
    path_enrollment_id: UUID, step_id: UUID, user_id: UserId, services: Services
) -> StepOutcomeOut:
    outcome = await services.paths.skip_step(user_id, path_enrollment_id, step_id)
    return await _outcome_out(services, outcome)


@router.post(
    "/v1/path-enrollments/{path_enrollment_id}/steps/{step_id}/fail",
    response_model=StepOutcomeOut,
)
async def fail_step(
    path_enrollment_id: UUID,
    step_id: UUID,
    user_id: UserId,
    services: Services,
    payload: StepScoreIn | None = None,
) -> StepOutcomeOut:
    outcome = await services.paths.fail_step(
        user_id, path_enrollment_id, step_id, score=payload.score if payload else None
    )
    return await _outcome_out(services, outcome)


@router.post(
    "/v1/path-enrollments/{path_enrollment_id}/suspend", response_model=PathEnrollmentOut
)
async def suspend_path_enrollment(
    path_enrollment_id: UUID,
    user_id: UserId,
    services: Services,
    payload: SuspendIn | None = None,
) -> PathEnrollmentOut:
    enrollment = await services.paths.suspend(
        user_id, path_enrollment_id, reason=payload.reason if payload else None
    )
    return path_enrollment_out(enrollment)


@router.post(
    "/v1/path-enrollments/{path_enrollment_id}/resume", response_model=PathEnrollmentOut
)
async def resume_path_enrollment(
    path_enrollment_id: UUID, user_id: UserId, services: Services
) -> PathEnrollmentOut:
    return path_enrollment_out(await services.paths.resume(user_id, path_enrollment_id))


def _uuid_or_none(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None
