"""Load-and-check helpers: every service operation touching a learner's
enrollment or attempt goes through one of these."""

from __future__ import annotations

import logging
from uuid import UUID

from lms.models.assessment import QuizAttempt
from lms.models.learning_path import LearningPathEnrollment
from lms.models.progress import Enrollment
from lms.repos.store import Store
from lms.services.errors import NotFoundError, OwnershipError

logger = logging.getLogger(__name__)


def _check_owner(entity: str, entity_id: UUID, owner_id: UUID, user_id: UUID) -> None:
    if owner_id != user_id:
        logger.warning(
            "Ownership mismatch on %s id=%s caller=%s", entity, entity_id, user_id
        )
        raise OwnershipError(entity, entity_id)


async def owned_enrollment(store: Store, user_id: UUID, enrollment_id: UUID) -> Enrollment:
    enrollment = await store.enrollments.get(enrollment_id)
    if enrollment is None:
        raise NotFoundError("enrollment", enrollment_id)
    _check_owner("enrollment", enrollment_id, enrollment.user_id, user_id)
    return enrollment


async def owned_attempt(store: Store, user_id: UUID, attempt_id: UUID) -> QuizAttempt:
    attempt = await store.quizzes.get_attempt(attempt_id)
    if attempt is None:
        raise NotFoundError("quiz attempt", attempt_id)
    _check_owner("quiz attempt", attempt_id, attempt.user_id, user_id)
    return attempt


async def owned_path_enrollment(
    store: Store, user_id: UUID, path_enrollment_id: UUID
) -> LearningPathEnrollment:
    enrollment = await store.paths.get_enrollment(path_enrollment_id)
    if enrollment is None:
        raise NotFoundError("learning path enrollment", path_enrollment_id)
    _check_owner(
        "learning path enrollment", path_enrollment_id, enrollment.user_id, user_id
    )
    return enrollment
