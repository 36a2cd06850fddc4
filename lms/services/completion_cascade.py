"""Compliance artefacts produced when a course or learning path completes.

Course completion: one training record per (user, course), one certificate
per course enrollment, then badge evaluation.  Every step first looks for
what a previous run already produced, so re-running the cascade after a
retry or a timeout is a no-op.
"""

from __future__ import annotations

import datetime
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from uuid import UUID

from lms.core.clock import now_ts
from lms.core.config import SETTINGS, Settings
from lms.core.metrics import CERTIFICATES_ISSUED, CONCURRENCY_CONFLICTS
from lms.models.credential import Certificate, TrainingRecord, UserBadge
from lms.models.learning_path import LearningPathEnrollment
from lms.models.progress import Enrollment
from lms.repos.base import DuplicateKeyError
from lms.repos.store import Store
from lms.services.badge_evaluator import BadgeEligibilityEvaluator
from lms.services.errors import ConcurrencyConflictError, NotFoundError

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 5

NumberGenerator = Callable[[str, UUID, int], str]


def generate_certificate_number(prefix: str, user_id: UUID, issued_at: int) -> str:
    """PREFIX-YYYYMMDD-<user fragment>-<32 random bits>."""
    day = datetime.datetime.fromtimestamp(issued_at, datetime.UTC).strftime("%Y%m%d")
    return f"{prefix}-{day}-{user_id.hex[:8].upper()}-{secrets.token_hex(4).upper()}"


@dataclass(frozen=True)
class CascadeResult:
    training_record: TrainingRecord
    certificate: Certificate
    badges: list[UserBadge] = field(default_factory=list)


class CompletionCascade:
    def __init__(
        self,
        store: Store,
        badges: BadgeEligibilityEvaluator,
        *,
        settings: Settings = SETTINGS,
        clock: Callable[[], int] = now_ts,
        number_generator: NumberGenerator = generate_certificate_number,
    ) -> None:
        self._store = store
        self._badges = badges
        self._settings = settings
        self._clock = clock
        self._number_generator = number_generator

    async def on_course_completed(
        self,
        enrollment: Enrollment,
        signed_by: UUID | None = None,
        *,
        newly_completed: bool = True,
    ) -> CascadeResult:
        """Produce (or find) the artefacts of a completed course enrollment.

        Only a fresh completion may move the per-course training record onto
        this enrollment; a re-run for an enrollment completed earlier leaves
        the record where it is.
        """
        course = await self._store.courses.get_course(enrollment.course_id)
        if course is None:
            raise NotFoundError("course", enrollment.course_id)

        async with self._store.transaction():
            record = await self._record_training(enrollment, signed_by, newly_completed)
            certificate = await self._course_certificate(enrollment, record, course.title)

        awarded = await self._badges.evaluate_for_course(
            enrollment.user_id, enrollment.course_id, enrollment.course_version_id
        )
        return CascadeResult(training_record=record, certificate=certificate, badges=awarded)

    async def on_path_completed(self, path_enrollment: LearningPathEnrollment) -> Certificate:
        path = await self._store.paths.get_path(path_enrollment.path_id)
        if path is None:
            raise NotFoundError("learning path", path_enrollment.path_id)

        async with self._store.lock(f"certificate:path:{path_enrollment.id}"):
            existing = await self._store.credentials.get_certificate_for_path_enrollment(
                path_enrollment.id
            )
            if existing is not None:
                return existing
            return await self._issue(
                user_id=path_enrollment.user_id,
                title=path.title,
                kind="path",
                path_enrollment_id=path_enrollment.id,
            )

    # --- steps ---

    async def _record_training(
        self, enrollment: Enrollment, signed_by: UUID | None, newly_completed: bool
    ) -> TrainingRecord:
        user_id, course_id = enrollment.user_id, enrollment.course_id
        async with self._store.lock(f"training-record:{user_id}:{course_id}"):
            now = self._clock()
            completed_at = enrollment.completed_at or now
            existing = await self._store.credentials.get_training_record(user_id, course_id)

            if existing is not None:
                if existing.enrollment_id == enrollment.id or not newly_completed:
                    return existing
                updated = replace(
                    existing,
                    course_version_id=enrollment.course_version_id,
                    enrollment_id=enrollment.id,
                    completed_at=completed_at,
                    signed_by=signed_by,
                    locked_at=now,
                )
                await self._store.credentials.update_training_record(updated)
                logger.info(
                    "Training record updated id=%s user=%s course=%s version=%s",
                    updated.id,
                    user_id,
                    course_id,
                    enrollment.course_version_id,
                )
                return updated

            record = TrainingRecord.new(
                user_id=user_id,
                course_id=course_id,
                course_version_id=enrollment.course_version_id,
                enrollment_id=enrollment.id,
                completed_at=completed_at,
                signed_by=signed_by,
            )
            try:
                await self._store.credentials.add_training_record(record)
            except DuplicateKeyError:
                CONCURRENCY_CONFLICTS.labels(operation="training_record").inc()
                winner = await self._store.credentials.get_training_record(user_id, course_id)
                if winner is None:
                    raise
                logger.warning(
                    "Training record created concurrently user=%s course=%s",
                    user_id,
                    course_id,
                )
                return winner

        logger.info(
            "Training record created id=%s user=%s course=%s", record.id, user_id, course_id
        )
        return record

    async def _course_certificate(
        self, enrollment: Enrollment, record: TrainingRecord, title: str
    ) -> Certificate:
        async with self._store.lock(f"certificate:enrollment:{enrollment.id}"):
            existing = await self._store.credentials.get_certificate_for_enrollment(
                enrollment.id
            )
            if existing is not None:
                return existing
            return await self._issue(
                user_id=enrollment.user_id,
                title=title,
                kind="course",
                training_record_id=record.id,
                enrollment_id=enrollment.id,
            )

    async def _issue(
        self,
        *,
        user_id: UUID,
        title: str,
        kind: str,
        training_record_id: UUID | None = None,
        enrollment_id: UUID | None = None,
        path_enrollment_id: UUID | None = None,
    ) -> Certificate:
        """Insert a certificate, drawing a new number on collision."""
        issued_at = self._clock()
        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            certificate = Certificate.new(
                certificate_number=self._number_generator(
                    self._settings.certificate_prefix, user_id, issued_at
                ),
                user_id=user_id,
                title=title,
                issued_at=issued_at,
                training_record_id=training_record_id,
                enrollment_id=enrollment_id,
                path_enrollment_id=path_enrollment_id,
            )
            try:
                await self._store.credentials.add_certificate(certificate)
            except DuplicateKeyError:
                CONCURRENCY_CONFLICTS.labels(operation="certificate").inc()
                winner = await self._existing_for(enrollment_id, path_enrollment_id)
                if winner is not None:
                    return winner
                logger.warning(
                    "Certificate number collision %s (attempt %d)",
                    certificate.certificate_number,
                    attempt,
                )
                continue

            CERTIFICATES_ISSUED.labels(kind=kind).inc()
            logger.info(
                "Certificate issued number=%s user=%s kind=%s",
                certificate.certificate_number,
                user_id,
                kind,
            )
            return certificate

        raise ConcurrencyConflictError(
            "could not allocate a unique certificate number",
            attempts=MAX_NUMBER_ATTEMPTS,
        )

    async def _existing_for(
        self, enrollment_id: UUID | None, path_enrollment_id: UUID | None
    ) -> Certificate | None:
        if enrollment_id is not None:
            return await self._store.credentials.get_certificate_for_enrollment(enrollment_id)
        if path_enrollment_id is not None:
            return await self._store.credentials.get_certificate_for_path_enrollment(
                path_enrollment_id
            )
        return None

    # --- reads ---

    async def verify_certificate(self, certificate_number: str) -> Certificate:
        certificate = await self._store.credentials.get_certificate_by_number(
            certificate_number.strip()
        )
        if certificate is None:
            raise NotFoundError("certificate", certificate_number)
        return certificate

    async def list_certificates(self, user_id: UUID) -> list[Certificate]:
        return await self._store.credentials.list_certificates(user_id)

    async def list_training_records(self, user_id: UUID) -> list[TrainingRecord]:
        return await self._store.credentials.list_training_records(user_id)
