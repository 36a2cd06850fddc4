"""PostgreSQL implementation of CredentialRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import BadgeRow, CertificateRow, TrainingRecordRow, UserBadgeRow
from lms.models.credential import Badge, Certificate, TrainingRecord, UserBadge
from lms.repos.pg_base import insert_row, update_row


class PgCredentialRepo:
    """Satisfies the CredentialRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- training records ---

    async def get_training_record(
        self, user_id: UUID, course_id: UUID
    ) -> TrainingRecord | None:
        stmt = select(TrainingRecordRow).where(
            TrainingRecordRow.user_id == user_id,
            TrainingRecordRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def list_training_records(self, user_id: UUID) -> list[TrainingRecord]:
        stmt = (
            select(TrainingRecordRow)
            .where(TrainingRecordRow.user_id == user_id)
            .order_by(TrainingRecordRow.completed_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def add_training_record(self, record: TrainingRecord) -> None:
        await insert_row(
            self._session,
            TrainingRecordRow(
                id=record.id,
                user_id=record.user_id,
                course_id=record.course_id,
                course_version_id=record.course_version_id,
                enrollment_id=record.enrollment_id,
                completed_at=record.completed_at,
                signed_by=record.signed_by,
                locked_at=record.locked_at,
            ),
        )

    async def update_training_record(self, record: TrainingRecord) -> None:
        await update_row(
            self._session,
            TrainingRecordRow,
            record.id,
            course_version_id=record.course_version_id,
            enrollment_id=record.enrollment_id,
            completed_at=record.completed_at,
            signed_by=record.signed_by,
            locked_at=record.locked_at,
        )

    # --- certificates ---

    async def get_certificate_by_number(self, number: str) -> Certificate | None:
        return await self._one_certificate(CertificateRow.certificate_number == number)

    async def get_certificate_for_enrollment(
        self, enrollment_id: UUID
    ) -> Certificate | None:
        return await self._one_certificate(CertificateRow.enrollment_id == enrollment_id)

    async def get_certificate_for_path_enrollment(
        self, path_enrollment_id: UUID
    ) -> Certificate | None:
        return await self._one_certificate(
            CertificateRow.path_enrollment_id == path_enrollment_id
        )

    async def list_certificates(self, user_id: UUID) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.issued_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def add_certificate(self, certificate: Certificate) -> None:
        await insert_row(
            self._session,
            CertificateRow(
                id=certificate.id,
                certificate_number=certificate.certificate_number,
                user_id=certificate.user_id,
                title=certificate.title,
                issued_at=certificate.issued_at,
                training_record_id=certificate.training_record_id,
                enrollment_id=certificate.enrollment_id,
                path_enrollment_id=certificate.path_enrollment_id,
            ),
        )

    async def _one_certificate(self, *where) -> Certificate | None:
        stmt = select(CertificateRow).where(*where)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    # --- badges ---

    async def get_badge(self, badge_id: UUID) -> Badge | None:
        row = await self._session.get(BadgeRow, badge_id)
        if row is None:
            return None
        return _row_to_badge(row)

    async def add_badge(self, badge: Badge) -> None:
        await insert_row(
            self._session,
            BadgeRow(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                required_course_ids=list(badge.required_course_ids),
            ),
        )

    async def list_badges_requiring(self, course_id: UUID) -> list[Badge]:
        stmt = select(BadgeRow).where(BadgeRow.required_course_ids.any(course_id))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_badge(r) for r in rows]

    async def get_user_badge(self, user_id: UUID, badge_id: UUID) -> UserBadge | None:
        stmt = select(UserBadgeRow).where(
            UserBadgeRow.user_id == user_id, UserBadgeRow.badge_id == badge_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user_badge(row)

    async def list_user_badges(self, user_id: UUID) -> list[UserBadge]:
        stmt = (
            select(UserBadgeRow)
            .where(UserBadgeRow.user_id == user_id)
            .order_by(UserBadgeRow.awarded_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user_badge(r) for r in rows]

    async def add_user_badge(self, user_badge: UserBadge) -> None:
        await insert_row(
            self._session,
            UserBadgeRow(
                id=user_badge.id,
                user_id=user_badge.user_id,
                badge_id=user_badge.badge_id,
                awarded_at=user_badge.awarded_at,
                reason=user_badge.reason,
                course_version_id=user_badge.course_version_id,
            ),
        )


def _row_to_record(row: TrainingRecordRow) -> TrainingRecord:
    return TrainingRecord(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        course_version_id=row.course_version_id,
        enrollment_id=row.enrollment_id,
        completed_at=row.completed_at,
        locked_at=row.locked_at,
        signed_by=row.signed_by,
    )


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        certificate_number=row.certificate_number,
        user_id=row.user_id,
        title=row.title,
        issued_at=row.issued_at,
        training_record_id=row.training_record_id,
        enrollment_id=row.enrollment_id,
        path_enrollment_id=row.path_enrollment_id,
    )


def _row_to_badge(row: BadgeRow) -> Badge:
    return Badge(
        id=row.id,
        name=row.name,
        required_course_ids=tuple(row.required_course_ids or ()),
        description=row.description or "",
    )


def _row_to_user_badge(row: UserBadgeRow) -> UserBadge:
    return UserBadge(
        id=row.id,
        user_id=row.user_id,
        badge_id=row.badge_id,
        awarded_at=row.awarded_at,
        reason=row.reason,
        course_version_id=row.course_version_id,
    )
