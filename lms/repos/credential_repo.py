from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.credential import Badge, Certificate, TrainingRecord, UserBadge
from lms.repos.base import MemoryJournal, MemoryTable


class CredentialRepo(Protocol):
    async def get_training_record(
        self, user_id: UUID, course_id: UUID
    ) -> TrainingRecord | None: ...
    async def list_training_records(self, user_id: UUID) -> list[TrainingRecord]: ...
    async def add_training_record(self, record: TrainingRecord) -> None: ...
    async def update_training_record(self, record: TrainingRecord) -> None: ...

    async def get_certificate_by_number(self, number: str) -> Certificate | None: ...
    async def get_certificate_for_enrollment(
        self, enrollment_id: UUID
    ) -> Certificate | None: ...
    async def get_certificate_for_path_enrollment(
        self, path_enrollment_id: UUID
    ) -> Certificate | None: ...
    async def list_certificates(self, user_id: UUID) -> list[Certificate]: ...
    async def add_certificate(self, certificate: Certificate) -> None: ...

    async def get_badge(self, badge_id: UUID) -> Badge | None: ...
    async def add_badge(self, badge: Badge) -> None: ...
    async def list_badges_requiring(self, course_id: UUID) -> list[Badge]: ...
    async def get_user_badge(self, user_id: UUID, badge_id: UUID) -> UserBadge | None: ...
    async def list_user_badges(self, user_id: UUID) -> list[UserBadge]: ...
    async def add_user_badge(self, user_badge: UserBadge) -> None: ...


class InMemoryCredentialRepo:
    def __init__(self, journal: MemoryJournal) -> None:
        self._records: MemoryTable[TrainingRecord] = MemoryTable(
            journal,
            "training_records",
            {"user_course": lambda r: (r.user_id, r.course_id)},
        )
        self._certificates: MemoryTable[Certificate] = MemoryTable(
            journal,
            "certificates",
            {
                "number": lambda c: c.certificate_number,
                "enrollment": lambda c: c.enrollment_id,
                "path_enrollment": lambda c: c.path_enrollment_id,
            },
        )
        self._badges: MemoryTable[Badge] = MemoryTable(journal, "badges")
        self._user_badges: MemoryTable[UserBadge] = MemoryTable(
            journal,
            "user_badges",
            {"user_badge": lambda ub: (ub.user_id, ub.badge_id)},
        )

    async def get_training_record(
        self, user_id: UUID, course_id: UUID
    ) -> TrainingRecord | None:
        return self._records.find_one(user_id=user_id, course_id=course_id)

    async def list_training_records(self, user_id: UUID) -> list[TrainingRecord]:
        return sorted(self._records.find(user_id=user_id), key=lambda r: r.completed_at)

    async def add_training_record(self, record: TrainingRecord) -> None:
        self._records.insert(record)

    async def update_training_record(self, record: TrainingRecord) -> None:
        self._records.update(record)

    async def get_certificate_by_number(self, number: str) -> Certificate | None:
        return self._certificates.find_one(certificate_number=number)

    async def get_certificate_for_enrollment(
        self, enrollment_id: UUID
    ) -> Certificate | None:
        return self._certificates.find_one(enrollment_id=enrollment_id)

    async def get_certificate_for_path_enrollment(
        self, path_enrollment_id: UUID
    ) -> Certificate | None:
        return self._certificates.find_one(path_enrollment_id=path_enrollment_id)

    async def list_certificates(self, user_id: UUID) -> list[Certificate]:
        return sorted(self._certificates.find(user_id=user_id), key=lambda c: c.issued_at)

    async def add_certificate(self, certificate: Certificate) -> None:
        self._certificates.insert(certificate)

    async def get_badge(self, badge_id: UUID) -> Badge | None:
        return self._badges.get(badge_id)

    async def add_badge(self, badge: Badge) -> None:
        self._badges.insert(badge)

    async def list_badges_requiring(self, course_id: UUID) -> list[Badge]:
        return [b for b in self._badges if course_id in b.required_course_ids]

    async def get_user_badge(self, user_id: UUID, badge_id: UUID) -> UserBadge | None:
        return self._user_badges.find_one(user_id=user_id, badge_id=badge_id)

    async def list_user_badges(self, user_id: UUID) -> list[UserBadge]:
        return sorted(self._user_badges.find(user_id=user_id), key=lambda ub: ub.awarded_at)

    async def add_user_badge(self, user_badge: UserBadge) -> None:
        self._user_badges.insert(user_badge)
