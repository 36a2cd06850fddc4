"""Training records and certificates.

Certificate verification is public: anyone holding a certificate number
can confirm it was issued and to whom.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from lms.api.dependencies import current_user_id, get_services
from lms.api.enrollments import (
    CertificateOut,
    TrainingRecordOut,
    certificate_out,
    training_record_out,
)
from lms.services.wiring import LearningServices

router = APIRouter(tags=["credentials"])

UserId = Annotated[UUID, Depends(current_user_id)]
Services = Annotated[LearningServices, Depends(get_services)]


@router.get("/v1/certificates/{certificate_number}/verify", response_model=CertificateOut)
async def verify_certificate(certificate_number: str, services: Services) -> CertificateOut:
    return certificate_out(await services.cascade.verify_certificate(certificate_number))


@router.get("/v1/me/certificates", response_model=list[CertificateOut])
async def my_certificates(user_id: UserId, services: Services) -> list[CertificateOut]:
    return [certificate_out(c) for c in await services.cascade.list_certificates(user_id)]


@router.get("/v1/me/training-records", response_model=list[TrainingRecordOut])
async def my_training_records(user_id: UserId, services: Services) -> list[TrainingRecordOut]:
    records = await services.cascade.list_training_records(user_id)
    return [training_record_out(r) for r in records]
