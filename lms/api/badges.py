from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from lms.api.dependencies import current_user_id, get_services, require_author
from lms.api.enrollments import UserBadgeOut, user_badge_out
from lms.models.credential import Badge
from lms.models.principal import Principal
from lms.services.wiring import LearningServices

router = APIRouter(tags=["badges"])

UserId = Annotated[UUID, Depends(current_user_id)]
Services = Annotated[LearningServices, Depends(get_services)]
Author = Annotated[Principal, Depends(require_author)]


class BadgeIn(BaseModel):
    name: str
    required_course_ids: list[UUID] = []
    description: str = ""


class BadgeOut(BaseModel):
    id: UUID
    name: str
    description: str
    required_course_ids: list[UUID]


class EligibilityOut(BaseModel):
    badge_id: UUID
    eligible: bool


def badge_out(b: Badge) -> BadgeOut:
    return BadgeOut(
        id=b.id,
        name=b.name,
        description=b.description,
        required_course_ids=list(b.required_course_ids),
    )


@router.post("/v1/badges", response_model=BadgeOut, status_code=status.HTTP_201_CREATED)
async def create_badge(payload: BadgeIn, _author: Author, services: Services) -> BadgeOut:
    badge = await services.badges.create_badge(
        payload.name, payload.required_course_ids, description=payload.description
    )
    return badge_out(badge)


@router.get("/v1/badges/{badge_id}/eligibility", response_model=EligibilityOut)
async def check_eligibility(
    badge_id: UUID, user_id: UserId, services: Services
) -> EligibilityOut:
    eligible = await services.badges.check_eligibility(user_id, badge_id)
    return EligibilityOut(badge_id=badge_id, eligible=eligible)


@router.post(
    "/v1/badges/{badge_id}/award",
    response_model=UserBadgeOut,
    status_code=status.HTTP_201_CREATED,
)
async def award_badge(badge_id: UUID, user_id: UserId, services: Services) -> UserBadgeOut:
    user_badge = await services.badges.award_if_eligible(user_id, badge_id)
    if user_badge is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="badge not awarded: not eligible or already held",
        )
    return user_badge_out(user_badge)


@router.get("/v1/me/badges", response_model=list[UserBadgeOut])
async def my_badges(user_id: UserId, services: Services) -> list[UserBadgeOut]:
    return [user_badge_out(b) for b in await services.badges.list_user_badges(user_id)]
