"""Course structure authoring: courses, versions, modules and lessons."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from lms.api.dependencies import get_services, require_author
from lms.models.principal import Principal
from lms.services.wiring import LearningServices

router = APIRouter(prefix="/v1/courses", tags=["courses"])

Services = Annotated[LearningServices, Depends(get_services)]
Author = Annotated[Principal, Depends(require_author)]


class CourseIn(BaseModel):
    title: str
    status: str = "published"


class CourseOut(BaseModel):
    id: UUID
    title: str
    status: str


class VersionIn(BaseModel):
    version: str
    status: str = "published"


class VersionOut(BaseModel):
    id: UUID
    course_id: UUID
    version: str
    status: str


class ModuleIn(BaseModel):
    title: str


class ModuleOut(BaseModel):
    id: UUID
    course_version_id: UUID
    position: int
    title: str


class LessonIn(BaseModel):
    title: str
    content_type: str = "rich_text"
    duration_seconds: int | None = Field(default=None, ge=0)


class LessonOut(BaseModel):
    id: UUID
    module_id: UUID
    position: int
    title: str
    content_type: str
    duration_seconds: int | None


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(payload: CourseIn, _author: Author, services: Services) -> CourseOut:
    course = await services.catalog.create_course(payload.title, status=payload.status)
    return CourseOut(id=course.id, title=course.title, status=course.status)


@router.post(
    "/{course_id}/versions", response_model=VersionOut, status_code=status.HTTP_201_CREATED
)
async def add_version(
    course_id: UUID, payload: VersionIn, _author: Author, services: Services
) -> VersionOut:
    v = await services.catalog.add_version(course_id, payload.version, status=payload.status)
    return VersionOut(id=v.id, course_id=v.course_id, version=v.version, status=v.status)


@router.post(
    "/versions/{version_id}/modules",
    response_model=ModuleOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_module(
    version_id: UUID, payload: ModuleIn, _author: Author, services: Services
) -> ModuleOut:
    m = await services.catalog.add_module(version_id, payload.title)
    return ModuleOut(
        id=m.id, course_version_id=m.course_version_id, position=m.position, title=m.title
    )


@router.post(
    "/modules/{module_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    module_id: UUID, payload: LessonIn, _author: Author, services: Services
) -> LessonOut:
    lesson = await services.catalog.add_lesson(
        module_id,
        payload.title,
        content_type=payload.content_type,
        duration_seconds=payload.duration_seconds,
    )
    return LessonOut(
        id=lesson.id,
        module_id=lesson.module_id,
        position=lesson.position,
        title=lesson.title,
        content_type=lesson.content_type,
        duration_seconds=lesson.duration_seconds,
    )
