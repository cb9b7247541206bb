"""Course catalogue: browse courses, author sections and lessons."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from lms.api.dependencies import get_catalog, require_capability, require_user
from lms.models.course import Course, Lesson, Section
from lms.models.principal import Capability, Principal
from lms.services.catalog_service import CatalogService

router = APIRouter(prefix="/v1", tags=["courses"])

_author = require_capability(Capability.MANAGE_COURSES)


class CourseIn(BaseModel):
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9][a-z0-9-]*$")
    title: str = Field(min_length=1, max_length=500)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    discounted_price: Decimal | None = Field(
        default=None, ge=0, max_digits=10, decimal_places=2
    )
    enrollment_limit: int | None = Field(default=None, ge=0)
    status: Literal["draft", "published", "archived"] = "draft"


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    price: float
    discounted_price: float | None
    effective_price: float
    enrollment_limit: int | None
    total_enrollments: int
    status: str

    @classmethod
    def from_domain(cls, c: Course) -> CourseOut:
        return cls(
            id=str(c.id),
            slug=c.slug,
            title=c.title,
            price=float(c.price),
            discounted_price=(
                float(c.discounted_price) if c.discounted_price is not None else None
            ),
            effective_price=float(c.effective_price),
            enrollment_limit=c.enrollment_limit,
            total_enrollments=c.total_enrollments,
            status=c.status,
        )


class SectionIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    position: int = 0


class LessonIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    position: int = 0


class LessonOut(BaseModel):
    id: str
    section_id: str
    course_id: str
    title: str
    position: int

    @classmethod
    def from_domain(cls, lesson: Lesson) -> LessonOut:
        return cls(
            id=str(lesson.id),
            section_id=str(lesson.section_id),
            course_id=str(lesson.course_id),
            title=lesson.title,
            position=lesson.position,
        )


class SectionOut(BaseModel):
    id: str
    course_id: str
    title: str
    position: int
    lessons: list[LessonOut] = []

    @classmethod
    def from_domain(cls, s: Section, lessons: list[Lesson] | None = None) -> SectionOut:
        return cls(
            id=str(s.id),
            course_id=str(s.course_id),
            title=s.title,
            position=s.position,
            lessons=[LessonOut.from_domain(l) for l in lessons or []],
        )


class CourseDetailOut(BaseModel):
    course: CourseOut
    sections: list[SectionOut]
    total_lessons: int


@router.get("/courses", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[CourseOut]:
    return [CourseOut.from_domain(c) for c in await catalog.list_courses(status_filter)]


@router.post("/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    principal: Annotated[Principal, Depends(_author)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> CourseOut:
    course = await catalog.create_course(
        slug=body.slug,
        title=body.title,
        price=body.price,
        discounted_price=body.discounted_price,
        enrollment_limit=body.enrollment_limit,
        status=body.status,
        created_by=principal.user_uuid,
    )
    return CourseOut.from_domain(course)


@router.get("/courses/{course_id}", response_model=CourseDetailOut)
async def get_course(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> CourseDetailOut:
    course, sections, lessons = await catalog.get_course(course_id)
    by_section: dict[UUID, list[Lesson]] = {}
    for lesson in lessons:
        by_section.setdefault(lesson.section_id, []).append(lesson)
    return CourseDetailOut(
        course=CourseOut.from_domain(course),
        sections=[SectionOut.from_domain(s, by_section.get(s.id)) for s in sections],
        total_lessons=len(lessons),
    )


@router.post(
    "/courses/{course_id}/sections",
    response_model=SectionOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_section(
    course_id: UUID,
    body: SectionIn,
    _principal: Annotated[Principal, Depends(_author)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> SectionOut:
    section = await catalog.add_section(course_id, body.title, body.position)
    return SectionOut.from_domain(section)


@router.post(
    "/sections/{section_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    section_id: UUID,
    body: LessonIn,
    _principal: Annotated[Principal, Depends(_author)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> LessonOut:
    lesson = await catalog.add_lesson(section_id, body.title, body.position)
    return LessonOut.from_domain(lesson)


@router.delete("/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lesson(
    lesson_id: UUID,
    _principal: Annotated[Principal, Depends(_author)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> Response:
    await catalog.delete_lesson(lesson_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
