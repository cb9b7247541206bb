"""Course authoring: courses, sections, lessons."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from lms.core.errors import CourseNotFound, LessonNotFound, SectionNotFound, SlugTaken
from lms.models.course import Course, Lesson, Section
from lms.repos.bundle import Repos
from lms.repos.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, repos: Repos) -> None:
        self._repos = repos

    async def create_course(
        self,
        *,
        slug: str,
        title: str,
        price: Decimal = Decimal("0"),
        discounted_price: Decimal | None = None,
        enrollment_limit: int | None = None,
        status: str = "draft",
        created_by: UUID | None = None,
    ) -> Course:
        slug = slug.strip().lower()
        course = Course.new(
            slug=slug,
            title=title.strip(),
            price=price,
            discounted_price=discounted_price,
            enrollment_limit=enrollment_limit,
            status=status,
            created_by=created_by,
        )
        try:
            await self._repos.courses.add(course)
        except DuplicateKeyError:
            raise SlugTaken(slug=slug) from None
        logger.info("Created course %s slug=%s", course.id, slug)
        return course

    async def list_courses(self, status: str | None = None) -> list[Course]:
        return await self._repos.courses.list_all(status)

    async def get_course(self, course_id: UUID) -> tuple[Course, list[Section], list[Lesson]]:
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise CourseNotFound(course_id=str(course_id))
        sections = await self._repos.courses.list_sections(course_id)
        lessons = await self._repos.courses.list_lessons(course_id)
        return course, sections, lessons

    async def add_section(self, course_id: UUID, title: str, position: int = 0) -> Section:
        if await self._repos.courses.get(course_id) is None:
            raise CourseNotFound(course_id=str(course_id))
        section = Section.new(course_id=course_id, title=title.strip(), position=position)
        await self._repos.courses.add_section(section)
        return section

    async def add_lesson(self, section_id: UUID, title: str, position: int = 0) -> Lesson:
        section = await self._repos.courses.get_section(section_id)
        if section is None:
            raise SectionNotFound(section_id=str(section_id))
        lesson = Lesson.new(
            section_id=section_id,
            course_id=section.course_id,
            title=title.strip(),
            position=position,
        )
        await self._repos.courses.add_lesson(lesson)
        return lesson

    async def delete_lesson(self, lesson_id: UUID) -> None:
        """Remove a lesson and every student's progress row for it.

        Enrollment percentages are not rewritten here; each one catches up
        the next time the student's progress is read or toggled.
        """
        lesson = await self._repos.courses.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFound(lesson_id=str(lesson_id))
        dropped = await self._repos.lesson_progress.delete_for_lesson(lesson_id)
        await self._repos.courses.delete_lesson(lesson_id)
        logger.info(
            "Deleted lesson %s (%d progress rows)",
            lesson_id,
            dropped,
            extra={"course_id": str(lesson.course_id)},
        )
