"""PostgreSQL implementation of CourseRepo.

Lessons carry no course_id column; the course is reached through the
lesson's section.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import CourseRow, LessonRow, SectionRow
from lms.models.course import Course, Lesson, Section
from lms.repos.errors import DuplicateKeyError


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course(row)

    async def get_by_slug(self, slug: str) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course(row)

    async def get_many(self, course_ids: list[UUID]) -> dict[UUID, Course]:
        if not course_ids:
            return {}
        stmt = select(CourseRow).where(CourseRow.id.in_(course_ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return {row.id: _row_to_course(row) for row in rows}

    async def list_all(self, status: str | None = None) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.title)
        if status is not None:
            stmt = stmt.where(CourseRow.status == status)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(row) for row in rows]

    async def add(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            slug=course.slug,
            title=course.title,
            price=course.price,
            discounted_price=course.discounted_price,
            enrollment_limit=course.enrollment_limit,
            total_enrollments=course.total_enrollments,
            status=course.status,
            created_by=course.created_by,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise DuplicateKeyError("slug already exists") from exc

    async def adjust_enrollment_count(self, course_id: UUID, delta: int) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(
                total_enrollments=func.greatest(CourseRow.total_enrollments + delta, 0)
            )
        )
        await self._session.execute(stmt)

    async def add_section(self, section: Section) -> None:
        row = SectionRow(
            id=section.id,
            course_id=section.course_id,
            title=section.title,
            position=section.position,
        )
        self._session.add(row)
        await self._session.flush()

    async def get_section(self, section_id: UUID) -> Section | None:
        stmt = select(SectionRow).where(SectionRow.id == section_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_section(row)

    async def list_sections(self, course_id: UUID) -> list[Section]:
        stmt = (
            select(SectionRow)
            .where(SectionRow.course_id == course_id)
            .order_by(SectionRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_section(row) for row in rows]

    async def add_lesson(self, lesson: Lesson) -> None:
        row = LessonRow(
            id=lesson.id,
            section_id=lesson.section_id,
            title=lesson.title,
            position=lesson.position,
        )
        self._session.add(row)
        await self._session.flush()

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        stmt = (
            select(LessonRow, SectionRow.course_id)
            .join(SectionRow, LessonRow.section_id == SectionRow.id)
            .where(LessonRow.id == lesson_id)
        )
        result = (await self._session.execute(stmt)).one_or_none()
        if result is None:
            return None
        row, course_id = result
        return _row_to_lesson(row, course_id)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .join(SectionRow, LessonRow.section_id == SectionRow.id)
            .where(SectionRow.course_id == course_id)
            .order_by(SectionRow.position, LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(row, course_id) for row in rows]

    async def count_lessons(self, course_id: UUID) -> int:
        stmt = (
            select(func.count(LessonRow.id))
            .join(SectionRow, LessonRow.section_id == SectionRow.id)
            .where(SectionRow.course_id == course_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def delete_lesson(self, lesson_id: UUID) -> bool:
        stmt = delete(LessonRow).where(LessonRow.id == lesson_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        price=row.price,
        discounted_price=row.discounted_price,
        enrollment_limit=row.enrollment_limit,
        total_enrollments=row.total_enrollments,
        status=row.status,
        created_by=row.created_by,
    )


def _row_to_section(row: SectionRow) -> Section:
    return Section(
        id=row.id, course_id=row.course_id, title=row.title, position=row.position
    )


def _row_to_lesson(row: LessonRow, course_id: UUID) -> Lesson:
    return Lesson(
        id=row.id,
        section_id=row.section_id,
        course_id=course_id,
        title=row.title,
        position=row.position,
    )
