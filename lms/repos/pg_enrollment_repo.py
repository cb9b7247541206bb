"""PostgreSQL implementations of EnrollmentRepo and LessonProgressRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import EnrollmentRow, LessonProgressRow
from lms.models.enrollment import Enrollment, EnrollmentStatus, LessonProgress
from lms.repos.errors import DuplicateKeyError


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID, student_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.course_id == course_id,
            EnrollmentRow.student_id == student_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            id=enrollment.id,
            course_id=enrollment.course_id,
            student_id=enrollment.student_id,
            status=enrollment.status.value,
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
            progress_percentage=enrollment.progress_percentage,
        )
        # SAVEPOINT keeps the request transaction usable after a lost race
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise DuplicateKeyError("enrollment already exists") from exc

    async def update(self, enrollment: Enrollment) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment.id)
            .values(
                status=enrollment.status.value,
                completed_at=enrollment.completed_at,
                progress_percentage=enrollment.progress_percentage,
            )
        )
        await self._session.execute(stmt)

    async def delete(self, course_id: UUID, student_id: UUID) -> bool:
        stmt = delete(EnrollmentRow).where(
            EnrollmentRow.course_id == course_id,
            EnrollmentRow.student_id == student_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_for_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
            .order_by(EnrollmentRow.enrolled_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(row) for row in rows]

    async def count_for_course(self, course_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.enrolled_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(row) for row in rows]


class PgLessonProgressRepo:
    """Satisfies the LessonProgressRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.course_id == course_id,
            LessonProgressRow.student_id == student_id,
            LessonProgressRow.lesson_id == lesson_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row)

    async def save(self, progress: LessonProgress) -> None:
        stmt = insert(LessonProgressRow).values(
            id=progress.id,
            course_id=progress.course_id,
            student_id=progress.student_id,
            lesson_id=progress.lesson_id,
            completed=progress.completed,
            completed_at=progress.completed_at,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_lesson_progress_course_student_lesson",
            set_={
                "completed": stmt.excluded.completed,
                "completed_at": stmt.excluded.completed_at,
            },
        )
        await self._session.execute(stmt)

    async def completed_lesson_ids(
        self, course_id: UUID, student_id: UUID
    ) -> list[UUID]:
        stmt = select(LessonProgressRow.lesson_id).where(
            LessonProgressRow.course_id == course_id,
            LessonProgressRow.student_id == student_id,
            LessonProgressRow.completed.is_(True),
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def delete_for_student(self, course_id: UUID, student_id: UUID) -> int:
        stmt = delete(LessonProgressRow).where(
            LessonProgressRow.course_id == course_id,
            LessonProgressRow.student_id == student_id,
        )
        return (await self._session.execute(stmt)).rowcount

    async def delete_for_lesson(self, lesson_id: UUID) -> int:
        stmt = delete(LessonProgressRow).where(LessonProgressRow.lesson_id == lesson_id)
        return (await self._session.execute(stmt)).rowcount


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        course_id=row.course_id,
        student_id=row.student_id,
        status=EnrollmentStatus(row.status),
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
        progress_percentage=row.progress_percentage,
    )


def _row_to_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        id=row.id,
        course_id=row.course_id,
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        completed=row.completed,
        completed_at=row.completed_at,
    )
