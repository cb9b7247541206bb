"""Enrollment lifecycle: enroll, unenroll, admin status changes.

The ledger owns the course's cached ``total_enrollments`` counter and the
capacity check, which counts enrollment rows rather than trusting that
cache.  The storage uniqueness constraint on
(course_id, student_id) is the final word on duplicates; the existence
check before the insert only gives the common case a clean error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from lms.core.errors import (
    AlreadyEnrolled,
    CourseNotFound,
    EnrollmentLimitReached,
    EnrollmentNotFound,
    InvalidStatus,
    NotAStudent,
    PaymentRequired,
    UserNotFound,
)
from lms.core.metrics import ENROLLMENT_REJECTIONS, ENROLLMENTS_CREATED
from lms.models.course import Course
from lms.models.enrollment import (
    Enrollment,
    EnrollmentMode,
    EnrollmentStatus,
    LessonProgress,
    apply_completion_toggle,
)
from lms.models.user import User
from lms.repos.bundle import Repos
from lms.repos.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class EnrollmentStats:
    total: int
    active: int
    completed: int
    suspended: int


@dataclass(frozen=True, slots=True)
class StudentCourse:
    """One row of a student's "my courses" listing."""

    enrollment: Enrollment
    course: Course
    total_lessons: int
    completed_lessons: int


@dataclass(frozen=True, slots=True)
class EnrollmentStatusView:
    is_enrolled: bool
    enrollment_status: EnrollmentStatus | None
    price: Decimal
    requires_payment: bool


class EnrollmentLedger:
    def __init__(
        self, repos: Repos, *, now: Callable[[], datetime] = _utcnow
    ) -> None:
        self._repos = repos
        self._now = now

    async def enroll(
        self,
        course_id: UUID,
        student_id: UUID,
        mode: EnrollmentMode = EnrollmentMode.SELF,
    ) -> Enrollment:
        """Create an active enrollment at 0%.

        Check order: course, (admin) student exists and is a student,
        duplicate, (self) price, (self/admin) capacity.  Payment mode has
        already been paid for, so price and capacity do not apply.
        """
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise CourseNotFound(course_id=str(course_id))

        if mode is EnrollmentMode.ADMIN:
            await self._require_student(student_id)

        if await self._repos.enrollments.get(course_id, student_id) is not None:
            self._reject("already_enrolled", course_id, student_id)
            raise AlreadyEnrolled(course_id=str(course_id))

        if mode is EnrollmentMode.SELF and course.effective_price > 0:
            self._reject("payment_required", course_id, student_id)
            raise PaymentRequired(requires_payment=True, price=course.effective_price)

        if mode is not EnrollmentMode.PAYMENT:
            await self._check_capacity(course, student_id)

        enrollment = Enrollment.new(
            course_id=course_id, student_id=student_id, now=self._now()
        )
        try:
            await self._repos.enrollments.add(enrollment)
        except DuplicateKeyError:
            self._reject("already_enrolled", course_id, student_id)
            raise AlreadyEnrolled(course_id=str(course_id)) from None

        await self._repos.courses.adjust_enrollment_count(course_id, +1)
        ENROLLMENTS_CREATED.labels(mode=mode.value).inc()
        logger.info(
            "Enrolled student=%s in course=%s mode=%s",
            student_id,
            course_id,
            mode.value,
            extra={"course_id": str(course_id), "student_id": str(student_id)},
        )
        return enrollment

    async def unenroll(self, course_id: UUID, student_id: UUID) -> None:
        """Remove the enrollment and every lesson progress row of the pair."""
        if not await self._repos.enrollments.delete(course_id, student_id):
            raise EnrollmentNotFound(course_id=str(course_id), student_id=str(student_id))

        dropped = await self._repos.lesson_progress.delete_for_student(
            course_id, student_id
        )
        await self._repos.courses.adjust_enrollment_count(course_id, -1)
        logger.info(
            "Unenrolled student=%s from course=%s (%d progress rows dropped)",
            student_id,
            course_id,
            dropped,
            extra={"course_id": str(course_id), "student_id": str(student_id)},
        )

    async def update_status(
        self, course_id: UUID, student_id: UUID, status: str
    ) -> Enrollment:
        """Admin override of an enrollment's status.

        ``completed`` forces 100% and back-fills a completed lesson row for
        every lesson, so a later recomputation agrees with the override.
        """
        try:
            target = EnrollmentStatus(status)
        except ValueError:
            raise InvalidStatus(status=status) from None

        enrollment = await self._repos.enrollments.get(course_id, student_id)
        if enrollment is None:
            raise EnrollmentNotFound(course_id=str(course_id), student_id=str(student_id))

        now = self._now()
        if target is EnrollmentStatus.COMPLETED:
            await self._backfill_lessons(course_id, student_id, now)
            updated = replace(
                enrollment,
                status=target,
                progress_percentage=100,
                completed_at=enrollment.completed_at or now,
            )
        elif target is EnrollmentStatus.ACTIVE:
            updated = replace(enrollment, status=target, completed_at=None)
        else:
            updated = replace(enrollment, status=target)

        await self._repos.enrollments.update(updated)
        logger.info(
            "Enrollment %s status %s -> %s by override",
            enrollment.id,
            enrollment.status.value,
            target.value,
            extra={"course_id": str(course_id), "student_id": str(student_id)},
        )
        return updated

    async def list_course_enrollments(
        self, course_id: UUID
    ) -> tuple[list[Enrollment], EnrollmentStats]:
        if await self._repos.courses.get(course_id) is None:
            raise CourseNotFound(course_id=str(course_id))

        enrollments = await self._repos.enrollments.list_for_course(course_id)
        by_status = {s: 0 for s in EnrollmentStatus}
        for e in enrollments:
            by_status[e.status] += 1
        stats = EnrollmentStats(
            total=len(enrollments),
            active=by_status[EnrollmentStatus.ACTIVE],
            completed=by_status[EnrollmentStatus.COMPLETED],
            suspended=by_status[EnrollmentStatus.SUSPENDED],
        )
        return enrollments, stats

    async def list_student_courses(self, student_id: UUID) -> list[StudentCourse]:
        enrollments = await self._repos.enrollments.list_for_student(student_id)
        courses = await self._repos.courses.get_many([e.course_id for e in enrollments])

        rows: list[StudentCourse] = []
        for e in enrollments:
            course = courses.get(e.course_id)
            if course is None:
                continue
            total = await self._repos.courses.count_lessons(e.course_id)
            done = await self._repos.lesson_progress.completed_lesson_ids(
                e.course_id, student_id
            )
            rows.append(
                StudentCourse(
                    enrollment=e,
                    course=course,
                    total_lessons=total,
                    completed_lessons=len(done),
                )
            )
        return rows

    async def enrollment_status(
        self, course_id: UUID, student_id: UUID
    ) -> EnrollmentStatusView:
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise CourseNotFound(course_id=str(course_id))

        enrollment = await self._repos.enrollments.get(course_id, student_id)
        price = course.effective_price
        return EnrollmentStatusView(
            is_enrolled=enrollment is not None,
            enrollment_status=enrollment.status if enrollment else None,
            price=price,
            requires_payment=price > 0,
        )

    async def _require_student(self, student_id: UUID) -> User:
        user = await self._repos.users.get_by_id(student_id)
        if user is None:
            raise UserNotFound(user_id=str(student_id))
        if not user.is_student:
            self._reject("not_a_student", None, student_id)
            raise NotAStudent(user_id=str(student_id), role=user.role)
        return user

    async def _check_capacity(self, course: Course, student_id: UUID) -> None:
        # Soft limit: concurrent enrollments can overshoot by the race window.
        # Counts rows; total_enrollments is a display cache that cascades skip.
        if not course.has_enrollment_limit:
            return
        current = await self._repos.enrollments.count_for_course(course.id)
        if current >= course.enrollment_limit:
            self._reject("limit_reached", course.id, student_id)
            raise EnrollmentLimitReached(
                course_id=str(course.id), enrollment_limit=course.enrollment_limit
            )

    async def _backfill_lessons(
        self, course_id: UUID, student_id: UUID, now: datetime
    ) -> None:
        progress = self._repos.lesson_progress
        for lesson in await self._repos.courses.list_lessons(course_id):
            existing = await progress.get(course_id, student_id, lesson.id)
            if existing is None:
                await progress.save(
                    LessonProgress.new(
                        course_id=course_id,
                        student_id=student_id,
                        lesson_id=lesson.id,
                        completed=True,
                        now=now,
                    )
                )
            elif not existing.completed:
                await progress.save(apply_completion_toggle(existing, True, now))

    @staticmethod
    def _reject(reason: str, course_id: UUID | None, student_id: UUID) -> None:
        ENROLLMENT_REJECTIONS.labels(reason=reason).inc()
        logger.info(
            "Enrollment refused (%s) student=%s course=%s",
            reason,
            student_id,
            course_id,
        )
