"""Per-lesson completion and the course percentage derived from it.

A student's enrollment percentage is never written directly: every
toggle recomputes it from the lesson progress rows, so the figure on the
enrollment always matches round(100 * done / total).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from lms.core.errors import EnrollmentSuspended, LessonNotFound, NotEnrolled
from lms.core.metrics import LESSON_PROGRESS_UPDATES
from lms.models.enrollment import (
    CourseProgress,
    Enrollment,
    EnrollmentStatus,
    LessonProgress,
    ProgressSnapshot,
    apply_completion_toggle,
    apply_progress,
    progress_percentage,
)
from lms.repos.bundle import Repos

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class LessonStatus:
    lesson_id: UUID
    completed: bool
    completed_at: datetime | None


class ProgressTracker:
    def __init__(
        self, repos: Repos, *, now: Callable[[], datetime] = _utcnow
    ) -> None:
        self._repos = repos
        self._now = now

    async def record_lesson_completion(
        self,
        course_id: UUID,
        student_id: UUID,
        lesson_id: UUID,
        completed: bool,
    ) -> ProgressSnapshot:
        """Mark a lesson complete (or not) and refresh the enrollment.

        Raises NotEnrolled, EnrollmentSuspended, LessonNotFound.
        """
        enrollment = await self._require_enrollment(course_id, student_id)
        if enrollment.status is EnrollmentStatus.SUSPENDED:
            raise EnrollmentSuspended(course_id=str(course_id))

        lesson = await self._repos.courses.get_lesson(lesson_id)
        if lesson is None or lesson.course_id != course_id:
            raise LessonNotFound(lesson_id=str(lesson_id))

        now = self._now()
        progress = self._repos.lesson_progress
        existing = await progress.get(course_id, student_id, lesson_id)
        if existing is None:
            # Un-completing a lesson that was never touched leaves no row
            if completed:
                await progress.save(
                    LessonProgress.new(
                        course_id=course_id,
                        student_id=student_id,
                        lesson_id=lesson_id,
                        completed=True,
                        now=now,
                    )
                )
        else:
            toggled = apply_completion_toggle(existing, completed, now)
            if toggled is not existing:
                await progress.save(toggled)

        LESSON_PROGRESS_UPDATES.labels(completed=str(completed).lower()).inc()

        done, total, percentage = await self._recompute(enrollment, now)
        logger.info(
            "Lesson %s completed=%s for student=%s: %d/%d (%d%%)",
            lesson_id,
            completed,
            student_id,
            done,
            total,
            percentage,
            extra={"course_id": str(course_id), "student_id": str(student_id)},
        )
        return ProgressSnapshot(
            lesson_id=lesson_id,
            completed=completed,
            percentage=percentage,
            done=done,
            total=total,
        )

    async def get_course_progress(
        self, course_id: UUID, student_id: UUID
    ) -> CourseProgress:
        enrollment = await self._require_enrollment(course_id, student_id)
        completed_ids = await self._repos.lesson_progress.completed_lesson_ids(
            course_id, student_id
        )
        done, total, percentage = await self._recompute(
            enrollment, self._now(), completed_ids=completed_ids
        )
        refreshed = await self._repos.enrollments.get(course_id, student_id)
        status = refreshed.status if refreshed is not None else enrollment.status
        return CourseProgress(
            course_id=course_id,
            total_lessons=total,
            completed_lessons=done,
            progress_percentage=percentage,
            completed_lesson_ids=tuple(completed_ids),
            enrollment_status=status,
        )

    async def get_lesson_progress(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> LessonStatus:
        await self._require_enrollment(course_id, student_id)
        lesson = await self._repos.courses.get_lesson(lesson_id)
        if lesson is None or lesson.course_id != course_id:
            raise LessonNotFound(lesson_id=str(lesson_id))

        row = await self._repos.lesson_progress.get(course_id, student_id, lesson_id)
        if row is None:
            return LessonStatus(lesson_id=lesson_id, completed=False, completed_at=None)
        return LessonStatus(
            lesson_id=lesson_id, completed=row.completed, completed_at=row.completed_at
        )

    async def _require_enrollment(
        self, course_id: UUID, student_id: UUID
    ) -> Enrollment:
        enrollment = await self._repos.enrollments.get(course_id, student_id)
        if enrollment is None:
            raise NotEnrolled(course_id=str(course_id))
        return enrollment

    async def _recompute(
        self,
        enrollment: Enrollment,
        now: datetime,
        *,
        completed_ids: list[UUID] | None = None,
    ) -> tuple[int, int, int]:
        """Derive (done, total, percentage); write the enrollment only if it moved."""
        if completed_ids is None:
            completed_ids = await self._repos.lesson_progress.completed_lesson_ids(
                enrollment.course_id, enrollment.student_id
            )
        total = await self._repos.courses.count_lessons(enrollment.course_id)
        # A course with no lessons sits at 0% and can never be completed
        done = len(completed_ids) if total else 0
        percentage = progress_percentage(done, total)

        updated = apply_progress(enrollment, percentage, now)
        if updated != enrollment:
            await self._repos.enrollments.update(updated)
            if updated.status is not enrollment.status:
                logger.info(
                    "Enrollment %s moved %s -> %s",
                    enrollment.id,
                    enrollment.status.value,
                    updated.status.value,
                    extra={
                        "course_id": str(enrollment.course_id),
                        "student_id": str(enrollment.student_id),
                    },
                )
        return done, total, percentage
