"""Enrollment and per-lesson progress records.

The completion rules live here as pure functions so the progress tracker,
the ledger's admin override, and the tests all apply the same arithmetic.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID, uuid4


class EnrollmentStatus(enum.StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"


class EnrollmentMode(enum.StrEnum):
    SELF = "self"
    ADMIN = "admin"
    PAYMENT = "payment"


@dataclass(frozen=True, slots=True)
class Enrollment:
    id: UUID
    course_id: UUID
    student_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: datetime | None = None
    progress_percentage: int = 0

    @staticmethod
    def new(*, course_id: UUID, student_id: UUID, now: datetime) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            course_id=course_id,
            student_id=student_id,
            status=EnrollmentStatus.ACTIVE,
            enrolled_at=now,
        )


@dataclass(frozen=True, slots=True)
class LessonProgress:
    id: UUID
    course_id: UUID
    student_id: UUID
    lesson_id: UUID
    completed: bool
    completed_at: datetime | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        student_id: UUID,
        lesson_id: UUID,
        completed: bool,
        now: datetime,
    ) -> LessonProgress:
        return LessonProgress(
            id=uuid4(),
            course_id=course_id,
            student_id=student_id,
            lesson_id=lesson_id,
            completed=completed,
            completed_at=now if completed else None,
        )


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Result of a single lesson toggle."""

    lesson_id: UUID
    completed: bool
    percentage: int
    done: int
    total: int


@dataclass(frozen=True, slots=True)
class CourseProgress:
    course_id: UUID
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    completed_lesson_ids: tuple[UUID, ...]
    enrollment_status: EnrollmentStatus


def progress_percentage(done: int, total: int) -> int:
    """round(100 * done / total), halves rounded up; 0 for an empty course."""
    if total <= 0:
        return 0
    done = max(0, min(done, total))
    return (200 * done + total) // (2 * total)


def apply_progress(enrollment: Enrollment, percentage: int, now: datetime) -> Enrollment:
    """Write ``percentage`` onto the enrollment and keep status consistent.

    100% promotes to completed (stamping completed_at on promotion); below
    100% a completed enrollment drops back to active.  Suspended
    enrollments keep their status.
    """
    if enrollment.status is EnrollmentStatus.SUSPENDED:
        return replace(enrollment, progress_percentage=percentage)

    if percentage == 100:
        if enrollment.status is EnrollmentStatus.COMPLETED:
            return replace(enrollment, progress_percentage=percentage)
        return replace(
            enrollment,
            progress_percentage=percentage,
            status=EnrollmentStatus.COMPLETED,
            completed_at=now,
        )

    return replace(
        enrollment,
        progress_percentage=percentage,
        status=EnrollmentStatus.ACTIVE,
        completed_at=None,
    )


def apply_completion_toggle(
    existing: LessonProgress, completed: bool, now: datetime
) -> LessonProgress:
    """Flip a lesson's completion; re-marking the current value is a no-op."""
    if existing.completed == completed:
        return existing
    return replace(
        existing,
        completed=completed,
        completed_at=now if completed else None,
    )
