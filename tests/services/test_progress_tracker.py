"""ProgressTracker against the in-memory repositories.

Each test builds its own store and drives the async service with
asyncio.run, so no event loop leaks between tests.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from lms.core.errors import EnrollmentSuspended, LessonNotFound, NotEnrolled
from lms.models.course import Lesson
from lms.models.enrollment import EnrollmentMode, EnrollmentStatus, progress_percentage
from lms.repos.bundle import in_memory_repos
from lms.services.catalog_service import CatalogService
from lms.services.enrollment_ledger import EnrollmentLedger
from lms.services.progress_tracker import ProgressTracker
from tests.conftest import seed_course, seed_user

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        return self.now

    def tick(self, minutes: int = 1) -> None:
        self.now += timedelta(minutes=minutes)


async def _enrolled(lessons: int):
    repos = in_memory_repos()
    clock = _Clock()
    student = await seed_user(repos)
    course, course_lessons = await seed_course(repos, lessons=lessons)
    await EnrollmentLedger(repos, now=clock).enroll(
        course.id, student.id, EnrollmentMode.SELF
    )
    tracker = ProgressTracker(repos, now=clock)
    return repos, clock, tracker, course, student, course_lessons


# ---- percentage arithmetic ----


@pytest.mark.parametrize(
    "done,total,expected",
    [
        (0, 4, 0),
        (3, 4, 75),
        (4, 4, 100),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (0, 0, 0),
        (5, 0, 0),
    ],
)
def test_progress_percentage(done: int, total: int, expected: int) -> None:
    assert progress_percentage(done, total) == expected


# ---- toggles ----


def test_three_of_four_lessons_is_75_and_still_active() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(4)
        for lesson in lessons[:3]:
            clock.tick()
            snap = await tracker.record_lesson_completion(
                course.id, student.id, lesson.id, True
            )
        enrollment = await repos.enrollments.get(course.id, student.id)
        return snap, enrollment

    snap, enrollment = asyncio.run(scenario())
    assert (snap.done, snap.total, snap.percentage) == (3, 4, 75)
    assert enrollment.progress_percentage == 75
    assert enrollment.status is EnrollmentStatus.ACTIVE
    assert enrollment.completed_at is None


def test_last_lesson_completes_the_enrollment() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(4)
        for lesson in lessons:
            clock.tick()
            snap = await tracker.record_lesson_completion(
                course.id, student.id, lesson.id, True
            )
        return snap, await repos.enrollments.get(course.id, student.id), clock.now

    snap, enrollment, finished_at = asyncio.run(scenario())
    assert snap.percentage == 100
    assert enrollment.status is EnrollmentStatus.COMPLETED
    assert enrollment.completed_at == finished_at


def test_uncompleting_a_lesson_demotes_completed_enrollment() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(2)
        for lesson in lessons:
            await tracker.record_lesson_completion(course.id, student.id, lesson.id, True)
        snap = await tracker.record_lesson_completion(
            course.id, student.id, lessons[0].id, False
        )
        return snap, await repos.enrollments.get(course.id, student.id)

    snap, enrollment = asyncio.run(scenario())
    assert snap.percentage == 50
    assert enrollment.status is EnrollmentStatus.ACTIVE
    assert enrollment.completed_at is None


def test_remarking_a_lesson_is_idempotent() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(3)
        first = await tracker.record_lesson_completion(
            course.id, student.id, lessons[0].id, True
        )
        row_before = await repos.lesson_progress.get(course.id, student.id, lessons[0].id)
        clock.tick(30)
        second = await tracker.record_lesson_completion(
            course.id, student.id, lessons[0].id, True
        )
        row_after = await repos.lesson_progress.get(course.id, student.id, lessons[0].id)
        return first, second, row_before, row_after

    first, second, row_before, row_after = asyncio.run(scenario())
    assert first == second
    assert row_after == row_before
    assert row_after.completed_at == T0


def test_uncompleting_an_untouched_lesson_creates_no_row() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(2)
        snap = await tracker.record_lesson_completion(
            course.id, student.id, lessons[1].id, False
        )
        row = await repos.lesson_progress.get(course.id, student.id, lessons[1].id)
        return snap, row

    snap, row = asyncio.run(scenario())
    assert row is None
    assert (snap.done, snap.total, snap.percentage) == (0, 2, 0)


def test_uncomplete_clears_completed_at() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(2)
        await tracker.record_lesson_completion(course.id, student.id, lessons[0].id, True)
        await tracker.record_lesson_completion(course.id, student.id, lessons[0].id, False)
        return await repos.lesson_progress.get(course.id, student.id, lessons[0].id)

    row = asyncio.run(scenario())
    assert row.completed is False
    assert row.completed_at is None


# ---- refusals ----


def test_not_enrolled_is_refused() -> None:
    async def scenario():
        repos = in_memory_repos()
        student = await seed_user(repos)
        course, lessons = await seed_course(repos, lessons=1)
        await ProgressTracker(repos).record_lesson_completion(
            course.id, student.id, lessons[0].id, True
        )

    with pytest.raises(NotEnrolled):
        asyncio.run(scenario())


def test_suspended_enrollment_is_refused() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(2)
        enrollment = await repos.enrollments.get(course.id, student.id)
        await repos.enrollments.update(
            replace(enrollment, status=EnrollmentStatus.SUSPENDED)
        )
        await tracker.record_lesson_completion(course.id, student.id, lessons[0].id, True)

    with pytest.raises(EnrollmentSuspended):
        asyncio.run(scenario())


def test_lesson_from_another_course_is_not_found() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(1)
        _, foreign = await seed_course(repos, lessons=1)
        await tracker.record_lesson_completion(course.id, student.id, foreign[0].id, True)

    with pytest.raises(LessonNotFound):
        asyncio.run(scenario())


def test_unknown_lesson_is_not_found() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(1)
        await tracker.record_lesson_completion(course.id, student.id, uuid4(), True)

    with pytest.raises(LessonNotFound):
        asyncio.run(scenario())


# ---- read side ----


def test_course_with_zero_lessons_reports_zero_percent() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(0)
        return await tracker.get_course_progress(course.id, student.id)

    progress = asyncio.run(scenario())
    assert progress.total_lessons == 0
    assert progress.completed_lessons == 0
    assert progress.progress_percentage == 0
    assert progress.enrollment_status is EnrollmentStatus.ACTIVE


def test_deleting_the_only_lesson_demotes_a_completed_enrollment() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(1)
        await tracker.record_lesson_completion(course.id, student.id, lessons[0].id, True)
        before = await repos.enrollments.get(course.id, student.id)

        await CatalogService(repos).delete_lesson(lessons[0].id)
        progress = await tracker.get_course_progress(course.id, student.id)
        return before, progress, await repos.enrollments.get(course.id, student.id)

    before, progress, stored = asyncio.run(scenario())
    assert before.status is EnrollmentStatus.COMPLETED
    assert progress.total_lessons == 0
    assert progress.progress_percentage == 0
    assert progress.enrollment_status is EnrollmentStatus.ACTIVE
    assert stored.progress_percentage == 0
    assert stored.status is EnrollmentStatus.ACTIVE
    assert stored.completed_at is None


def test_course_progress_lists_completed_lessons() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(3)
        await tracker.record_lesson_completion(course.id, student.id, lessons[2].id, True)
        return lessons, await tracker.get_course_progress(course.id, student.id)

    lessons, progress = asyncio.run(scenario())
    assert progress.completed_lesson_ids == (lessons[2].id,)
    assert progress.progress_percentage == 33


def test_course_progress_catches_up_after_a_lesson_is_added() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(1)
        await tracker.record_lesson_completion(course.id, student.id, lessons[0].id, True)
        completed = await repos.enrollments.get(course.id, student.id)

        section = (await repos.courses.list_sections(course.id))[0]
        await repos.courses.add_lesson(
            Lesson.new(section_id=section.id, course_id=course.id, title="Bonus")
        )
        progress = await tracker.get_course_progress(course.id, student.id)
        return completed, progress, await repos.enrollments.get(course.id, student.id)

    completed, progress, enrollment = asyncio.run(scenario())
    assert completed.status is EnrollmentStatus.COMPLETED
    assert progress.progress_percentage == 50
    assert enrollment.status is EnrollmentStatus.ACTIVE
    assert enrollment.progress_percentage == 50


def test_lesson_progress_defaults_to_incomplete() -> None:
    async def scenario():
        repos, clock, tracker, course, student, lessons = await _enrolled(2)
        await tracker.record_lesson_completion(course.id, student.id, lessons[0].id, True)
        done = await tracker.get_lesson_progress(course.id, student.id, lessons[0].id)
        untouched = await tracker.get_lesson_progress(course.id, student.id, lessons[1].id)
        return done, untouched

    done, untouched = asyncio.run(scenario())
    assert done.completed is True
    assert done.completed_at == T0
    assert untouched.completed is False
    assert untouched.completed_at is None
