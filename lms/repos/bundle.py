"""One handle on every repository a request needs.

Services take a ``Repos`` so the same code runs against the in-memory
store (no DATABASE_URL, tests) and against PostgreSQL.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from lms.repos.course_repo import CourseRepo, InMemoryCourseRepo
from lms.repos.enrollment_repo import (
    EnrollmentRepo,
    InMemoryEnrollmentRepo,
    InMemoryLessonProgressRepo,
    LessonProgressRepo,
)
from lms.repos.live_session_repo import InMemoryLiveSessionRepo, LiveSessionRepo
from lms.repos.payment_repo import InMemoryPaymentRepo, PaymentRepo
from lms.repos.pg_course_repo import PgCourseRepo
from lms.repos.pg_enrollment_repo import PgEnrollmentRepo, PgLessonProgressRepo
from lms.repos.pg_live_session_repo import PgLiveSessionRepo
from lms.repos.pg_payment_repo import PgPaymentRepo
from lms.repos.pg_user_repo import PgUserRepo
from lms.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Repos:
    users: UserRepo
    courses: CourseRepo
    enrollments: EnrollmentRepo
    lesson_progress: LessonProgressRepo
    payments: PaymentRepo
    live_sessions: LiveSessionRepo


def in_memory_repos() -> Repos:
    return Repos(
        users=InMemoryUserRepo(),
        courses=InMemoryCourseRepo(),
        enrollments=InMemoryEnrollmentRepo(),
        lesson_progress=InMemoryLessonProgressRepo(),
        payments=InMemoryPaymentRepo(),
        live_sessions=InMemoryLiveSessionRepo(),
    )


def pg_repos(session: AsyncSession) -> Repos:
    return Repos(
        users=PgUserRepo(session),
        courses=PgCourseRepo(session),
        enrollments=PgEnrollmentRepo(session),
        lesson_progress=PgLessonProgressRepo(session),
        payments=PgPaymentRepo(session),
        live_sessions=PgLiveSessionRepo(session),
    )
