"""Enrollment endpoints.

Students enroll themselves in free courses and list what they are
enrolled in; admins and moderators enroll students directly, change an
enrollment's status, and see a course's roster.  Paid courses go through
/v1/payments instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from lms.api.dependencies import get_ledger, get_repos, require_capability
from lms.models.enrollment import Enrollment, EnrollmentMode
from lms.models.principal import Capability, Principal
from lms.repos.bundle import Repos
from lms.services.enrollment_ledger import EnrollmentLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["enrollments"])

_student = require_capability(Capability.SELF_ENROLL)
_admin_enroll = require_capability(Capability.ADMIN_ENROLL)
_view_all = require_capability(Capability.VIEW_ALL_ENROLLMENTS)


class EnrollmentOut(BaseModel):
    id: str
    course_id: str
    student_id: str
    status: str
    enrolled_at: datetime
    completed_at: datetime | None
    progress_percentage: int

    @classmethod
    def from_domain(cls, e: Enrollment) -> EnrollmentOut:
        return cls(
            id=str(e.id),
            course_id=str(e.course_id),
            student_id=str(e.student_id),
            status=e.status.value,
            enrolled_at=e.enrolled_at,
            completed_at=e.completed_at,
            progress_percentage=e.progress_percentage,
        )


class EnrollmentStatusOut(BaseModel):
    is_enrolled: bool
    enrollment_status: str | None
    price: float
    requires_payment: bool


class MyCourseOut(BaseModel):
    enrollment: EnrollmentOut
    course_id: str
    course_slug: str
    course_title: str
    total_lessons: int
    completed_lessons: int


class StudentOut(BaseModel):
    id: str
    email: str
    name: str


class RosterEntryOut(BaseModel):
    enrollment: EnrollmentOut
    student: StudentOut | None


class RosterStatsOut(BaseModel):
    total: int
    active: int
    completed: int
    suspended: int


class RosterOut(BaseModel):
    enrollments: list[RosterEntryOut]
    stats: RosterStatsOut


class AdminEnrollIn(BaseModel):
    student_id: UUID


class StatusIn(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_self(
    course_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
) -> EnrollmentOut:
    enrollment = await ledger.enroll(course_id, principal.user_uuid, EnrollmentMode.SELF)
    return EnrollmentOut.from_domain(enrollment)


@router.get("/courses/{course_id}/enrollment-status", response_model=EnrollmentStatusOut)
async def enrollment_status(
    course_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
) -> EnrollmentStatusOut:
    view = await ledger.enrollment_status(course_id, principal.user_uuid)
    return EnrollmentStatusOut(
        is_enrolled=view.is_enrolled,
        enrollment_status=view.enrollment_status.value if view.enrollment_status else None,
        price=float(view.price),
        requires_payment=view.requires_payment,
    )


@router.get("/enrollments/my-courses", response_model=list[MyCourseOut])
async def my_courses(
    principal: Annotated[Principal, Depends(_student)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
) -> list[MyCourseOut]:
    rows = await ledger.list_student_courses(principal.user_uuid)
    return [
        MyCourseOut(
            enrollment=EnrollmentOut.from_domain(r.enrollment),
            course_id=str(r.course.id),
            course_slug=r.course.slug,
            course_title=r.course.title,
            total_lessons=r.total_lessons,
            completed_lessons=r.completed_lessons,
        )
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Admin / moderator
# ---------------------------------------------------------------------------


@router.get("/courses/{course_id}/enrollments", response_model=RosterOut)
async def course_roster(
    course_id: UUID,
    principal: Annotated[Principal, Depends(_view_all)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> RosterOut:
    enrollments, stats = await ledger.list_course_enrollments(course_id)
    students = await repos.users.get_many([e.student_id for e in enrollments])
    logger.info(
        "Roster for course=%s requested by user=%s", course_id, principal.user_id
    )

    entries = []
    for e in enrollments:
        user = students.get(e.student_id)
        entries.append(
            RosterEntryOut(
                enrollment=EnrollmentOut.from_domain(e),
                student=(
                    StudentOut(id=str(user.id), email=user.email, name=user.name)
                    if user
                    else None
                ),
            )
        )
    return RosterOut(
        enrollments=entries,
        stats=RosterStatsOut(
            total=stats.total,
            active=stats.active,
            completed=stats.completed,
            suspended=stats.suspended,
        ),
    )


@router.post(
    "/courses/{course_id}/enrollments",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def admin_enroll(
    course_id: UUID,
    body: AdminEnrollIn,
    principal: Annotated[Principal, Depends(_admin_enroll)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
) -> EnrollmentOut:
    logger.info(
        "Admin enroll of student=%s in course=%s by user=%s",
        body.student_id,
        course_id,
        principal.user_id,
    )
    enrollment = await ledger.enroll(course_id, body.student_id, EnrollmentMode.ADMIN)
    return EnrollmentOut.from_domain(enrollment)


@router.delete(
    "/courses/{course_id}/enrollments/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def admin_unenroll(
    course_id: UUID,
    student_id: UUID,
    _principal: Annotated[Principal, Depends(_admin_enroll)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
) -> Response:
    await ledger.unenroll(course_id, student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/courses/{course_id}/enrollments/{student_id}",
    response_model=EnrollmentOut,
)
async def admin_update_status(
    course_id: UUID,
    student_id: UUID,
    body: StatusIn,
    _principal: Annotated[Principal, Depends(_admin_enroll)],
    ledger: Annotated[EnrollmentLedger, Depends(get_ledger)],
) -> EnrollmentOut:
    enrollment = await ledger.update_status(course_id, student_id, body.status)
    return EnrollmentOut.from_domain(enrollment)
