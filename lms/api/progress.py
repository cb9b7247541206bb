"""Lesson completion and course progress endpoints (students)."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lms.api.dependencies import get_tracker, require_capability
from lms.models.enrollment import ProgressSnapshot
from lms.models.principal import Capability, Principal
from lms.services.progress_tracker import ProgressTracker

router = APIRouter(prefix="/v1/courses/{course_id}", tags=["progress"])

_student = require_capability(Capability.SELF_ENROLL)


class LessonToggleOut(BaseModel):
    lesson_id: str
    completed: bool
    progress_percentage: int
    completed_lessons: int
    total_lessons: int


class CourseProgressOut(BaseModel):
    course_id: str
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    completed_lesson_ids: list[str]
    enrollment_status: str


class LessonProgressOut(BaseModel):
    lesson_id: str
    completed: bool
    completed_at: datetime | None


def _toggle_out(snapshot: ProgressSnapshot) -> LessonToggleOut:
    return LessonToggleOut(
        lesson_id=str(snapshot.lesson_id),
        completed=snapshot.completed,
        progress_percentage=snapshot.percentage,
        completed_lessons=snapshot.done,
        total_lessons=snapshot.total,
    )


@router.get("/progress", response_model=CourseProgressOut)
async def course_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    tracker: Annotated[ProgressTracker, Depends(get_tracker)],
) -> CourseProgressOut:
    progress = await tracker.get_course_progress(course_id, principal.user_uuid)
    return CourseProgressOut(
        course_id=str(progress.course_id),
        total_lessons=progress.total_lessons,
        completed_lessons=progress.completed_lessons,
        progress_percentage=progress.progress_percentage,
        completed_lesson_ids=[str(i) for i in progress.completed_lesson_ids],
        enrollment_status=progress.enrollment_status.value,
    )


@router.post("/lessons/{lesson_id}/complete", response_model=LessonToggleOut)
async def complete_lesson(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    tracker: Annotated[ProgressTracker, Depends(get_tracker)],
) -> LessonToggleOut:
    snapshot = await tracker.record_lesson_completion(
        course_id, principal.user_uuid, lesson_id, True
    )
    return _toggle_out(snapshot)


@router.delete("/lessons/{lesson_id}/complete", response_model=LessonToggleOut)
async def uncomplete_lesson(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    tracker: Annotated[ProgressTracker, Depends(get_tracker)],
) -> LessonToggleOut:
    snapshot = await tracker.record_lesson_completion(
        course_id, principal.user_uuid, lesson_id, False
    )
    return _toggle_out(snapshot)


@router.get("/lessons/{lesson_id}/progress", response_model=LessonProgressOut)
async def lesson_progress(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(_student)],
    tracker: Annotated[ProgressTracker, Depends(get_tracker)],
) -> LessonProgressOut:
    status = await tracker.get_lesson_progress(course_id, principal.user_uuid, lesson_id)
    return LessonProgressOut(
        lesson_id=str(status.lesson_id),
        completed=status.completed,
        completed_at=status.completed_at,
    )
