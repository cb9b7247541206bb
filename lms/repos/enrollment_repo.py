from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.enrollment import Enrollment, LessonProgress
from lms.repos.errors import DuplicateKeyError


class EnrollmentRepo(Protocol):
    async def get(self, course_id: UUID, student_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update(self, enrollment: Enrollment) -> None: ...
    async def delete(self, course_id: UUID, student_id: UUID) -> bool: ...
    async def list_for_course(self, course_id: UUID) -> list[Enrollment]: ...
    async def count_for_course(self, course_id: UUID) -> int: ...
    async def list_for_student(self, student_id: UUID) -> list[Enrollment]: ...


class LessonProgressRepo(Protocol):
    async def get(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None: ...
    async def save(self, progress: LessonProgress) -> None: ...
    async def completed_lesson_ids(
        self, course_id: UUID, student_id: UUID
    ) -> list[UUID]: ...
    async def delete_for_student(self, course_id: UUID, student_id: UUID) -> int: ...
    async def delete_for_lesson(self, lesson_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._by_pair: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, course_id: UUID, student_id: UUID) -> Enrollment | None:
        return self._by_pair.get((course_id, student_id))

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.course_id, enrollment.student_id)
        if key in self._by_pair:
            raise DuplicateKeyError("enrollment already exists")
        self._by_pair[key] = enrollment

    async def update(self, enrollment: Enrollment) -> None:
        key = (enrollment.course_id, enrollment.student_id)
        if key not in self._by_pair:
            raise KeyError("enrollment not found")
        self._by_pair[key] = enrollment

    async def delete(self, course_id: UUID, student_id: UUID) -> bool:
        return self._by_pair.pop((course_id, student_id), None) is not None

    async def list_for_course(self, course_id: UUID) -> list[Enrollment]:
        rows = [e for e in self._by_pair.values() if e.course_id == course_id]
        return sorted(rows, key=lambda e: e.enrolled_at, reverse=True)

    async def count_for_course(self, course_id: UUID) -> int:
        return sum(1 for e in self._by_pair.values() if e.course_id == course_id)

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        rows = [e for e in self._by_pair.values() if e.student_id == student_id]
        return sorted(rows, key=lambda e: e.enrolled_at, reverse=True)


class InMemoryLessonProgressRepo:
    def __init__(self) -> None:
        self._rows: dict[tuple[UUID, UUID, UUID], LessonProgress] = {}

    async def get(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        return self._rows.get((course_id, student_id, lesson_id))

    async def save(self, progress: LessonProgress) -> None:
        key = (progress.course_id, progress.student_id, progress.lesson_id)
        self._rows[key] = progress

    async def completed_lesson_ids(
        self, course_id: UUID, student_id: UUID
    ) -> list[UUID]:
        return [
            p.lesson_id
            for p in self._rows.values()
            if p.course_id == course_id and p.student_id == student_id and p.completed
        ]

    async def delete_for_student(self, course_id: UUID, student_id: UUID) -> int:
        doomed = [
            key for key in self._rows if key[0] == course_id and key[1] == student_id
        ]
        for key in doomed:
            del self._rows[key]
        return len(doomed)

    async def delete_for_lesson(self, lesson_id: UUID) -> int:
        doomed = [key for key in self._rows if key[2] == lesson_id]
        for key in doomed:
            del self._rows[key]
        return len(doomed)
