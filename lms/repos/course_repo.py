from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from lms.models.course import Course, Lesson, Section
from lms.repos.errors import DuplicateKeyError


class CourseRepo(Protocol):
    """Courses plus their section/lesson outline."""

    async def get(self, course_id: UUID) -> Course | None: ...
    async def get_by_slug(self, slug: str) -> Course | None: ...
    async def get_many(self, course_ids: list[UUID]) -> dict[UUID, Course]: ...
    async def list_all(self, status: str | None = None) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def adjust_enrollment_count(self, course_id: UUID, delta: int) -> None: ...

    async def add_section(self, section: Section) -> None: ...
    async def get_section(self, section_id: UUID) -> Section | None: ...
    async def list_sections(self, course_id: UUID) -> list[Section]: ...

    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def count_lessons(self, course_id: UUID) -> int: ...
    async def delete_lesson(self, lesson_id: UUID) -> bool: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}
        self._sections: dict[UUID, Section] = {}
        self._lessons: dict[UUID, Lesson] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def get_by_slug(self, slug: str) -> Course | None:
        for course in self._by_id.values():
            if course.slug == slug:
                return course
        return None

    async def get_many(self, course_ids: list[UUID]) -> dict[UUID, Course]:
        return {cid: self._by_id[cid] for cid in course_ids if cid in self._by_id}

    async def list_all(self, status: str | None = None) -> list[Course]:
        courses = list(self._by_id.values())
        if status is not None:
            courses = [c for c in courses if c.status == status]
        return sorted(courses, key=lambda c: c.title)

    async def add(self, course: Course) -> None:
        if await self.get_by_slug(course.slug) is not None:
            raise DuplicateKeyError("slug already exists")
        self._by_id[course.id] = course

    async def adjust_enrollment_count(self, course_id: UUID, delta: int) -> None:
        course = self._by_id.get(course_id)
        if course is None:
            return
        self._by_id[course_id] = replace(
            course, total_enrollments=max(0, course.total_enrollments + delta)
        )

    async def add_section(self, section: Section) -> None:
        self._sections[section.id] = section

    async def get_section(self, section_id: UUID) -> Section | None:
        return self._sections.get(section_id)

    async def list_sections(self, course_id: UUID) -> list[Section]:
        sections = [s for s in self._sections.values() if s.course_id == course_id]
        return sorted(sections, key=lambda s: s.position)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        positions = {s.id: s.position for s in self._sections.values()}
        lessons = [l for l in self._lessons.values() if l.course_id == course_id]
        return sorted(lessons, key=lambda l: (positions.get(l.section_id, 0), l.position))

    async def count_lessons(self, course_id: UUID) -> int:
        return sum(1 for l in self._lessons.values() if l.course_id == course_id)

    async def delete_lesson(self, lesson_id: UUID) -> bool:
        return self._lessons.pop(lesson_id, None) is not None
