from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class LiveSession:
    """A scheduled live class backed by an external video meeting."""

    id: UUID
    course_id: UUID
    title: str
    start_time: datetime
    duration_minutes: int
    meeting_id: str
    start_url: str
    join_url: str
    description: str | None = None
    password: str | None = None
    is_active: bool = True

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        start_time: datetime,
        duration_minutes: int,
        meeting_id: str,
        start_url: str,
        join_url: str,
        description: str | None = None,
        password: str | None = None,
    ) -> LiveSession:
        return LiveSession(
            id=uuid4(),
            course_id=course_id,
            title=title,
            start_time=start_time,
            duration_minutes=duration_minutes,
            meeting_id=meeting_id,
            start_url=start_url,
            join_url=join_url,
            description=description,
            password=password,
        )
