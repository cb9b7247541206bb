from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.live_session import LiveSession


class LiveSessionRepo(Protocol):
    async def add(self, session: LiveSession) -> None: ...
    async def get(self, session_id: UUID) -> LiveSession | None: ...
    async def list_for_course(self, course_id: UUID) -> list[LiveSession]: ...
    async def delete(self, session_id: UUID) -> bool: ...


class InMemoryLiveSessionRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, LiveSession] = {}

    async def add(self, session: LiveSession) -> None:
        self._by_id[session.id] = session

    async def get(self, session_id: UUID) -> LiveSession | None:
        return self._by_id.get(session_id)

    async def list_for_course(self, course_id: UUID) -> list[LiveSession]:
        rows = [s for s in self._by_id.values() if s.course_id == course_id]
        return sorted(rows, key=lambda s: s.start_time)

    async def delete(self, session_id: UUID) -> bool:
        return self._by_id.pop(session_id, None) is not None
