"""PostgreSQL implementation of LiveSessionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import LiveSessionRow
from lms.models.live_session import LiveSession


class PgLiveSessionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, session: LiveSession) -> None:
        row = LiveSessionRow(
            id=session.id,
            course_id=session.course_id,
            title=session.title,
            description=session.description,
            start_time=session.start_time,
            duration_minutes=session.duration_minutes,
            meeting_id=session.meeting_id,
            start_url=session.start_url,
            join_url=session.join_url,
            password=session.password,
            is_active=session.is_active,
        )
        self._session.add(row)
        await self._session.flush()

    async def get(self, session_id: UUID) -> LiveSession | None:
        stmt = select(LiveSessionRow).where(LiveSessionRow.id == session_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_session(row)

    async def list_for_course(self, course_id: UUID) -> list[LiveSession]:
        stmt = (
            select(LiveSessionRow)
            .where(LiveSessionRow.course_id == course_id)
            .order_by(LiveSessionRow.start_time)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_session(row) for row in rows]

    async def delete(self, session_id: UUID) -> bool:
        stmt = delete(LiveSessionRow).where(LiveSessionRow.id == session_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_session(row: LiveSessionRow) -> LiveSession:
    return LiveSession(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        description=row.description,
        start_time=row.start_time,
        duration_minutes=row.duration_minutes,
        meeting_id=row.meeting_id,
        start_url=row.start_url,
        join_url=row.join_url,
        password=row.password,
        is_active=row.is_active,
    )
