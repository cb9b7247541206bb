"""Live classes scheduled on the external meeting provider."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from lms.core.errors import (
    CourseNotFound,
    LiveSessionNotFound,
    MeetingProviderError,
    MeetingsNotConfigured,
)
from lms.models.live_session import LiveSession
from lms.repos.bundle import Repos
from lms.services.meeting_client import ZoomMeetingClient

logger = logging.getLogger(__name__)


class LiveSessionService:
    def __init__(self, repos: Repos, meetings: ZoomMeetingClient | None) -> None:
        self._repos = repos
        self._meetings = meetings

    async def schedule(
        self,
        course_id: UUID,
        *,
        title: str,
        start_time: datetime,
        duration_minutes: int = 60,
        description: str | None = None,
        timezone: str | None = None,
    ) -> LiveSession:
        if self._meetings is None:
            raise MeetingsNotConfigured()
        if await self._repos.courses.get(course_id) is None:
            raise CourseNotFound(course_id=str(course_id))

        meeting = await self._meetings.create_meeting(
            topic=title,
            start_time=start_time,
            duration=duration_minutes,
            agenda=description,
            timezone=timezone,
        )
        session = LiveSession.new(
            course_id=course_id,
            title=title,
            description=description,
            start_time=start_time,
            duration_minutes=duration_minutes,
            meeting_id=meeting.id,
            start_url=meeting.start_url,
            join_url=meeting.join_url,
            password=meeting.password,
        )
        await self._repos.live_sessions.add(session)
        logger.info(
            "Scheduled live session %s meeting=%s",
            session.id,
            meeting.id,
            extra={"course_id": str(course_id)},
        )
        return session

    async def list_for_course(self, course_id: UUID) -> list[LiveSession]:
        if await self._repos.courses.get(course_id) is None:
            raise CourseNotFound(course_id=str(course_id))
        return await self._repos.live_sessions.list_for_course(course_id)

    async def cancel(self, session_id: UUID) -> None:
        """Delete the session; the provider-side meeting is removed best-effort."""
        session = await self._repos.live_sessions.get(session_id)
        if session is None:
            raise LiveSessionNotFound(session_id=str(session_id))

        if self._meetings is not None:
            try:
                await self._meetings.delete_meeting(session.meeting_id)
            except MeetingProviderError as exc:
                logger.warning(
                    "Could not delete meeting %s: %s", session.meeting_id, exc.message
                )
        await self._repos.live_sessions.delete(session_id)
        logger.info("Cancelled live session %s", session_id)
