"""Live class scheduling on the external meeting provider."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from lms.api.dependencies import get_live_sessions, require_capability, require_user
from lms.models.live_session import LiveSession
from lms.models.principal import Capability, Principal
from lms.services.live_sessions import LiveSessionService

router = APIRouter(prefix="/v1", tags=["live-classes"])

_scheduler = require_capability(Capability.SCHEDULE_LIVE_CLASSES)


class LiveSessionIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    start_time: datetime
    duration_minutes: int = Field(default=60, gt=0, le=24 * 60)
    timezone: str | None = None


class LiveSessionOut(BaseModel):
    id: str
    course_id: str
    title: str
    description: str | None
    start_time: datetime
    duration_minutes: int
    meeting_id: str
    join_url: str
    start_url: str | None
    password: str | None
    is_active: bool


def _out(s: LiveSession, *, host: bool) -> LiveSessionOut:
    # The start URL logs in as the meeting host
    return LiveSessionOut(
        id=str(s.id),
        course_id=str(s.course_id),
        title=s.title,
        description=s.description,
        start_time=s.start_time,
        duration_minutes=s.duration_minutes,
        meeting_id=s.meeting_id,
        join_url=s.join_url,
        start_url=s.start_url if host else None,
        password=s.password,
        is_active=s.is_active,
    )


@router.get("/courses/{course_id}/live-sessions", response_model=list[LiveSessionOut])
async def list_live_sessions(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[LiveSessionService, Depends(get_live_sessions)],
) -> list[LiveSessionOut]:
    host = principal.can(Capability.SCHEDULE_LIVE_CLASSES)
    return [_out(s, host=host) for s in await service.list_for_course(course_id)]


@router.post(
    "/courses/{course_id}/live-sessions",
    response_model=LiveSessionOut,
    status_code=status.HTTP_201_CREATED,
)
async def schedule_live_session(
    course_id: UUID,
    body: LiveSessionIn,
    _principal: Annotated[Principal, Depends(_scheduler)],
    service: Annotated[LiveSessionService, Depends(get_live_sessions)],
) -> LiveSessionOut:
    session = await service.schedule(
        course_id,
        title=body.title,
        description=body.description,
        start_time=body.start_time,
        duration_minutes=body.duration_minutes,
        timezone=body.timezone,
    )
    return _out(session, host=True)


@router.delete("/live-sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_live_session(
    session_id: UUID,
    _principal: Annotated[Principal, Depends(_scheduler)],
    service: Annotated[LiveSessionService, Depends(get_live_sessions)],
) -> Response:
    await service.cancel(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
