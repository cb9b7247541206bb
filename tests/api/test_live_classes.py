from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from lms.repos.bundle import Repos
from lms.services.meeting_client import ZoomMeetingClient
from tests.conftest import MeetingProviderStub, seed_course, seed_user, user_headers

_BODY = {
    "title": "Week 1 live Q&A",
    "description": "Bring questions",
    "start_time": "2026-11-02T15:30:00Z",
    "duration_minutes": 45,
    "timezone": "UTC",
}


def test_teacher_schedules_and_student_joins(
    client: TestClient, repos: Repos, meetings: ZoomMeetingClient
) -> None:
    teacher = asyncio.run(seed_user(repos, role="teacher"))
    student = asyncio.run(seed_user(repos))
    course, _ = asyncio.run(seed_course(repos))

    created = client.post(
        f"/v1/courses/{course.id}/live-sessions", json=_BODY, headers=user_headers(teacher)
    )
    as_teacher = client.get(
        f"/v1/courses/{course.id}/live-sessions", headers=user_headers(teacher)
    ).json()
    as_student = client.get(
        f"/v1/courses/{course.id}/live-sessions", headers=user_headers(student)
    ).json()

    assert created.status_code == 201
    assert created.json()["meeting_id"] == "8000001"
    assert as_teacher[0]["start_url"] is not None
    assert as_student[0]["start_url"] is None
    assert as_student[0]["join_url"] == "https://meet.example.com/j/8000001"


def test_students_cannot_schedule(
    client: TestClient, repos: Repos, meetings: ZoomMeetingClient
) -> None:
    student = asyncio.run(seed_user(repos))
    course, _ = asyncio.run(seed_course(repos))

    resp = client.post(
        f"/v1/courses/{course.id}/live-sessions", json=_BODY, headers=user_headers(student)
    )

    assert resp.status_code == 403


def test_scheduling_without_provider_is_503(client: TestClient, repos: Repos) -> None:
    teacher = asyncio.run(seed_user(repos, role="teacher"))
    course, _ = asyncio.run(seed_course(repos))

    resp = client.post(
        f"/v1/courses/{course.id}/live-sessions", json=_BODY, headers=user_headers(teacher)
    )

    assert resp.status_code == 503
    assert resp.json()["detail"]["message"] == "Video meeting provider is not configured"


def test_cancel_succeeds_when_provider_delete_fails(
    client: TestClient,
    repos: Repos,
    meetings: ZoomMeetingClient,
    meeting_stub: MeetingProviderStub,
) -> None:
    teacher = asyncio.run(seed_user(repos, role="teacher"))
    course, _ = asyncio.run(seed_course(repos))
    headers = user_headers(teacher)
    session_id = client.post(
        f"/v1/courses/{course.id}/live-sessions", json=_BODY, headers=headers
    ).json()["id"]
    meeting_stub.delete_status = 502

    resp = client.delete(f"/v1/live-sessions/{session_id}", headers=headers)

    assert resp.status_code == 204
    assert client.get(f"/v1/courses/{course.id}/live-sessions", headers=headers).json() == []


def test_provider_failure_on_create_is_502(
    client: TestClient,
    repos: Repos,
    meetings: ZoomMeetingClient,
    meeting_stub: MeetingProviderStub,
) -> None:
    teacher = asyncio.run(seed_user(repos, role="teacher"))
    course, _ = asyncio.run(seed_course(repos))
    meeting_stub.create_status = 500

    resp = client.post(
        f"/v1/courses/{course.id}/live-sessions", json=_BODY, headers=user_headers(teacher)
    )

    assert resp.status_code == 502
    assert resp.json()["detail"]["kind"] == "upstream_failure"
