from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from lms.repos.bundle import Repos
from tests.conftest import auth, mint_token, seed_user, user_headers


def _teacher(repos: Repos) -> dict[str, str]:
    return user_headers(asyncio.run(seed_user(repos, role="teacher")))


def test_author_a_course_outline(client: TestClient, repos: Repos) -> None:
    headers = _teacher(repos)

    course = client.post(
        "/v1/courses",
        json={
            "slug": "async-python",
            "title": "Async Python",
            "price": "999.00",
            "discounted_price": "499.00",
            "status": "published",
        },
        headers=headers,
    )
    assert course.status_code == 201
    course_id = course.json()["id"]
    assert course.json()["effective_price"] == 499.0
    assert course.json()["total_enrollments"] == 0

    section = client.post(
        f"/v1/courses/{course_id}/sections", json={"title": "Basics"}, headers=headers
    )
    assert section.status_code == 201
    lesson = client.post(
        f"/v1/sections/{section.json()['id']}/lessons",
        json={"title": "Event loops"},
        headers=headers,
    )
    assert lesson.status_code == 201
    assert lesson.json()["course_id"] == course_id

    detail = client.get(f"/v1/courses/{course_id}", headers=headers).json()
    assert detail["total_lessons"] == 1
    assert detail["sections"][0]["lessons"][0]["title"] == "Event loops"


def test_duplicate_slug_is_409(client: TestClient, repos: Repos) -> None:
    headers = _teacher(repos)
    body = {"slug": "dupe", "title": "Dupe"}

    assert client.post("/v1/courses", json=body, headers=headers).status_code == 201
    resp = client.post("/v1/courses", json=body, headers=headers)

    assert resp.status_code == 409
    assert resp.json()["detail"]["message"] == "Slug already taken"


def test_invalid_slug_is_rejected(client: TestClient, repos: Repos) -> None:
    resp = client.post(
        "/v1/courses", json={"slug": "Not A Slug", "title": "x"}, headers=_teacher(repos)
    )
    assert resp.status_code == 422


def test_list_filters_by_status(client: TestClient, repos: Repos) -> None:
    headers = _teacher(repos)
    client.post("/v1/courses", json={"slug": "live", "title": "Live", "status": "published"}, headers=headers)
    client.post("/v1/courses", json={"slug": "wip", "title": "WIP"}, headers=headers)

    resp = client.get("/v1/courses", params={"status": "published"}, headers=headers)

    assert resp.status_code == 200
    assert [c["slug"] for c in resp.json()] == ["live"]


def test_delete_lesson(client: TestClient, repos: Repos) -> None:
    headers = _teacher(repos)
    course_id = client.post(
        "/v1/courses", json={"slug": "c1", "title": "C1"}, headers=headers
    ).json()["id"]
    section_id = client.post(
        f"/v1/courses/{course_id}/sections", json={"title": "S"}, headers=headers
    ).json()["id"]
    lesson_id = client.post(
        f"/v1/sections/{section_id}/lessons", json={"title": "L"}, headers=headers
    ).json()["id"]

    first = client.delete(f"/v1/lessons/{lesson_id}", headers=headers)
    second = client.delete(f"/v1/lessons/{lesson_id}", headers=headers)

    assert first.status_code == 204
    assert second.status_code == 404


def test_unknown_course_is_404(client: TestClient) -> None:
    resp = client.get(
        "/v1/courses/00000000-0000-0000-0000-000000000000",
        headers=auth(mint_token()),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["kind"] == "not_found"
