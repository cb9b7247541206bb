from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from lms.repos.bundle import Repos
from tests.conftest import seed_course, seed_user, user_headers


def _seed(repos: Repos, **course_kwargs):
    async def scenario():
        student = await seed_user(repos)
        admin = await seed_user(repos, role="admin")
        course, lessons = await seed_course(repos, **course_kwargs)
        return student, admin, course, lessons

    return asyncio.run(scenario())


# ---- self enrollment ----


def test_enroll_in_free_course(client: TestClient, repos: Repos) -> None:
    student, _, course, _ = _seed(repos)

    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=user_headers(student))

    assert resp.status_code == 201
    data = resp.json()
    assert data["course_id"] == str(course.id)
    assert data["student_id"] == str(student.id)
    assert data["status"] == "active"
    assert data["progress_percentage"] == 0
    assert data["completed_at"] is None


def test_enroll_in_paid_course_returns_402_with_price(
    client: TestClient, repos: Repos
) -> None:
    student, _, course, _ = _seed(repos, price="499")

    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=user_headers(student))

    assert resp.status_code == 402
    detail = resp.json()["detail"]
    assert detail["kind"] == "payment_required"
    assert detail["data"] == {"requires_payment": True, "price": 499}


def test_enroll_twice_is_conflict(client: TestClient, repos: Repos) -> None:
    student, _, course, _ = _seed(repos)
    headers = user_headers(student)

    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "conflict"


def test_enroll_unknown_course_is_404(client: TestClient, repos: Repos) -> None:
    student, _, _, _ = _seed(repos)
    resp = client.post(
        "/v1/courses/00000000-0000-0000-0000-000000000000/enroll",
        headers=user_headers(student),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["message"] == "Course not found"


def test_enrollment_status_before_and_after(client: TestClient, repos: Repos) -> None:
    student, _, course, _ = _seed(repos)
    headers = user_headers(student)

    before = client.get(f"/v1/courses/{course.id}/enrollment-status", headers=headers)
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
    after = client.get(f"/v1/courses/{course.id}/enrollment-status", headers=headers)

    assert before.json() == {
        "is_enrolled": False,
        "enrollment_status": None,
        "price": 0.0,
        "requires_payment": False,
    }
    assert after.json()["is_enrolled"] is True
    assert after.json()["enrollment_status"] == "active"


def test_my_courses_lists_enrollments(client: TestClient, repos: Repos) -> None:
    student, _, course, _ = _seed(repos, lessons=3)
    headers = user_headers(student)
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

    resp = client.get("/v1/enrollments/my-courses", headers=headers)

    assert resp.status_code == 200
    rows = resp.json()
    assert len(rows) == 1
    assert rows[0]["course_slug"] == course.slug
    assert rows[0]["total_lessons"] == 3
    assert rows[0]["completed_lessons"] == 0


# ---- admin ----


def test_admin_enrolls_student_into_paid_course(client: TestClient, repos: Repos) -> None:
    student, admin, course, _ = _seed(repos, price="499")

    resp = client.post(
        f"/v1/courses/{course.id}/enrollments",
        json={"student_id": str(student.id)},
        headers=user_headers(admin),
    )

    assert resp.status_code == 201
    assert resp.json()["student_id"] == str(student.id)


def test_admin_enroll_respects_limit(client: TestClient, repos: Repos) -> None:
    _, admin, course, _ = _seed(repos, enrollment_limit=2)
    students = asyncio.run(_students(repos, 3))

    statuses = [
        client.post(
            f"/v1/courses/{course.id}/enrollments",
            json={"student_id": str(s.id)},
            headers=user_headers(admin),
        ).status_code
        for s in students
    ]

    assert statuses == [201, 201, 409]


async def _students(repos: Repos, n: int):
    return [await seed_user(repos) for _ in range(n)]


def test_admin_enroll_of_teacher_is_422(client: TestClient, repos: Repos) -> None:
    _, admin, course, _ = _seed(repos)
    teacher = asyncio.run(seed_user(repos, role="teacher"))

    resp = client.post(
        f"/v1/courses/{course.id}/enrollments",
        json={"student_id": str(teacher.id)},
        headers=user_headers(admin),
    )

    assert resp.status_code == 422
    assert resp.json()["detail"]["kind"] == "invalid_input"


def test_roster_with_stats(client: TestClient, repos: Repos) -> None:
    student, admin, course, _ = _seed(repos)
    client.post(f"/v1/courses/{course.id}/enroll", headers=user_headers(student))

    resp = client.get(f"/v1/courses/{course.id}/enrollments", headers=user_headers(admin))

    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"] == {"total": 1, "active": 1, "completed": 0, "suspended": 0}
    assert data["enrollments"][0]["student"]["email"] == student.email


def test_patch_status_to_completed(client: TestClient, repos: Repos) -> None:
    student, admin, course, _ = _seed(repos, lessons=2)
    client.post(f"/v1/courses/{course.id}/enroll", headers=user_headers(student))

    resp = client.patch(
        f"/v1/courses/{course.id}/enrollments/{student.id}",
        json={"status": "completed"},
        headers=user_headers(admin),
    )
    progress = client.get(f"/v1/courses/{course.id}/progress", headers=user_headers(student))

    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    assert resp.json()["progress_percentage"] == 100
    assert progress.json()["completed_lessons"] == 2
    assert progress.json()["enrollment_status"] == "completed"


def test_patch_status_rejects_unknown_value(client: TestClient, repos: Repos) -> None:
    student, admin, course, _ = _seed(repos)
    client.post(f"/v1/courses/{course.id}/enroll", headers=user_headers(student))

    resp = client.patch(
        f"/v1/courses/{course.id}/enrollments/{student.id}",
        json={"status": "archived"},
        headers=user_headers(admin),
    )

    assert resp.status_code == 422
    assert resp.json()["detail"]["data"] == {"status": "archived"}


def test_delete_enrollment(client: TestClient, repos: Repos) -> None:
    student, admin, course, _ = _seed(repos)
    client.post(f"/v1/courses/{course.id}/enroll", headers=user_headers(student))

    first = client.delete(
        f"/v1/courses/{course.id}/enrollments/{student.id}", headers=user_headers(admin)
    )
    second = client.delete(
        f"/v1/courses/{course.id}/enrollments/{student.id}", headers=user_headers(admin)
    )

    assert first.status_code == 204
    assert second.status_code == 404
    assert asyncio.run(repos.courses.get(course.id)).total_enrollments == 0
