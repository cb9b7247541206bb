"""Demo: walk a paid course from authoring to completion using FastAPI TestClient.

The payment gateway is a local httpx.MockTransport, so nothing leaves the
machine.  Run with:
    python scripts/demo_checkout_flow.py
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json

import httpx
from fastapi.testclient import TestClient

from lms.api.dependencies import get_payment_gateway, reset_memory_repos
from lms.main import app
from lms.models.user import User
from lms.services import token_service
from lms.services.payment_gateway import RazorpayGateway

KEY_ID = "rzp_test_demo"
KEY_SECRET = "demo-key-secret"
WEBHOOK_SECRET = "demo-webhook-secret"


def _fake_gateway(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(
        200,
        json={
            "id": "order_DEMO0001",
            "amount": body["amount"],
            "currency": body["currency"],
            "receipt": body["receipt"],
            "status": "created",
        },
    )


def _headers(user: User) -> dict[str, str]:
    token = token_service.create_access_token(sub=str(user.id), roles=[user.role])
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)

    # ── Seed data ───────────────────────────────────────────────────
    repos = reset_memory_repos()
    teacher = User.new(email="teacher@example.com", name="Teacher", role="teacher")
    student = User.new(email="student@example.com", name="Student", role="student")
    for user in (teacher, student):
        asyncio.run(repos.users.add(user))

    gateway = RazorpayGateway(
        key_id=KEY_ID,
        key_secret=KEY_SECRET,
        webhook_secret=WEBHOOK_SECRET,
        http=httpx.AsyncClient(transport=httpx.MockTransport(_fake_gateway)),
    )
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    as_teacher = _headers(teacher)
    as_student = _headers(student)

    # ── Step 1: author a paid course with two lessons ──────────────
    r = client.post(
        "/v1/courses",
        json={
            "slug": "demo-course",
            "title": "Demo Course",
            "price": "499.00",
            "status": "published",
        },
        headers=as_teacher,
    )
    course_id = r.json()["id"]
    section_id = client.post(
        f"/v1/courses/{course_id}/sections", json={"title": "Basics"}, headers=as_teacher
    ).json()["id"]
    lesson_ids = [
        client.post(
            f"/v1/sections/{section_id}/lessons",
            json={"title": title},
            headers=as_teacher,
        ).json()["id"]
        for title in ("Welcome", "Wrap-up")
    ]
    print(f"1. POST /v1/courses (+section, 2 lessons) → {r.status_code}  price=499.00")

    # ── Step 2: free enroll is refused ──────────────────────────────
    r = client.post(f"/v1/courses/{course_id}/enroll", headers=as_student)
    print(f"2. POST enroll                → {r.status_code}  {r.json()['detail']['data']}")

    # ── Step 3: open a gateway order ───────────────────────────────
    r = client.post(f"/v1/payments/orders/{course_id}", headers=as_student)
    order = r.json()
    print(
        f"3. POST /v1/payments/orders   → {r.status_code}  "
        f"order={order['order_id']} amount={order['amount']} {order['currency']}"
    )

    # ── Step 4: the checkout widget hands back a signed payment ────
    payment_id = "pay_DEMO0001"
    signature = hmac.new(
        KEY_SECRET.encode(),
        f"{order['order_id']}|{payment_id}".encode(),
        hashlib.sha256,
    ).hexdigest()
    r = client.post(
        "/v1/payments/verify",
        json={
            "order_id": order["order_id"],
            "payment_id": payment_id,
            "signature": signature,
        },
        headers=as_student,
    )
    print(f"4. POST /v1/payments/verify   → {r.status_code}  verified={r.json()['verified']}")

    # ── Step 5: the gateway's webhook arrives late ──────────────────
    raw = json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {"entity": {"id": payment_id, "order_id": order["order_id"]}}
            },
        }
    ).encode()
    r = client.post(
        "/v1/payments/webhook",
        content=raw,
        headers={
            "X-Razorpay-Signature": hmac.new(
                WEBHOOK_SECRET.encode(), raw, hashlib.sha256
            ).hexdigest()
        },
    )
    print(f"5. POST /v1/payments/webhook  → {r.status_code}  outcome={r.json()['outcome']}")

    # ── Step 6: complete both lessons ───────────────────────────────
    for n, lesson_id in enumerate(lesson_ids, start=1):
        r = client.post(
            f"/v1/courses/{course_id}/lessons/{lesson_id}/complete", headers=as_student
        )
        print(
            f"6.{n} POST lesson complete   → {r.status_code}  "
            f"progress={r.json()['progress_percentage']}%"
        )

    r = client.get(f"/v1/courses/{course_id}/progress", headers=as_student)
    print(f"7. GET  progress              → {r.status_code}  status={r.json()['enrollment_status']}")

    app.dependency_overrides.clear()
    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
