from __future__ import annotations

import hashlib
import hmac
import json
import sys
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from lms.api.dependencies import (
    get_meeting_client,
    get_payment_gateway,
    memory_repos,
    reset_memory_repos,
)
from lms.main import app
from lms.models.course import Course, Lesson, Section
from lms.models.user import User
from lms.repos.bundle import Repos
from lms.services import token_service
from lms.services.meeting_client import ZoomMeetingClient
from lms.services.payment_gateway import RazorpayGateway

# Ensure repo root is on sys.path so `import lms` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

GATEWAY_KEY_ID = "rzp_test_Kx81mQa9ZZ"
GATEWAY_KEY_SECRET = "gw-key-secret-5b1f0c"
GATEWAY_WEBHOOK_SECRET = "gw-webhook-secret-77ad2e"
MEETING_CLIENT_SECRET = "meeting-client-secret-c04e"


@pytest.fixture(autouse=True)
def reset_store() -> Repos:
    """Fresh in-memory repositories for every test."""
    return reset_memory_repos()


@pytest.fixture(autouse=True)
def reset_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def repos(reset_store: Repos) -> Repos:
    """The store the HTTP layer reads, for seeding and assertions."""
    return memory_repos()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(user_id: str | None = None, roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=user_id or str(uuid4()), roles=roles)


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


def user_headers(user: User) -> dict[str, str]:
    return auth(mint_token(str(user.id), [user.role]))


# ---------------------------------------------------------------------------
# Seeding helpers (async: repositories are async even in memory)
# ---------------------------------------------------------------------------


async def seed_user(repos: Repos, role: str = "student") -> User:
    user = User.new(email=f"{role}-{uuid4().hex[:8]}@example.com", name=role.title(), role=role)
    await repos.users.add(user)
    return user


async def seed_course(
    repos: Repos,
    *,
    price: str = "0",
    discounted_price: str | None = None,
    lessons: int = 0,
    enrollment_limit: int | None = None,
) -> tuple[Course, list[Lesson]]:
    """A published course with all of its lessons in one section."""
    course = Course.new(
        slug=f"course-{uuid4().hex[:8]}",
        title="Practical Async Python",
        price=Decimal(price),
        discounted_price=Decimal(discounted_price) if discounted_price else None,
        enrollment_limit=enrollment_limit,
        status="published",
    )
    await repos.courses.add(course)

    created: list[Lesson] = []
    if lessons:
        section = Section.new(course_id=course.id, title="Basics")
        await repos.courses.add_section(section)
        for i in range(lessons):
            lesson = Lesson.new(
                section_id=section.id,
                course_id=course.id,
                title=f"Lesson {i + 1}",
                position=i,
            )
            await repos.courses.add_lesson(lesson)
            created.append(lesson)
    return course, created


# ---------------------------------------------------------------------------
# Payment gateway stand-in
# ---------------------------------------------------------------------------


def sign_payment(order_id: str, payment_id: str, secret: str = GATEWAY_KEY_SECRET) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def sign_webhook(body: bytes, secret: str = GATEWAY_WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def webhook_body(event: str, **entity: object) -> bytes:
    kind = "refund" if event.startswith("refund.") else "payment"
    return json.dumps({"event": event, "payload": {kind: {"entity": entity}}}).encode()


class GatewayStub:
    """Answers POST /v1/orders like the real gateway; records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self._seq = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(
                self.fail_with,
                json={"error": {"description": "Authentication failed"}},
            )
        body = json.loads(request.content)
        self._seq += 1
        return httpx.Response(
            200,
            json={
                "id": f"order_T{self._seq:04d}",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )


def build_gateway(stub: GatewayStub, *, webhook_secret: str | None = GATEWAY_WEBHOOK_SECRET) -> RazorpayGateway:
    return RazorpayGateway(
        key_id=GATEWAY_KEY_ID,
        key_secret=GATEWAY_KEY_SECRET,
        webhook_secret=webhook_secret,
        http=httpx.AsyncClient(transport=httpx.MockTransport(stub)),
    )


@pytest.fixture
def gateway_stub() -> GatewayStub:
    return GatewayStub()


@pytest.fixture
def gateway(gateway_stub: GatewayStub) -> RazorpayGateway:
    """A gateway client wired into the app for this test."""
    gw = build_gateway(gateway_stub)
    app.dependency_overrides[get_payment_gateway] = lambda: gw
    return gw


# ---------------------------------------------------------------------------
# Meeting provider stand-in
# ---------------------------------------------------------------------------


class MeetingProviderStub:
    """Token endpoint plus create/delete meeting, with switchable failures."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.delete_status = 204
        self.create_status = 201
        self._seq = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/oauth/token":
            self.token_calls += 1
            return httpx.Response(
                200,
                json={"access_token": f"tok-{self.token_calls}", "expires_in": 3600},
            )
        if request.method == "POST" and path.endswith("/users/me/meetings"):
            if self.create_status >= 400:
                return httpx.Response(self.create_status, json={"message": "nope"})
            self._seq += 1
            meeting_id = 8_000_000 + self._seq
            return httpx.Response(
                self.create_status,
                json={
                    "id": meeting_id,
                    "start_url": f"https://meet.example.com/s/{meeting_id}?zak=host",
                    "join_url": f"https://meet.example.com/j/{meeting_id}",
                    "password": "a1b2c3",
                },
            )
        if request.method == "DELETE" and "/meetings/" in path:
            return httpx.Response(self.delete_status)
        return httpx.Response(404)


def build_meeting_client(stub: MeetingProviderStub, **kwargs) -> ZoomMeetingClient:
    return ZoomMeetingClient(
        account_id="acct-123",
        client_id="client-abc",
        client_secret=MEETING_CLIENT_SECRET,
        http=httpx.AsyncClient(transport=httpx.MockTransport(stub)),
        token_url="https://meet.example.com/oauth/token",
        api_base_url="https://api.meet.example.com/v2",
        **kwargs,
    )


@pytest.fixture
def meeting_stub() -> MeetingProviderStub:
    return MeetingProviderStub()


@pytest.fixture
def meetings(meeting_stub: MeetingProviderStub) -> ZoomMeetingClient:
    client = build_meeting_client(meeting_stub)
    app.dependency_overrides[get_meeting_client] = lambda: client
    return client
