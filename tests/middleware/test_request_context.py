"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- One summary log line carrying the request id and the caller
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import auth, mint_token


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    """When no X-Request-ID header is sent, one is generated."""
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    """When the client sends X-Request-ID, the same value is echoed back."""
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    """Even error responses (401, 404) get an X-Request-ID header."""
    resp = client.get("/v1/courses")  # No auth token -> 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_summary_line_carries_request_id_and_user(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    user_id = str(uuid.uuid4())
    with caplog.at_level(logging.INFO, logger="lms.middleware.request_context"):
        client.get(
            "/v1/courses",
            headers={**auth(mint_token(user_id)), "X-Request-ID": "req-ctx-1"},
        )

    summary = [
        r for r in caplog.records if r.name == "lms.middleware.request_context"
    ][-1]
    assert summary.getMessage().startswith("GET /v1/courses -> 200")
    assert summary.request_id == "req-ctx-1"  # type: ignore[attr-defined]
    assert summary.status_code == 200  # type: ignore[attr-defined]
