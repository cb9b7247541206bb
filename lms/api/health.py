"""Liveness and readiness probes.

/health answers "is the process alive" and reports dependency checks in
the body; it stays 200 when degraded so the orchestrator does not
restart a pod over a database blip.  /ready answers "should traffic come
here" and returns 503 while the database is unreachable.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from lms.db import engine as db_engine

router = APIRouter(tags=["health"])


def _client_check(request: Request, name: str) -> str:
    return "ok" if getattr(request.app.state, name, None) is not None else "not_configured"


@router.get("/health")
async def health(request: Request) -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if db_engine.engine is None:
        checks["database"] = "not_configured"
    elif await db_engine.check_database():
        checks["database"] = "ok"
    else:
        checks["database"] = "degraded"
        overall = "degraded"

    checks["payment_gateway"] = _client_check(request, "payment_gateway")
    checks["meeting_provider"] = _client_check(request, "meeting_client")

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if not await db_engine.check_database():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
