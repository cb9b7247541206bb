from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lms.api.courses import router as courses_router
from lms.api.enrollments import router as enrollments_router
from lms.api.health import router as health_router
from lms.api.live_classes import router as live_classes_router
from lms.api.metrics_endpoint import router as metrics_router
from lms.api.payments import router as payments_router
from lms.api.progress import router as progress_router
from lms.core.config import SETTINGS
from lms.core.errors import LmsError
from lms.core.logging import register_secret, setup_logging
from lms.db.engine import lifespan_db
from lms.middleware.metrics import MetricsMiddleware
from lms.middleware.request_context import RequestContextMiddleware
from lms.services.meeting_client import build_meeting_client
from lms.services.payment_gateway import build_payment_gateway

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
for _secret in (
    SETTINGS.payment_key_secret,
    SETTINGS.payment_webhook_secret,
    SETTINGS.meeting_client_secret,
):
    register_secret(_secret)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_clients(app: FastAPI) -> AsyncGenerator[None, None]:
    """One shared HTTP client for the payment gateway and meeting provider."""
    async with httpx.AsyncClient() as http:
        app.state.payment_gateway = build_payment_gateway(SETTINGS, http)
        app.state.meeting_client = build_meeting_client(SETTINGS, http)
        logger.info(
            "External clients: payments=%s meetings=%s",
            "on" if app.state.payment_gateway else "off",
            "on" if app.state.meeting_client else "off",
        )
        yield
        app.state.payment_gateway = None
        app.state.meeting_client = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order
    async with lifespan_db():
        async with lifespan_clients(app):
            yield


app = FastAPI(
    title="lms-enrollment-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)


@app.exception_handler(LmsError)
async def lms_error_handler(request: Request, exc: LmsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed upstream: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s refused: %s (%s)",
            request.method,
            request.url.path,
            exc.kind,
            exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": jsonable_encoder(exc.to_dict())},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) -> Metrics -> CORS -> route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(progress_router)
app.include_router(payments_router)
app.include_router(live_classes_router)

logger.info(
    "lms-enrollment-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
