from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lms.core.config import SETTINGS
from lms.db import engine as db_engine
from lms.middleware.request_context import user_id_var
from lms.models.principal import Capability, Principal
from lms.repos.bundle import Repos, in_memory_repos, pg_repos
from lms.services import token_service
from lms.services.catalog_service import CatalogService
from lms.services.enrollment_ledger import EnrollmentLedger
from lms.services.live_sessions import LiveSessionService
from lms.services.meeting_client import ZoomMeetingClient
from lms.services.payment_bridge import PaymentBridge
from lms.services.payment_gateway import RazorpayGateway
from lms.services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_UNAUTHENTICATED_HEADERS = {"WWW-Authenticate": "Bearer"}


async def require_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=_UNAUTHENTICATED_HEADERS,
        )
    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers=_UNAUTHENTICATED_HEADERS,
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers=_UNAUTHENTICATED_HEADERS,
        ) from None

    try:
        UUID(claims["sub"])
    except ValueError:
        logger.warning("Token subject is not a user id")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers=_UNAUTHENTICATED_HEADERS,
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    user_id_var.set(principal.user_id)
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_capability(capability: Capability):
    """Dependency factory: demand a capability from the role table.

    Usage: Depends(require_capability(Capability.ADMIN_ENROLL))
    Returns the Principal if any of its roles grants it, else 403.
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.can(capability):
            logger.warning(
                "Access denied: user=%s roles=%s missing capability=%s",
                principal.user_id,
                sorted(principal.roles),
                capability.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

_memory_repos: Repos = in_memory_repos()


def reset_memory_repos() -> Repos:
    """Start the in-memory store over (tests, seed scripts)."""
    global _memory_repos
    _memory_repos = in_memory_repos()
    return _memory_repos


def memory_repos() -> Repos:
    return _memory_repos


async def get_repos() -> AsyncGenerator[Repos, None]:
    """Request-scoped repositories: Postgres when configured, else in-memory."""
    if db_engine.async_session_factory is None:
        yield _memory_repos
        return
    async with db_engine.session_scope() as session:
        yield pg_repos(session)


# ---------------------------------------------------------------------------
# External clients (built in the app lifespan, replaced in tests)
# ---------------------------------------------------------------------------


def get_payment_gateway(request: Request) -> RazorpayGateway | None:
    return getattr(request.app.state, "payment_gateway", None)


def get_meeting_client(request: Request) -> ZoomMeetingClient | None:
    return getattr(request.app.state, "meeting_client", None)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_ledger(repos: Annotated[Repos, Depends(get_repos)]) -> EnrollmentLedger:
    return EnrollmentLedger(repos)


def get_tracker(repos: Annotated[Repos, Depends(get_repos)]) -> ProgressTracker:
    return ProgressTracker(repos)


def get_catalog(repos: Annotated[Repos, Depends(get_repos)]) -> CatalogService:
    return CatalogService(repos)


def get_payment_bridge(
    repos: Annotated[Repos, Depends(get_repos)],
    gateway: Annotated[RazorpayGateway | None, Depends(get_payment_gateway)],
) -> PaymentBridge:
    return PaymentBridge(
        repos,
        gateway,
        currency=SETTINGS.payment_currency,
        test_mode=SETTINGS.payment_test_mode,
    )


def get_live_sessions(
    repos: Annotated[Repos, Depends(get_repos)],
    meetings: Annotated[ZoomMeetingClient | None, Depends(get_meeting_client)],
) -> LiveSessionService:
    return LiveSessionService(repos, meetings)
