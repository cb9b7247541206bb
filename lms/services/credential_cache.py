"""Lazily fetched, cached bearer credential for an external provider."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from lms.core.metrics import CREDENTIAL_REFRESHES

logger = logging.getLogger(__name__)

# (token, expires_in seconds)
Fetcher = Callable[[], Awaitable[tuple[str, int]]]


class CachedCredential:
    """Holds one token and refreshes it shortly before it expires.

    Concurrent callers that find the token stale share a single fetch.
    """

    def __init__(
        self,
        fetch: Fetcher,
        *,
        provider: str = "default",
        refresh_margin_s: float = 300,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._fetch = fetch
        self._provider = provider
        self._margin = refresh_margin_s
        self._now = now
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _fresh(self) -> bool:
        return self._token is not None and self._now() < self._expires_at - self._margin

    async def get(self) -> str:
        if self._fresh():
            return self._token
        async with self._lock:
            # Another caller may have refreshed while we waited
            if self._fresh():
                return self._token
            token, expires_in = await self._fetch()
            self._token = token
            self._expires_at = self._now() + expires_in
            CREDENTIAL_REFRESHES.labels(provider=self._provider).inc()
            logger.info(
                "Fetched %s access token (expires in %ds)", self._provider, expires_in
            )
            return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0
