from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from lms.services.credential_cache import CachedCredential


class _Fetcher:
    def __init__(self, expires_in: int = 3600) -> None:
        self.calls = 0
        self.expires_in = expires_in

    async def __call__(self) -> tuple[str, int]:
        self.calls += 1
        # Yield so concurrent callers pile up on the lock
        await asyncio.sleep(0)
        return f"token-{self.calls}", self.expires_in


class _Clock:
    def __init__(self, t: float = 1_000_000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


def test_first_get_fetches_and_caches() -> None:
    fetch = _Fetcher()
    cred = CachedCredential(fetch, now=_Clock())

    async def scenario():
        return [await cred.get(), await cred.get()]

    assert asyncio.run(scenario()) == ["token-1", "token-1"]
    assert fetch.calls == 1


def test_refreshes_inside_the_margin() -> None:
    fetch = _Fetcher(expires_in=3600)
    clock = _Clock()
    cred = CachedCredential(fetch, refresh_margin_s=300, now=clock)

    async def scenario():
        first = await cred.get()
        clock.t += 3600 - 301
        still_fresh = await cred.get()
        clock.t += 2
        refreshed = await cred.get()
        return first, still_fresh, refreshed

    assert asyncio.run(scenario()) == ("token-1", "token-1", "token-2")
    assert fetch.calls == 2


def test_concurrent_callers_share_one_fetch() -> None:
    fetch = _Fetcher()
    cred = CachedCredential(fetch, now=_Clock())

    async def scenario():
        return await asyncio.gather(*(cred.get() for _ in range(5)))

    assert asyncio.run(scenario()) == ["token-1"] * 5
    assert fetch.calls == 1


def test_invalidate_forces_refetch() -> None:
    fetch = _Fetcher()
    cred = CachedCredential(fetch, now=_Clock())

    async def scenario():
        await cred.get()
        cred.invalidate()
        return await cred.get()

    assert asyncio.run(scenario()) == "token-2"


def test_fetch_failure_propagates_and_caches_nothing() -> None:
    calls = 0

    async def failing() -> tuple[str, int]:
        nonlocal calls
        calls += 1
        raise RuntimeError("provider down")

    cred = CachedCredential(failing, now=_Clock())

    async def scenario():
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await cred.get()

    asyncio.run(scenario())
    assert calls == 2


def test_refresh_counter_by_provider() -> None:
    cred = CachedCredential(_Fetcher(), provider="test-provider", now=_Clock())
    labels = {"provider": "test-provider"}
    before = REGISTRY.get_sample_value("credential_refreshes_total", labels) or 0.0

    async def scenario():
        await cred.get()
        await cred.get()

    asyncio.run(scenario())
    after = REGISTRY.get_sample_value("credential_refreshes_total", labels) or 0.0
    assert after - before == 1
