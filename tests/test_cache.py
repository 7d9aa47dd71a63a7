import asyncio

import pytest

from conftest import ManualClock
from locality_resolver.cache import InFlightRegistry, KeyedCache
from locality_resolver.errors import ProviderError


def test_entry_expires_only_after_ttl():
    clock = ManualClock()
    cache = KeyedCache(ttl=300, clock=clock)
    cache.set("vancouver", ["Vancouver"])

    clock.advance(300)
    assert cache.get("vancouver") == ["Vancouver"]

    clock.advance(0.5)
    assert cache.get("vancouver") is None
    assert "vancouver" not in cache


def test_set_overwrites_and_restarts_age():
    clock = ManualClock()
    cache = KeyedCache(ttl=10, clock=clock)
    cache.set("k", "old")
    clock.advance(8)
    cache.set("k", "new")
    clock.advance(8)
    assert cache.get("k") == "new"


def test_purge_expired_removes_only_stale_entries():
    clock = ManualClock()
    cache = KeyedCache(ttl=10, clock=clock)
    cache.set("a", 1)
    clock.advance(20)
    cache.set("b", 2)

    assert len(cache) == 2
    assert cache.purge_expired() == 1
    assert len(cache) == 1
    assert cache.get("b") == 2


@pytest.mark.asyncio
async def test_inflight_callers_share_one_operation():
    registry = InFlightRegistry()
    started = 0
    gate = asyncio.Event()

    async def operation():
        nonlocal started
        started += 1
        await gate.wait()
        return "Kelowna"

    first = asyncio.create_task(registry.run("current-location", operation))
    second = asyncio.create_task(registry.run("current-location", operation))
    await asyncio.sleep(0)
    assert registry.in_flight("current-location")

    gate.set()
    assert await asyncio.gather(first, second) == ["Kelowna", "Kelowna"]
    assert started == 1
    assert not registry.in_flight("current-location")


@pytest.mark.asyncio
async def test_inflight_failure_reaches_every_caller_and_clears_token():
    registry = InFlightRegistry()
    calls = 0

    async def failing():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0)
        raise ProviderError("down")

    results = await asyncio.gather(
        registry.run("q", failing),
        registry.run("q", failing),
        return_exceptions=True,
    )
    assert calls == 1
    assert all(isinstance(result, ProviderError) for result in results)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_operation():
    registry = InFlightRegistry()
    gate = asyncio.Event()

    async def operation():
        await gate.wait()
        return 42

    leaving = asyncio.create_task(registry.run("k", operation))
    staying = asyncio.create_task(registry.run("k", operation))
    await asyncio.sleep(0)
    leaving.cancel()
    await asyncio.sleep(0)

    gate.set()
    assert await staying == 42
