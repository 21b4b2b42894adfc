import asyncio

import pytest

from softzen.cache import ResponseCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_key_layout():
    assert ResponseCache.make_key("get", "/api/patients", 7) == "/api/patients|GET|7"
    assert ResponseCache.make_key("GET", "/api/therapy-types", None) == "/api/therapy-types|GET|anonymous"


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = ResponseCache(default_ttl=300, clock=clock)
    cache.set("a", {"n": 1})
    cache.set("b", [1, 2], ttl=10)

    clock.now += 9
    assert cache.get("a") == {"n": 1}
    assert cache.get("b") == [1, 2]

    clock.now += 1
    assert cache.get("b") is None
    assert cache.get("a") == {"n": 1}


def test_invalidate_by_prefix_only_drops_matching_keys():
    cache = ResponseCache()
    cache.set(ResponseCache.make_key("GET", "/api/patients", 1), [])
    cache.set(ResponseCache.make_key("GET", "/api/patients", 2), [])
    cache.set(ResponseCache.make_key("GET", "/api/dashboard/analytics", 1), {})
    cache.set(ResponseCache.make_key("GET", "/api/therapy-types", 1), [])

    removed = cache.invalidate_by_prefix("/api/patients", "/api/dashboard")

    assert removed == 3
    assert len(cache) == 1
    assert cache.get("/api/therapy-types|GET|1") == []


def test_purge_expired():
    clock = FakeClock()
    cache = ResponseCache(default_ttl=60, clock=clock)
    cache.set("old", 1)
    clock.now += 30
    cache.set("new", 2)
    clock.now += 30

    assert cache.purge_expired() == 1
    assert len(cache) == 1
    assert cache.get("new") == 2


@pytest.mark.asyncio
async def test_purger_runs_until_cancelled():
    clock = FakeClock()
    cache = ResponseCache(default_ttl=1, clock=clock)
    cache.set("stale", 1)
    clock.now += 5

    task = asyncio.create_task(cache.run_purger(0.01))
    await asyncio.sleep(0.05)
    assert len(cache) == 0

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
