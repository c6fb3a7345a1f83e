"""Tests for the cache stores and the best-effort cache manager."""

import pytest

from ..metrics import MetricsCollector
from .cache import (
    CacheManager,
    CacheStore,
    MemoryCacheStore,
    RedisCacheStore,
    make_key,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStore(CacheStore):
    """A store whose every operation fails."""

    async def get(self, key):
        raise ConnectionError("cache unreachable")

    async def set(self, key, value, ttl=None):
        raise ConnectionError("cache unreachable")

    async def delete_prefix(self, prefix):
        raise ConnectionError("cache unreachable")


class FakeRedis:
    """The subset of ``redis.asyncio.Redis`` the store uses."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiries: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.expiries[key] = ex

    async def scan_iter(self, match=None):
        prefix = match.rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def cache(clock, metrics):
    return CacheManager(MemoryCacheStore(clock=clock), metrics)


# ---------------------------------------------------------------------------
# make_key
# ---------------------------------------------------------------------------

class TestMakeKey:
    def test_stable_across_param_order(self):
        assert make_key("search:", {"a": 1, "b": 2}) == make_key("search:", {"b": 2, "a": 1})

    def test_differs_per_params(self):
        assert make_key("search:", {"q": "jazz"}) != make_key("search:", {"q": "rock"})

    def test_keeps_prefix(self):
        assert make_key("trending:", {}).startswith("trending:")


# ---------------------------------------------------------------------------
# MemoryCacheStore
# ---------------------------------------------------------------------------

class TestMemoryCacheStore:
    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, clock):
        store = MemoryCacheStore(clock=clock)
        await store.set("k", "v", ttl=30)

        clock.advance(29)
        assert await store.get("k") == "v"

        clock.advance(2)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_no_ttl_keeps_entry(self, clock):
        store = MemoryCacheStore(clock=clock)
        await store.set("k", "v")
        clock.advance(10_000_000)
        assert await store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_delete_prefix(self, clock):
        store = MemoryCacheStore(clock=clock)
        await store.set("recs:u1:all:10", "a")
        await store.set("recs:u1:social:10", "b")
        await store.set("recs:u2:all:10", "c")

        assert await store.delete_prefix("recs:u1:") == 2
        assert await store.get("recs:u1:all:10") is None
        assert await store.get("recs:u2:all:10") == "c"

    @pytest.mark.asyncio
    async def test_evicts_oldest_when_full(self, clock):
        store = MemoryCacheStore(clock=clock, max_entries=2)
        await store.set("a", "1")
        await store.set("b", "2")
        await store.set("c", "3")
        assert await store.get("a") is None
        assert await store.get("c") == "3"


class TestRedisCacheStore:
    @pytest.mark.asyncio
    async def test_set_with_ttl_uses_expiry(self):
        client = FakeRedis()
        store = RedisCacheStore(client)
        await store.set("k", "v", ttl=30)
        assert client.expiries["k"] == 30
        assert await store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_delete_prefix_scans_matching_keys(self):
        client = FakeRedis()
        store = RedisCacheStore(client)
        await store.set("recs:u1:all:10", "a")
        await store.set("recs:u2:all:10", "b")

        assert await store.delete_prefix("recs:u1:") == 1
        assert list(client.data) == ["recs:u2:all:10"]

    @pytest.mark.asyncio
    async def test_delete_prefix_without_matches(self):
        store = RedisCacheStore(FakeRedis())
        assert await store.delete_prefix("recs:nobody:") == 0


# ---------------------------------------------------------------------------
# CacheManager
# ---------------------------------------------------------------------------

class TestCacheManager:
    @pytest.mark.asyncio
    async def test_round_trips_json_payload(self, cache, metrics):
        write = await cache.put("k", {"items": [1, 2]})
        assert write.ok
        assert await cache.get("k") == {"items": [1, 2]}
        assert metrics.count("cache:hit") == 1

    @pytest.mark.asyncio
    async def test_miss_is_counted(self, cache, metrics):
        assert await cache.get("absent") is None
        assert metrics.count("cache:miss") == 1

    @pytest.mark.asyncio
    async def test_get_or_compute_reuses_within_ttl(self, cache, clock):
        calls = []

        async def compute():
            calls.append(1)
            return {"n": len(calls)}

        assert await cache.get_or_compute("k", 30, compute) == {"n": 1}
        clock.advance(29)
        assert await cache.get_or_compute("k", 30, compute) == {"n": 1}
        clock.advance(2)
        assert await cache.get_or_compute("k", 30, compute) == {"n": 2}
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_owner_write_replaces_previous_entries(self, cache):
        await cache.put("recs:u1:all:10", [1], owner="recs:u1:")
        await cache.put("recs:u1:social:5", [2], owner="recs:u1:")

        assert await cache.get("recs:u1:all:10") is None
        assert await cache.get("recs:u1:social:5") == [2]

    @pytest.mark.asyncio
    async def test_invalidate_drops_owner_entries(self, cache):
        await cache.put("recs:u1:all:10", [1])
        await cache.put("recs:u2:all:10", [2])

        assert (await cache.invalidate("recs:u1:")).ok
        assert await cache.get("recs:u1:all:10") is None
        assert await cache.get("recs:u2:all:10") == [2]

    @pytest.mark.asyncio
    async def test_failures_never_propagate(self, metrics):
        cache = CacheManager(BrokenStore(), metrics)

        assert await cache.get("k") is None
        write = await cache.put("k", {"a": 1}, owner="recs:u1:")
        assert not write.ok
        assert "cache unreachable" in write.error
        assert not (await cache.invalidate("recs:u1:")).ok

        assert metrics.count("cache:read_failed") == 1
        assert metrics.count("cache:write_failed") == 1
        assert metrics.count("cache:invalidate_failed") == 1

    @pytest.mark.asyncio
    async def test_get_or_compute_survives_broken_store(self, metrics):
        cache = CacheManager(BrokenStore(), metrics)

        async def compute():
            return ["fresh"]

        assert await cache.get_or_compute("k", 30, compute) == ["fresh"]
