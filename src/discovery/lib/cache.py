"""Best-effort caching of recommendation sets and search pages.

``CacheManager`` sits in front of a ``CacheStore`` (in-process or Redis) and
never lets a cache failure reach the caller: reads that fail are treated as
misses and writes report their outcome as a ``CacheWrite`` the caller is free
to ignore.

Entries are grouped under an *owner* prefix (``recs:<user_id>:``).  Writing
a fresh entry for an owner first clears everything under that prefix, so a
recompute fully replaces what was cached before.
"""

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from ..errors import CacheError
from ..metrics import MetricsCollector

logger = logging.getLogger(__name__)


def make_key(prefix: str, params: dict) -> str:
    """Stable cache key for a request described by *params*."""
    normalized = json.dumps(params, sort_keys=True, default=str)
    return f"{prefix}{hashlib.sha256(normalized.encode()).hexdigest()[:16]}"


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class CacheStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store *value*; ``ttl=None`` keeps it until deleted."""
        ...

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with *prefix*; return how many were removed."""
        ...


class MemoryCacheStore(CacheStore):
    """In-process TTL store.  ``clock`` is injectable for tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 10_000):
        self._clock = clock
        self._max_entries = max_entries
        # key -> (expires_at or None, created_at, value)
        self._store: dict[str, tuple[float | None, float, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, _, value = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        now = self._clock()
        self._store.pop(key, None)
        self._store[key] = (now + ttl if ttl is not None else None, now, value)
        while len(self._store) > self._max_entries:
            # dicts keep insertion order, so this drops the oldest write
            self._store.pop(next(iter(self._store)))

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._store if k.startswith(prefix)]
        for k in doomed:
            del self._store[k]
        return len(doomed)


class RedisCacheStore(CacheStore):
    """Redis-backed store; expects a ``redis.asyncio`` client with ``decode_responses=True``."""

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCacheStore":
        from redis import asyncio as aioredis

        return cls(aioredis.from_url(redis_url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        if ttl is not None:
            await self.client.set(key, value, ex=ttl)
        else:
            await self.client.set(key, value)

    async def delete_prefix(self, prefix: str) -> int:
        keys = [k async for k in self.client.scan_iter(match=f"{prefix}*")]
        if not keys:
            return 0
        return await self.client.delete(*keys)


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class CacheWrite(BaseModel):
    """Outcome of a cache write.  Callers may discard it."""

    key: str
    ok: bool
    error: str | None = None


class CacheManager:
    def __init__(self, store: CacheStore, metrics: MetricsCollector | None = None):
        self.store = store
        self.metrics = metrics or MetricsCollector()

    async def get(self, key: str) -> Any | None:
        """Cached payload for *key*, or ``None`` on a miss or a failed read."""
        try:
            raw = await self.store.get(key)
            payload = json.loads(raw) if raw is not None else None
        except Exception as exc:
            err = CacheError(f"read {key} failed: {exc}")
            logger.warning("Cache read failed: %s", err.message)
            self.metrics.incr("cache:read_failed")
            return None
        self.metrics.incr("cache:hit" if payload is not None else "cache:miss")
        return payload

    async def put(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        owner: str | None = None,
    ) -> CacheWrite:
        """Write *value* under *key*, first clearing the *owner* prefix if given."""
        try:
            raw = json.dumps(to_jsonable_python(value))
            if owner is not None:
                await self.store.delete_prefix(owner)
            await self.store.set(key, raw, ttl)
        except Exception as exc:
            err = CacheError(f"write {key} failed: {exc}")
            logger.warning("Cache write failed: %s", err.message)
            self.metrics.incr("cache:write_failed")
            return CacheWrite(key=key, ok=False, error=err.message)
        return CacheWrite(key=key, ok=True)

    async def invalidate(self, key: str) -> CacheWrite:
        """Drop *key* and every entry stored under it as a prefix."""
        try:
            await self.store.delete_prefix(key)
        except Exception as exc:
            err = CacheError(f"invalidate {key} failed: {exc}")
            logger.warning("Cache invalidation failed: %s", err.message)
            self.metrics.incr("cache:invalidate_failed")
            return CacheWrite(key=key, ok=False, error=err.message)
        return CacheWrite(key=key, ok=True)

    async def get_or_compute(
        self,
        key: str,
        ttl: int | None,
        compute_fn: Callable[[], Awaitable[Any]],
        owner: str | None = None,
        model: type[BaseModel] | None = None,
    ) -> Any:
        """Return the cached value for *key*, computing and caching it on a miss.

        With *model* set, cached payloads are validated back into that model;
        a payload that no longer validates counts as a miss.
        """
        payload = await self.get(key)
        if payload is not None:
            if model is None:
                return payload
            try:
                return model.model_validate(payload)
            except Exception:
                logger.warning("Discarding undecodable cache entry %s", key)
                self.metrics.incr("cache:decode_failed")

        value = await compute_fn()
        await self.put(key, value, ttl=ttl, owner=owner)
        return value
