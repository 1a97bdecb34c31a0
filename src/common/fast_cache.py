"""
Fast Cache Tier

Low-latency, short-TTL cache in front of the MongoDB document cache.

Implementations:
    - RedisFastCache: shared across processes (redis.asyncio)
    - InMemoryFastCache: per-process fallback when REDIS_URL is unset

Every operation degrades to a miss (None / False / 0) on backend errors,
so a cache outage never fails a search.

Usage:
    cache = build_fast_cache(Config.REDIS_URL)
    await cache.set("jobs:abc", payload, ttl_seconds=3600)
    payload = await cache.get("jobs:abc")
"""

import fnmatch
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as aioredis
from redis.asyncio import Redis

from src.common.error_handling import cache_operation

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


@dataclass
class FastCacheStats:
    """Hit/miss counters for the fast tier."""
    backend: str
    hits: int = 0
    misses: int = 0
    errors: int = 0
    keys: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "backend": self.backend,
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "keys": self.keys,
            "hitRate": round(self.hits / total, 3) if total else 0.0,
        }


class FastCache(ABC):
    """Abstract interface for the fast cache tier. Values are JSON-serializable."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None on miss/error."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        """Store a value with a TTL. Returns False on error."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern. Returns count deleted."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -2 if the key does not exist."""
        pass

    @abstractmethod
    async def increment(self, key: str, amount: int = 1) -> Optional[int]:
        pass

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None


class InMemoryFastCache(FastCache):
    """
    Process-local cache with per-key expiry.

    Accessed from a single event loop, so no locking is needed.
    """

    def __init__(self, max_entries: int = 5000, clock=time.monotonic):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._stats = FastCacheStats(backend="memory")

    def _live_entry(self, key: str) -> Optional[Tuple[float, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[0] <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _evict_if_full(self) -> None:
        if len(self._entries) < self._max_entries:
            return
        now = self._clock()
        for key in [k for k, (expiry, _) in self._entries.items() if expiry <= now]:
            del self._entries[key]
        while len(self._entries) >= self._max_entries:
            # Dicts keep insertion order: drop the oldest entry
            self._entries.pop(next(iter(self._entries)))

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        if entry is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        # Copy through JSON so callers cannot mutate the cached value
        return json.loads(entry[1])

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        try:
            encoded = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"[memory] Value for {key} is not serializable: {e}")
            self._stats.errors += 1
            return False
        self._evict_if_full()
        self._entries[key] = (self._clock() + ttl_seconds, encoded)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        keys = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def ttl(self, key: str) -> int:
        entry = self._live_entry(key)
        if entry is None:
            return -2
        return int(entry[0] - self._clock())

    async def increment(self, key: str, amount: int = 1) -> Optional[int]:
        entry = self._live_entry(key)
        if entry is None:
            expiry, current = self._clock() + DEFAULT_TTL_SECONDS, 0
        else:
            expiry, current = entry[0], int(json.loads(entry[1]))
        current += amount
        self._entries[key] = (expiry, json.dumps(current))
        return current

    async def get_stats(self) -> Dict[str, Any]:
        self._stats.keys = sum(1 for key in list(self._entries) if self._live_entry(key))
        return self._stats.to_dict()


class RedisFastCache(FastCache):
    """Redis-backed fast cache (JSON-encoded values, SETEX for TTL)."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[Redis] = None):
        """
        Initialize the cache.

        Args:
            redis_url: Redis connection URL (ignored when client is given)
            client: Pre-built redis.asyncio client (tests inject a mock here)
        """
        if client is None and not redis_url:
            raise ValueError("Redis URL or client is required")
        self._redis: Redis = client or aioredis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        self._stats = FastCacheStats(backend="redis")

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._redis.get(key)
        except Exception as e:
            logger.warning(f"[redis] GET {key} failed, treating as miss: {e}")
            self._stats.errors += 1
            return None

        if raw is None:
            self._stats.misses += 1
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"[redis] Corrupt value at {key}, discarding: {e}")
            self._stats.errors += 1
            await self.delete(key)
            return None

        self._stats.hits += 1
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        try:
            await self._redis.setex(key, ttl_seconds, json.dumps(value, default=str))
            return True
        except Exception as e:
            logger.warning(f"[redis] SETEX {key} failed: {e}")
            self._stats.errors += 1
            return False

    @cache_operation("delete", tier="redis", fallback_value=False)
    async def delete(self, key: str) -> bool:
        return bool(await self._redis.delete(key))

    @cache_operation("delete pattern", tier="redis", fallback_value=0)
    async def delete_pattern(self, pattern: str) -> int:
        deleted = 0
        async for key in self._redis.scan_iter(match=pattern, count=500):
            deleted += await self._redis.delete(key)
        return deleted

    @cache_operation("exists", tier="redis", fallback_value=False)
    async def exists(self, key: str) -> bool:
        return bool(await self._redis.exists(key))

    @cache_operation("ttl", tier="redis", fallback_value=-2)
    async def ttl(self, key: str) -> int:
        return int(await self._redis.ttl(key))

    @cache_operation("increment", tier="redis", fallback_value=None)
    async def increment(self, key: str, amount: int = 1) -> Optional[int]:
        return int(await self._redis.incrby(key, amount))

    async def get_stats(self) -> Dict[str, Any]:
        try:
            self._stats.keys = int(await self._redis.dbsize())
        except Exception as e:
            logger.warning(f"[redis] DBSIZE failed: {e}")
            self._stats.keys = None
        return self._stats.to_dict()

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("Fast cache Redis connection closed")


def build_fast_cache(redis_url: Optional[str]) -> FastCache:
    """Return a Redis cache when a URL is configured, else the in-memory cache."""
    if redis_url:
        logger.info("Using Redis fast cache")
        return RedisFastCache(redis_url)
    logger.info("REDIS_URL not set; using in-memory fast cache")
    return InMemoryFastCache()
