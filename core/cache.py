"""
Redis cache for computed dashboard payloads.

Caching is purely additive: every payload is computed from the event
store on a miss, and the cache degrades to a no-op when Redis is
disabled or unreachable.

Keys identify one statistics request (operation, channel set, period and
any place filter). Payloads for periods that still run up to "now"
expire quickly; custom periods that closed before today get the longer
closed-period TTL.

Usage:
    from core.cache import cache, stats_key, ttl_for

    key = stats_key("channel-stats", channel_ids, period)
    payload = await cache.get_or_set(key, compute, ttl=ttl_for(period))
"""
import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import redis.asyncio as redis

from core.config import config
from core.observability import get_logger
from core.periods import Period, PeriodKind

logger = get_logger(__name__)

KEY_PREFIX = "stats"
MAX_ID_PART_LENGTH = 100


@dataclass
class CacheStats:
    """Hit/miss counters reported by the health endpoint."""

    hits: int = 0
    misses: int = 0
    errors: int = 0
    stored: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return (self.hits / lookups * 100) if lookups > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "stored": self.stored,
            "hit_rate_percent": round(self.hit_rate, 2),
        }


def stats_key(operation: str, channel_ids: Iterable[str], period: Period, *extra: Optional[str]) -> str:
    """
    Deterministic cache key for one statistics request.

    Channel order does not matter; long channel sets are hashed.
    """
    ids = ",".join(sorted(set(channel_ids)))
    if len(ids) > MAX_ID_PART_LENGTH:
        ids = hashlib.md5(ids.encode()).hexdigest()[:12]
    parts = [KEY_PREFIX, operation, period.cache_token, ids or "-"]
    parts.extend(e or "-" for e in extra)
    return ":".join(parts)


def ttl_for(period: Period, today: Optional[date] = None) -> int:
    """Seconds a payload for ``period`` may be served from cache."""
    if period.kind != PeriodKind.CUSTOM or period.end_date is None:
        return config.cache.ttl_seconds
    if today is None:
        today = datetime.now(config.stats.tz).date()
    if period.end_date < today:
        return config.cache.closed_period_ttl_seconds
    return config.cache.ttl_seconds


class RedisCache:
    """Async Redis cache that turns into a no-op when Redis is unavailable."""

    def __init__(
        self,
        url: str = config.cache.url,
        enabled: bool = config.cache.enabled,
        default_ttl: int = config.cache.ttl_seconds,
    ):
        self.url = url
        self.enabled = enabled
        self.default_ttl = default_ttl
        self._client = None
        self._connected = False
        self._stats = CacheStats()
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    async def connect(self) -> bool:
        """
        Open the Redis client and ping it.

        Returns:
            True when the cache is usable
        """
        if not self.enabled:
            logger.info("Redis cache disabled by configuration")
            return False

        try:
            async with self._lock:
                if self._client is None:
                    self._client = redis.from_url(
                        self.url,
                        encoding="utf-8",
                        decode_responses=True,
                        socket_timeout=5.0,
                        socket_connect_timeout=5.0,
                    )
                await self._client.ping()
                self._connected = True
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Redis connection failed: {e}")
            self._connected = False
            return False

        logger.info(f"Redis connected: {self.url}")
        return True

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        self._connected = False
        logger.info("Redis disconnected")

    def _failed(self, action: str, key: str, error: Exception) -> None:
        self._stats.errors += 1
        logger.debug(f"Cache {action} failed for {key}: {error}")

    async def get(self, key: str) -> Optional[Any]:
        """Cached payload for ``key``, or None on a miss or any Redis error."""
        if not self.is_connected:
            self._stats.misses += 1
            return None

        try:
            raw = await self._client.get(key)
            if raw is None:
                self._stats.misses += 1
                return None
            payload = json.loads(raw)
        except (redis.RedisError, OSError, ValueError) as e:
            self._failed("get", key, e)
            return None

        self._stats.hits += 1
        return payload

    async def set(self, key: str, payload: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable payload; returns False when nothing was written."""
        if not self.is_connected:
            return False

        try:
            await self._client.setex(key, ttl or self.default_ttl, json.dumps(payload, default=str))
        except (redis.RedisError, OSError, TypeError) as e:
            self._failed("set", key, e)
            return False

        self._stats.stored += 1
        return True

    async def get_or_set(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Serve ``key`` from cache, or await ``compute`` and store its result.

        Errors raised by ``compute`` propagate; nothing is cached for them.
        """
        payload = await self.get(key)
        if payload is not None:
            return payload

        payload = await compute()
        await self.set(key, payload, ttl)
        return payload

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "connected": self.is_connected,
            "url": self.url if self.is_connected else None,
            **self._stats.to_dict(),
        }


# Global cache instance
cache = RedisCache()
