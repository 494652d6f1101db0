"""
Integration tests for core/cache.py

Tests the Redis payload cache (with fallback behavior when Redis unavailable).
"""
import pytest
from datetime import date
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

import redis.asyncio as redis

from core.cache import RedisCache, CacheStats, stats_key, ttl_for
from core.config import config
from core.periods import resolve_period

TOKYO = ZoneInfo("Asia/Tokyo")


@pytest.fixture
def period():
    return resolve_period("custom", date(2026, 1, 1), date(2026, 1, 9), tz=TOKYO)


class TestCacheStats:
    """Tests for CacheStats class."""

    def test_initial_values(self):
        stats = CacheStats()
        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.errors == 0
        assert stats.stored == 0

    def test_hit_rate_empty(self):
        """Hit rate is 0 when nothing was looked up."""
        assert CacheStats().hit_rate == 0.0

    def test_to_dict(self):
        stats = CacheStats(hits=10, misses=5, errors=1, stored=8)
        d = stats.to_dict()

        assert d["hits"] == 10
        assert d["stored"] == 8
        assert d["hit_rate_percent"] == pytest.approx(66.67, rel=0.01)


class TestStatsKey:
    """Tests for statistics cache keys."""

    def test_key_layout(self, period):
        key = stats_key("channel-stats", ["ch-b", "ch-a"], period)
        assert key == "stats:channel-stats:custom:2026-01-01:2026-01-09:ch-a,ch-b"

    def test_channel_order_irrelevant(self, period):
        """Same channel set in any order shares a key."""
        assert stats_key("overall", ["a", "b", "a"], period) == stats_key("overall", ["b", "a"], period)

    def test_empty_channel_set(self, period):
        assert stats_key("overall", [], period).endswith(":-")

    def test_extra_parts(self, period):
        key = stats_key("location-demographics", ["a"], period, "東京都", "渋谷区", None)
        assert key.endswith(":a:東京都:渋谷区:-")

    def test_long_channel_sets_hashed(self, period):
        ids = [f"channel-{i:03d}" for i in range(50)]
        key = stats_key("overall", ids, period)
        assert len(key) < 100
        assert key == stats_key("overall", list(reversed(ids)), period)


class TestTtlFor:
    """Tests for period-dependent expiry."""

    def test_closed_custom_period(self, period):
        assert ttl_for(period, today=date(2026, 2, 1)) == config.cache.closed_period_ttl_seconds

    def test_custom_period_ending_today(self, period):
        assert ttl_for(period, today=date(2026, 1, 9)) == config.cache.ttl_seconds

    def test_relative_period(self):
        week = resolve_period("week", tz=TOKYO)
        assert ttl_for(week, today=date(2030, 1, 1)) == config.cache.ttl_seconds


class TestRedisCacheDisabled:
    """Tests for RedisCache when disabled."""

    def test_disabled_by_config(self):
        cache = RedisCache(enabled=False)
        assert cache.enabled is False
        assert cache.is_connected is False

    @pytest.mark.asyncio
    async def test_connect_when_disabled(self):
        cache = RedisCache(enabled=False)
        assert await cache.connect() is False

    @pytest.mark.asyncio
    async def test_get_counts_miss(self):
        cache = RedisCache(enabled=False)
        assert await cache.get("test_key") is None
        assert cache._stats.misses == 1

    @pytest.mark.asyncio
    async def test_set_is_noop(self):
        cache = RedisCache(enabled=False)
        assert await cache.set("test_key", {"data": "value"}) is False

    @pytest.mark.asyncio
    async def test_get_or_set_computes_every_time(self):
        """Without Redis every call recomputes."""
        cache = RedisCache(enabled=False)
        compute = AsyncMock(return_value={"stats": {}})

        assert await cache.get_or_set("k", compute) == {"stats": {}}
        assert await cache.get_or_set("k", compute) == {"stats": {}}
        assert compute.await_count == 2

    def test_get_stats_when_disabled(self):
        stats = RedisCache(enabled=False).get_stats()

        assert stats["enabled"] is False
        assert stats["connected"] is False
        assert stats["url"] is None


class TestRedisCacheConnect:
    """Tests for connection handling."""

    @pytest.mark.asyncio
    async def test_connect_success(self):
        client = AsyncMock()
        with patch("core.cache.redis.from_url", return_value=client):
            cache = RedisCache(url="redis://test:6379/0", enabled=True)
            assert await cache.connect() is True

        assert cache.is_connected is True
        client.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_failure_degrades(self):
        """Unreachable Redis leaves the cache disconnected."""
        client = AsyncMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch("core.cache.redis.from_url", return_value=client):
            cache = RedisCache(url="redis://test:6379/0", enabled=True)
            assert await cache.connect() is False

        assert cache.is_connected is False

    @pytest.mark.asyncio
    async def test_disconnect(self):
        cache = RedisCache(enabled=True)
        client = AsyncMock()
        cache._client = client
        cache._connected = True

        await cache.disconnect()

        client.aclose.assert_awaited_once()
        assert cache.is_connected is False

    @pytest.mark.asyncio
    async def test_disconnect_without_client(self):
        cache = RedisCache(enabled=True)
        await cache.disconnect()
        assert cache.is_connected is False


class TestRedisCacheWithMock:
    """Tests for RedisCache with a mocked Redis client."""

    def _connected_cache(self):
        cache = RedisCache()
        cache._connected = True
        cache._client = AsyncMock()
        return cache

    @pytest.mark.asyncio
    async def test_get_hit(self):
        cache = self._connected_cache()
        cache._client.get.return_value = '{"stats": {"ch-1": {"accessCount": 3}}}'

        result = await cache.get("test_key")

        assert result == {"stats": {"ch-1": {"accessCount": 3}}}
        assert cache._stats.hits == 1
        cache._client.get.assert_called_once_with("test_key")

    @pytest.mark.asyncio
    async def test_get_miss(self):
        cache = self._connected_cache()
        cache._client.get.return_value = None

        assert await cache.get("test_key") is None
        assert cache._stats.misses == 1

    @pytest.mark.asyncio
    async def test_set_with_ttl(self):
        cache = self._connected_cache()

        assert await cache.set("test_key", {"data": "value"}, ttl=3600) is True

        assert cache._stats.stored == 1
        cache._client.setex.assert_called_once_with("test_key", 3600, '{"data": "value"}')

    @pytest.mark.asyncio
    async def test_set_default_ttl(self):
        cache = self._connected_cache()
        cache.default_ttl = 45

        await cache.set("test_key", 1)

        assert cache._client.setex.call_args[0][1] == 45

    @pytest.mark.asyncio
    async def test_get_or_set_cached(self):
        cache = self._connected_cache()
        cache._client.get.return_value = '{"cached": true}'
        compute = AsyncMock(return_value={"fresh": True})

        result = await cache.get_or_set("test_key", compute, ttl=60)

        assert result == {"cached": True}
        compute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_or_set_computes(self):
        cache = self._connected_cache()
        cache._client.get.return_value = None

        async def compute():
            return {"fresh": True}

        result = await cache.get_or_set("test_key", compute, ttl=60)

        assert result == {"fresh": True}
        cache._client.setex.assert_called_once_with("test_key", 60, '{"fresh": true}')

    @pytest.mark.asyncio
    async def test_compute_error_not_cached(self):
        cache = self._connected_cache()
        cache._client.get.return_value = None
        compute = AsyncMock(side_effect=RuntimeError("store down"))

        with pytest.raises(RuntimeError):
            await cache.get_or_set("test_key", compute)

        cache._client.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_error_counted(self):
        """Redis errors are counted, never raised."""
        cache = self._connected_cache()
        cache._client.get.side_effect = redis.RedisError("Redis error")

        assert await cache.get("test_key") is None
        assert cache._stats.errors == 1

    @pytest.mark.asyncio
    async def test_corrupt_value(self):
        """Undecodable values count as errors."""
        cache = self._connected_cache()
        cache._client.get.return_value = "{not json"

        assert await cache.get("test_key") is None
        assert cache._stats.errors == 1
