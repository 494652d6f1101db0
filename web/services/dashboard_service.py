"""
Dashboard service: resolves request parameters and serves the four
statistics payloads, through the Redis cache when it is connected.
"""
import logging
from typing import Dict, List, Optional, Any

from core.attribution_service import get_attribution_service
from core.cache import cache, stats_key, ttl_for
from core.duckdb_store import get_store
from core.periods import Period, resolve_period
from core.validators import validate_period

logger = logging.getLogger(__name__)


def parse_period(period: Optional[str], start_date: Optional[str], end_date: Optional[str], default: str) -> Period:
    """
    Resolve request period parameters.

    Raises:
        InvalidPeriodError: Unknown keyword or bad custom dates
    """
    keyword = validate_period(period, default=default)
    return resolve_period(keyword, start_date, end_date)


async def resolve_channel_ids(channel_ids: Optional[List[str]]) -> List[str]:
    """Requested channel ids, or every active channel when none were given."""
    if channel_ids is not None:
        return channel_ids
    store = await get_store()
    return await store.get_active_channel_ids()


async def get_channel_stats(channel_ids: List[str], period: Period) -> Dict[str, Any]:
    """Per-channel statistics payload."""
    async def _compute() -> Dict[str, Any]:
        service = await get_attribution_service()
        stats = await service.get_channel_stats(channel_ids, period)
        return {"stats": {channel_id: s.to_dict() for channel_id, s in stats.items()}}

    key = stats_key("channel-stats", channel_ids, period)
    return await cache.get_or_set(key, _compute, ttl=ttl_for(period))


async def get_overall_stats(channel_ids: List[str], period: Period) -> Dict[str, Any]:
    """Cross-channel statistics payload."""
    async def _compute() -> Dict[str, Any]:
        service = await get_attribution_service()
        stats = await service.get_overall_stats(channel_ids, period)
        return {
            "stats": stats.to_dict(),
            "channels": stats.channel_summaries(),
            "period": period.current.to_dict(),
        }

    key = stats_key("overall", channel_ids, period)
    return await cache.get_or_set(key, _compute, ttl=ttl_for(period))


async def get_location_aggregates(channel_ids: List[str], period: Period) -> Dict[str, Any]:
    """Place rollup payload."""
    async def _compute() -> Dict[str, Any]:
        service = await get_attribution_service()
        result = await service.get_location_aggregates(channel_ids, period)
        return result.to_dict()

    key = stats_key("locations", channel_ids, period)
    return await cache.get_or_set(key, _compute, ttl=ttl_for(period))


async def get_location_demographics(
    region: str,
    city: str,
    town: Optional[str],
    channel_ids: List[str],
    period: Period,
) -> Dict[str, Any]:
    """Demographics payload for one place."""
    async def _compute() -> Dict[str, Any]:
        service = await get_attribution_service()
        result = await service.get_location_demographics(region, city, town, channel_ids, period)
        return result.to_dict()

    key = stats_key("location-demographics", channel_ids, period, region, city, town)
    return await cache.get_or_set(key, _compute, ttl=ttl_for(period))
