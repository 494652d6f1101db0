"""
Attribution service: the four dashboard operations.

Composes period resolution, channel aggregation, derived metrics,
trends and the geo rollup into report objects. Stateless: every call
recomputes from the event store, so concurrent calls need no locking.

Usage:
    service = AttributionService(store, store)
    period = resolve_period("week")
    stats = await service.get_channel_stats(["ch-1", "ch-2"], period)
"""
import asyncio
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from core.aggregation import ChannelAggregator
from core.config import config
from core.demographics import AgeRanges, DETAILED_AGE_SCHEME
from core.event_query import ChannelRegistry, EventQueryAdapter
from core.geo import aggregate_places, find_hotspot, matches_place, rank_places, summarize_regions
from core.metrics import compute_ad_efficiency, compute_total_efficiency
from core.models import Channel, MetricTotals
from core.observability import get_logger, timed
from core.periods import Period, PeriodKind, resolve_period
from core.reports import ChannelStats, LocationAggregates, LocationDemographics, OverallStats
from core.trends import build_trends
from core.validators import validate_place_name

logger = get_logger(__name__)

PeriodArg = Union[Period, str, PeriodKind]

_PLACE_FIELDS = ["region", "city", "town", "latitude", "longitude"]
_DEMOGRAPHIC_FIELDS = ["region", "city", "town", "user_gender", "user_age"]


def _ensure_period(period: PeriodArg, tz: ZoneInfo) -> Period:
    if isinstance(period, Period):
        return period
    return resolve_period(period, tz=tz)


def _unique_ids(channel_ids: Iterable[str]) -> List[str]:
    return sorted(set(channel_ids))


def _link_ids(channels: Dict[str, Channel]) -> FrozenSet[str]:
    return frozenset(channel_id for channel_id, channel in channels.items() if channel.is_link)


def _clinic_center(channels: Dict[str, Channel], channel_ids: List[str]) -> Optional[Tuple[float, float]]:
    """Configured clinic location, else the first selected channel with coordinates."""
    center = config.geo.clinic_center
    if center is not None:
        return center
    for channel_id in channel_ids:
        channel = channels.get(channel_id)
        if channel is not None and channel.coordinates is not None:
            return channel.coordinates
    return None


class AttributionService:
    """
    Dashboard statistics over an event store and a channel registry.

    Any failure of the underlying store propagates; a report is either
    fully computed or not returned at all.
    """

    def __init__(
        self,
        events: EventQueryAdapter,
        channels: ChannelRegistry,
        tz: Optional[ZoneInfo] = None,
    ):
        self.tz = tz or config.stats.tz
        self.channels = channels
        self.aggregator = ChannelAggregator(events, self.tz)

    @timed("get_channel_stats")
    async def get_channel_stats(
        self,
        channel_ids: Iterable[str],
        period: PeriodArg,
    ) -> Dict[str, ChannelStats]:
        """
        Per-channel statistics keyed by channel id.

        Every requested channel appears, zero-filled when it has no events.
        Ad efficiency is attached for channels with a positive budget. Link
        channels report their completed sessions as access.
        """
        period = _ensure_period(period, self.tz)
        ids = _unique_ids(channel_ids)
        if not ids:
            return {}

        channels = await self.channels.get_channels(ids)
        counts = await self.aggregator.aggregate(ids, period.current, _link_ids(channels))

        result: Dict[str, ChannelStats] = {}
        for channel_id, channel_counts in counts.items():
            channel = channels.get(channel_id)
            efficiency = compute_ad_efficiency(
                channel.ad_spend if channel else None,
                channel_counts.access_count,
                channel_counts.completed_count,
                channel_counts.cta_count,
            )
            result[channel_id] = ChannelStats.from_counts(channel_counts, efficiency)

        logger.info(
            "Channel stats computed",
            extra={"channels": len(result), "period": period.kind.value},
        )
        return result

    @timed("get_overall_stats")
    async def get_overall_stats(
        self,
        channel_ids: Iterable[str],
        period: PeriodArg,
    ) -> OverallStats:
        """
        Cross-channel statistics with trends against the previous period.

        For the "all" period there is no previous window: every trend is
        reported as new and ``prev_period`` is None. Completed sessions of
        link channels count as access and as ``qr_link`` CTA clicks in both
        periods.
        """
        period = _ensure_period(period, self.tz)
        ids = _unique_ids(channel_ids)

        channels = await self.channels.get_channels(ids) if ids else {}
        link_ids = _link_ids(channels)

        async def _previous() -> Optional[MetricTotals]:
            if not period.has_previous:
                return None
            return await self.aggregator.totals(ids, period.previous, link_ids)

        counts, previous = await asyncio.gather(
            self.aggregator.aggregate_combined(ids, period.current, link_ids),
            _previous(),
        )

        total_budget = sum(
            c.ad_spend.budget for c in channels.values() if c.ad_spend.has_budget
        )
        efficiency = compute_total_efficiency(
            total_budget, counts.access_count, counts.completed_count, counts.cta_count
        )
        current = MetricTotals(counts.access_count, counts.completed_count, counts.cta_count)
        stats = OverallStats.from_counts(
            counts,
            trends=build_trends(current, previous),
            prev_period=previous,
            ad_efficiency=efficiency,
            channels=list(channels.values()),
        )

        logger.info(
            "Overall stats computed",
            extra={"channels": len(ids), "period": period.kind.value},
        )
        return stats

    @timed("get_location_aggregates")
    async def get_location_aggregates(
        self,
        channel_ids: Iterable[str],
        period: PeriodArg,
    ) -> LocationAggregates:
        """
        Completed sessions rolled up by place, plus the hotspot.

        ``total`` counts every completed session in the filter, including
        those without a usable place.
        """
        period = _ensure_period(period, self.tz)
        ids = _unique_ids(channel_ids)

        async def _channels() -> Dict[str, Channel]:
            if not ids:
                return {}
            return await self.channels.get_channels(ids)

        rows, channels = await asyncio.gather(
            self.aggregator.completion_rows(ids, period.current, _PLACE_FIELDS),
            _channels(),
        )

        places = aggregate_places(rows)
        return LocationAggregates(
            places=rank_places(places, config.geo.max_places),
            regions=summarize_regions(rows),
            total=len(rows),
            window=period.current,
            clinic_center=_clinic_center(channels, ids),
            hotspot=find_hotspot(places),
        )

    @timed("get_location_demographics")
    async def get_location_demographics(
        self,
        region: str,
        city: str,
        town: Optional[str],
        channel_ids: Iterable[str],
        period: PeriodArg,
    ) -> LocationDemographics:
        """
        Gender and age mix of completions from one place.

        Without a town every session in the city matches, including those
        rolled up under one of its towns.

        Raises:
            ValidationError: If region or city is missing
        """
        region = validate_place_name(region, "region")
        city = validate_place_name(city, "city")
        town = validate_place_name(town, "town", allow_none=True)
        period = _ensure_period(period, self.tz)
        ids = _unique_ids(channel_ids)

        rows = await self.aggregator.completion_rows(ids, period.current, _DEMOGRAPHIC_FIELDS)

        result = LocationDemographics(age_ranges=AgeRanges(DETAILED_AGE_SCHEME))
        for row in rows:
            if not matches_place(row, region, city, town):
                continue
            result.total += 1
            result.gender_by_type.add(row.get("user_gender"))
            result.age_ranges.add(row.get("user_age"))
        return result


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_service_instance: Optional[AttributionService] = None
_service_lock = asyncio.Lock()


async def get_attribution_service() -> AttributionService:
    """Get singleton service bound to the shared DuckDB store (coroutine-safe)."""
    global _service_instance
    async with _service_lock:
        if _service_instance is None:
            from core.duckdb_store import get_store
            store = await get_store()
            _service_instance = AttributionService(store, store)
    return _service_instance


def reset_attribution_service() -> None:
    """Drop the singleton (used on shutdown and in tests)."""
    global _service_instance
    _service_instance = None
