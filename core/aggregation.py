"""
Channel aggregation: raw per-channel and cross-channel counts for one
time window, pulled from an EventQueryAdapter.

Every dimension (access, completion, CTA, demographics, histogram) is an
independent query; they run concurrently and any failure propagates to
the caller without partially filling the result.

Link channels log no quiz access of their own: each completed link
session counts as one access, and in cross-channel totals also as one
``qr_link`` CTA click.
"""
import asyncio
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import AbstractSet, Dict, Iterable, List, Optional, Mapping, Any, Tuple
from zoneinfo import ZoneInfo

from core.config import config
from core.event_query import EventFilter, EventKind, EventQueryAdapter, GroupCount
from core.models import QR_LINK_CTA, ChannelCounts, CombinedCounts, CTASource, DailyCount, MetricTotals
from core.observability import get_logger, timed
from core.periods import TimeWindow

logger = get_logger(__name__)


def _to_local_date(instant: datetime, tz: ZoneInfo) -> date:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date()


def build_daily_histogram(
    timestamps: Iterable[datetime],
    tz: Optional[ZoneInfo] = None,
    limit: Optional[int] = None,
) -> List[DailyCount]:
    """
    Count timestamps per clinic-local calendar day.

    Returns only days with events, most recent first, capped at ``limit``
    (default: configured histogram length).
    """
    tz = tz or config.stats.tz
    limit = config.stats.histogram_days if limit is None else limit
    per_day: Dict[date, int] = defaultdict(int)
    for instant in timestamps:
        per_day[_to_local_date(instant, tz)] += 1
    days = sorted(per_day.items(), key=lambda item: item[0], reverse=True)[:limit]
    return [DailyCount(day, count) for day, count in days]


def _sum_counts(groups: List[GroupCount]) -> int:
    return sum(g.count for g in groups)


def _link_adjusted_access(
    access_counts: List[GroupCount],
    completed_counts: List[GroupCount],
    link_channel_ids: AbstractSet[str],
) -> Tuple[int, int]:
    """
    Access total with link channels counted by their completed sessions.

    Both inputs are grouped by channel id.

    Returns:
        (access count, completed link sessions)
    """
    access = sum(g.count for g in access_counts if g.key[0] not in link_channel_ids)
    link_completed = sum(g.count for g in completed_counts if g.key[0] in link_channel_ids)
    return access + link_completed, link_completed


def _merge_by_category(groups: List[GroupCount], target: Dict[str, int]) -> None:
    label = config.stats.uncategorized_label
    for group in groups:
        category = group.key[0] or label
        target[category] = target.get(category, 0) + group.count


class ChannelAggregator:
    """
    Turns event queries into raw count structures.

    Usage:
        aggregator = ChannelAggregator(store)
        counts = await aggregator.aggregate(["ch-1", "ch-2"], period.current)
    """

    def __init__(self, adapter: EventQueryAdapter, tz: Optional[ZoneInfo] = None):
        self.adapter = adapter
        self.tz = tz or config.stats.tz

    @timed("aggregate_channels")
    async def aggregate(
        self,
        channel_ids: Iterable[str],
        window: TimeWindow,
        link_channel_ids: AbstractSet[str] = frozenset(),
    ) -> Dict[str, ChannelCounts]:
        """
        Per-channel counts for every requested channel.

        Channels with no events still appear, with all-zero counts.
        An empty channel set returns an empty mapping without querying.
        A link channel's access count is its completed session count.
        """
        event_filter = EventFilter.create(channel_ids, window)
        if event_filter.is_empty:
            return {}

        q = self.adapter
        (
            access_counts,
            completed_counts,
            cta_counts,
            cta_by_type,
            gender_counts,
            age_counts,
            access_rows,
        ) = await asyncio.gather(
            q.count_grouped(EventKind.ACCESS, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.CTA_CLICK, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.CTA_CLICK, event_filter, ["channel_id", "cta_type"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["channel_id", "user_gender"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["channel_id", "user_age"]),
            q.fetch_rows(EventKind.ACCESS, event_filter, ["channel_id", "created_at"]),
        )

        stats = {channel_id: ChannelCounts() for channel_id in sorted(event_filter.channel_ids)}

        for group in access_counts:
            if group.key[0] in stats and group.key[0] not in link_channel_ids:
                stats[group.key[0]].access_count += group.count
        for group in completed_counts:
            if group.key[0] in stats:
                stats[group.key[0]].completed_count += group.count
                if group.key[0] in link_channel_ids:
                    stats[group.key[0]].access_count += group.count
        for group in cta_counts:
            if group.key[0] in stats:
                stats[group.key[0]].cta_count += group.count
        for group in cta_by_type:
            if group.key[0] in stats:
                stats[group.key[0]].cta_by_type.add(group.key[1], group.count)
        for group in gender_counts:
            if group.key[0] in stats:
                stats[group.key[0]].gender_by_type.add(group.key[1], group.count)
        for group in age_counts:
            if group.key[0] in stats:
                stats[group.key[0]].age_ranges.add(group.key[1], group.count)

        timestamps: Dict[str, List[datetime]] = defaultdict(list)
        for row in access_rows:
            timestamps[row["channel_id"]].append(row["created_at"])
        for channel_id, channel_stats in stats.items():
            channel_stats.access_by_date = build_daily_histogram(timestamps.get(channel_id, ()), self.tz)

        logger.debug(
            "Aggregated channel counts",
            extra={"channels": len(stats), "window_start": window.start.isoformat()},
        )
        return stats

    @timed("aggregate_combined")
    async def aggregate_combined(
        self,
        channel_ids: Iterable[str],
        window: TimeWindow,
        link_channel_ids: AbstractSet[str] = frozenset(),
    ) -> CombinedCounts:
        """Counts summed across the channel set, with result-category and conversion detail."""
        event_filter = EventFilter.create(channel_ids, window)
        combined = CombinedCounts()
        if event_filter.is_empty:
            return combined

        q = self.adapter
        (
            access_counts,
            completed_counts,
            category_completions,
            cta_by_type,
            cta_by_source,
            category_clicks,
            gender_counts,
            age_counts,
            page_views,
        ) = await asyncio.gather(
            q.count_grouped(EventKind.ACCESS, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["result_category"]),
            q.count_grouped(EventKind.CTA_CLICK, event_filter, ["cta_type"]),
            q.count_grouped(EventKind.CTA_CLICK, event_filter, ["source"]),
            q.count_grouped(EventKind.CTA_CLICK, event_filter, ["result_category", "session_id"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["user_gender"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["user_age"]),
            q.count_grouped(EventKind.PAGE_VIEW, event_filter, []),
        )

        combined.access_count, combined.link_completed_count = _link_adjusted_access(
            access_counts, completed_counts, link_channel_ids
        )
        combined.completed_count = _sum_counts(category_completions)
        combined.cta_count = _sum_counts(cta_by_type) + combined.link_completed_count
        combined.clinic_page_views = _sum_counts(page_views)

        for group in cta_by_type:
            combined.cta_by_type.add(group.key[0], group.count)
        if combined.link_completed_count:
            combined.cta_by_type.add(QR_LINK_CTA, combined.link_completed_count)
        for group in cta_by_source:
            if group.key[0] == CTASource.CLINIC_PAGE.value:
                combined.cta_from_clinic_page += group.count
            else:
                combined.cta_from_result += group.count
        for group in gender_counts:
            combined.gender_by_type.add(group.key[0], group.count)
        for group in age_counts:
            combined.age_ranges.add(group.key[0], group.count)

        _merge_by_category(category_completions, combined.category_completions)
        # Clicks without a session cannot be tied to a result
        _merge_by_category(
            [GroupCount((g.key[0],), g.count) for g in category_clicks if g.key[1] is not None],
            combined.category_clicks,
        )
        return combined

    async def totals(
        self,
        channel_ids: Iterable[str],
        window: TimeWindow,
        link_channel_ids: AbstractSet[str] = frozenset(),
    ) -> MetricTotals:
        """Access, completion and CTA totals, crediting link channels as ``aggregate_combined`` does."""
        event_filter = EventFilter.create(channel_ids, window)
        if event_filter.is_empty:
            return MetricTotals()

        q = self.adapter
        access_counts, completed_counts, cta_counts = await asyncio.gather(
            q.count_grouped(EventKind.ACCESS, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.COMPLETION, event_filter, ["channel_id"]),
            q.count_grouped(EventKind.CTA_CLICK, event_filter, ["channel_id"]),
        )
        access, link_completed = _link_adjusted_access(access_counts, completed_counts, link_channel_ids)
        return MetricTotals(
            access_count=access,
            completed_count=_sum_counts(completed_counts),
            cta_count=_sum_counts(cta_counts) + link_completed,
        )

    async def completion_rows(
        self,
        channel_ids: Iterable[str],
        window: TimeWindow,
        fields: List[str],
    ) -> List[Mapping[str, Any]]:
        """Raw completed-session rows for geographic and demographic drill-downs."""
        event_filter = EventFilter.create(channel_ids, window)
        if event_filter.is_empty:
            return []
        return await self.adapter.fetch_rows(EventKind.COMPLETION, event_filter, fields)
