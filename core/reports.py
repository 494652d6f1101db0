"""
Report shapes returned by the attribution service.

Each report is assembled from raw counts plus derived metrics and
serializes to the camelCase payload the dashboard renders.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple

from core.demographics import AgeRanges, GenderBreakdown, DETAILED_AGE_SCHEME
from core.geo import PlaceAggregate
from core.metrics import AdEfficiency, completion_rate, cta_rate, percentage
from core.models import (
    CategoryStat, Channel, ChannelCounts, CombinedCounts, CTATypeCounts, DailyCount, MetricTotals,
)
from core.periods import TimeWindow
from core.trends import Trend


@dataclass
class ChannelStats:
    """Dashboard card for one channel."""
    access_count: int
    completed_count: int
    completion_rate: float
    cta_count: int
    cta_rate: float
    cta_by_type: CTATypeCounts
    gender_by_type: GenderBreakdown
    age_ranges: AgeRanges
    access_by_date: List[DailyCount]
    ad_efficiency: Optional[AdEfficiency] = None

    @classmethod
    def from_counts(cls, counts: ChannelCounts, ad_efficiency: Optional[AdEfficiency] = None) -> "ChannelStats":
        return cls(
            access_count=counts.access_count,
            completed_count=counts.completed_count,
            completion_rate=completion_rate(counts.completed_count, counts.access_count),
            cta_count=counts.cta_count,
            cta_rate=cta_rate(counts.cta_count, counts.completed_count),
            cta_by_type=counts.cta_by_type,
            gender_by_type=counts.gender_by_type,
            age_ranges=counts.age_ranges,
            access_by_date=counts.access_by_date,
            ad_efficiency=ad_efficiency,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "accessCount": self.access_count,
            "completedCount": self.completed_count,
            "completionRate": self.completion_rate,
            "ctaCount": self.cta_count,
            "ctaRate": self.cta_rate,
            "ctaByType": self.cta_by_type.to_dict(),
            "genderByType": self.gender_by_type.to_dict(),
            "ageRanges": self.age_ranges.to_dict(),
            "accessByDate": [d.to_dict() for d in self.access_by_date],
        }
        if self.ad_efficiency is not None:
            result.update(self.ad_efficiency.to_dict())
        return result


def build_category_stats(
    completions: Dict[str, int],
    clicks: Dict[str, int],
) -> Dict[str, CategoryStat]:
    """Per result category: completions, attributed clicks, and click rate."""
    stats: Dict[str, CategoryStat] = {}
    for category in list(completions) + [c for c in clicks if c not in completions]:
        count = completions.get(category, 0)
        cta_count = clicks.get(category, 0)
        stats[category] = CategoryStat(count, cta_count, percentage(cta_count, count))
    return stats


@dataclass
class OverallStats:
    """Cross-channel summary for the selected channels."""
    access_count: int
    completed_count: int
    completion_rate: float
    cta_count: int
    cta_rate: float
    cta_by_type: CTATypeCounts
    gender_by_type: GenderBreakdown
    age_ranges: AgeRanges
    category_stats: Dict[str, CategoryStat]
    trends: Dict[str, Trend]
    prev_period: Optional[MetricTotals] = None
    ad_efficiency: Optional[AdEfficiency] = None
    clinic_page_views: int = 0
    cta_from_result: int = 0
    cta_from_clinic_page: int = 0
    result_conversion_rate: float = 0.0
    clinic_page_conversion_rate: float = 0.0
    # Selected channels, reported beside the stats rather than inside them
    channels: List[Channel] = field(default_factory=list)

    @classmethod
    def from_counts(
        cls,
        counts: CombinedCounts,
        trends: Dict[str, Trend],
        prev_period: Optional[MetricTotals] = None,
        ad_efficiency: Optional[AdEfficiency] = None,
        channels: Optional[List[Channel]] = None,
    ) -> "OverallStats":
        return cls(
            access_count=counts.access_count,
            completed_count=counts.completed_count,
            completion_rate=completion_rate(counts.completed_count, counts.access_count),
            cta_count=counts.cta_count,
            cta_rate=cta_rate(counts.cta_count, counts.completed_count),
            cta_by_type=counts.cta_by_type,
            gender_by_type=counts.gender_by_type,
            age_ranges=counts.age_ranges,
            category_stats=build_category_stats(counts.category_completions, counts.category_clicks),
            trends=trends,
            prev_period=prev_period,
            ad_efficiency=ad_efficiency,
            clinic_page_views=counts.clinic_page_views,
            cta_from_result=counts.cta_from_result,
            cta_from_clinic_page=counts.cta_from_clinic_page,
            result_conversion_rate=percentage(counts.cta_from_result, counts.completed_count),
            clinic_page_conversion_rate=percentage(counts.cta_from_clinic_page, counts.clinic_page_views),
            channels=list(channels or []),
        )

    @property
    def totals(self) -> MetricTotals:
        return MetricTotals(self.access_count, self.completed_count, self.cta_count)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "accessCount": self.access_count,
            "completedCount": self.completed_count,
            "completionRate": self.completion_rate,
            "ctaCount": self.cta_count,
            "ctaRate": self.cta_rate,
            "ctaByType": self.cta_by_type.to_dict(),
            "genderByType": self.gender_by_type.to_dict(),
            "ageRanges": self.age_ranges.to_dict(),
            "clinicPageViews": self.clinic_page_views,
            "ctaFromResult": self.cta_from_result,
            "ctaFromClinicPage": self.cta_from_clinic_page,
            "resultConversionRate": self.result_conversion_rate,
            "clinicPageConversionRate": self.clinic_page_conversion_rate,
            "categoryStats": {k: v.to_dict() for k, v in self.category_stats.items()},
            "trends": {k: v.to_dict() for k, v in self.trends.items()},
            "prevPeriod": self.prev_period.to_dict() if self.prev_period else None,
        }
        if self.ad_efficiency is not None:
            result.update(self.ad_efficiency.to_dict(include_schedule=False))
        return result

    def channel_summaries(self) -> List[Dict[str, Any]]:
        return [c.summary() for c in self.channels]


@dataclass
class LocationAggregates:
    """Place rollup for the location map."""
    places: List[PlaceAggregate]
    regions: List[Dict[str, Any]]
    total: int
    window: TimeWindow
    clinic_center: Optional[Tuple[float, float]] = None
    hotspot: Optional[PlaceAggregate] = None

    def to_dict(self) -> Dict[str, Any]:
        center = None
        if self.clinic_center is not None:
            center = {"latitude": self.clinic_center[0], "longitude": self.clinic_center[1]}
        return {
            "places": [p.to_dict() for p in self.places],
            "regions": self.regions,
            "total": self.total,
            "clinicCenter": center,
            "hotspot": self.hotspot.to_dict() if self.hotspot else None,
            "period": self.window.to_dict(),
        }


@dataclass
class LocationDemographics:
    """Gender and age mix of completions from one place."""
    gender_by_type: GenderBreakdown = field(default_factory=GenderBreakdown)
    age_ranges: AgeRanges = field(default_factory=lambda: AgeRanges(DETAILED_AGE_SCHEME))
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "genderByType": self.gender_by_type.to_dict(),
            "ageRanges": self.age_ranges.to_dict(),
            "total": self.total,
        }
