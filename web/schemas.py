"""
Pydantic response models for API endpoints.

Provides type-safe response models with automatic validation and documentation.
Field names mirror the camelCase payload the dashboard consumes.
"""
from typing import Any, Optional, List, Dict
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# COMMON MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class GenderBreakdownModel(BaseModel):
    """Completions per gender (all keys always present)."""
    male: int = 0
    female: int = 0
    other: int = 0


class PeriodWindow(BaseModel):
    """Resolved reporting window (ISO instants)."""
    from_: str = Field(alias="from", description="Window start (inclusive)")
    to: str = Field(description="Window end (exclusive)")

    model_config = {"populate_by_name": True}


class DailyCountModel(BaseModel):
    date: str = Field(description="Clinic-local date (YYYY-MM-DD)")
    count: int


class TrendModel(BaseModel):
    """Percent change vs previous period; value omitted when isNew."""
    value: Optional[float] = None
    isNew: bool


class MetricTotalsModel(BaseModel):
    accessCount: int
    completedCount: int
    ctaCount: int


class CategoryStatModel(BaseModel):
    count: int
    ctaCount: int
    ctaRate: float


# ═══════════════════════════════════════════════════════════════════════════════
# CHANNEL STATS
# ═══════════════════════════════════════════════════════════════════════════════

class ChannelStatsModel(BaseModel):
    """Statistics card for one channel."""
    accessCount: int
    completedCount: int
    completionRate: float = Field(description="Completions per access (%)")
    ctaCount: int
    ctaRate: float = Field(description="CTA clicks per completion (%)")
    ctaByType: Dict[str, int]
    genderByType: GenderBreakdownModel
    ageRanges: Dict[str, int]
    accessByDate: List[DailyCountModel]

    # Present only when the channel has a positive ad budget
    adBudget: Optional[int] = None
    adDays: Optional[int] = None
    dailyCost: Optional[int] = None
    cpa: Optional[int] = Field(None, description="Cost per access")
    cpd: Optional[int] = Field(None, description="Cost per completed diagnosis")
    cpc: Optional[int] = Field(None, description="Cost per CTA click")
    periodLabel: Optional[str] = None
    adPlacement: Optional[str] = None


class ChannelStatsResponse(BaseModel):
    """Per-channel statistics keyed by channel id."""
    stats: Dict[str, ChannelStatsModel]


# ═══════════════════════════════════════════════════════════════════════════════
# OVERALL STATS
# ═══════════════════════════════════════════════════════════════════════════════

class OverallStatsModel(BaseModel):
    """Cross-channel statistics."""
    accessCount: int
    completedCount: int
    completionRate: float
    ctaCount: int
    ctaRate: float
    ctaByType: Dict[str, int]
    genderByType: GenderBreakdownModel
    ageRanges: Dict[str, int]
    clinicPageViews: int = 0
    ctaFromResult: int = 0
    ctaFromClinicPage: int = 0
    resultConversionRate: float = Field(0.0, description="Result-screen CTA clicks per completion (%)")
    clinicPageConversionRate: float = Field(0.0, description="Clinic-page CTA clicks per clinic page view (%)")
    categoryStats: Dict[str, CategoryStatModel]
    trends: Dict[str, TrendModel]
    prevPeriod: Optional[MetricTotalsModel] = None

    # Present only when the selected channels have a positive total budget
    adBudget: Optional[int] = None
    cpa: Optional[int] = None
    cpd: Optional[int] = None
    cpc: Optional[int] = None


class ChannelSummaryModel(BaseModel):
    """A selected channel, for the dashboard filter."""
    id: str
    name: str
    channelType: str = Field(description="diagnosis or link")


class OverallStatsResponse(BaseModel):
    stats: OverallStatsModel
    channels: List[ChannelSummaryModel] = Field(default_factory=list)
    period: PeriodWindow


# ═══════════════════════════════════════════════════════════════════════════════
# LOCATIONS
# ═══════════════════════════════════════════════════════════════════════════════

class PlaceModel(BaseModel):
    """Completions rolled up to one place."""
    region: str
    city: str
    town: Optional[str] = None
    count: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class RegionCountModel(BaseModel):
    region: str
    count: int


class CoordinateModel(BaseModel):
    latitude: float
    longitude: float


class LocationAggregatesResponse(BaseModel):
    places: List[PlaceModel]
    regions: List[RegionCountModel]
    total: int = Field(description="All completed sessions in the filter")
    clinicCenter: Optional[CoordinateModel] = None
    hotspot: Optional[PlaceModel] = None
    period: PeriodWindow


class LocationDemographicsResponse(BaseModel):
    genderByType: GenderBreakdownModel
    ageRanges: Dict[str, int]
    total: int


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class StoreStats(BaseModel):
    """DuckDB event store statistics."""
    status: str
    latency_ms: Optional[float] = None
    channels: Optional[int] = None
    access_events: Optional[int] = None
    completion_events: Optional[int] = None
    cta_clicks: Optional[int] = None
    db_size_mb: Optional[float] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    store: StoreStats
    cache: Dict[str, Any] = Field(default_factory=dict, description="Redis cache status")


class MetricsResponse(BaseModel):
    """Application metrics response."""
    uptime_seconds: int
    correlation_id: Optional[str] = None
    requests: Dict[str, int]
    errors: Dict[str, int]
    timing: Dict[str, Dict[str, Optional[float]]]
    system: Dict[str, Any] = Field(default_factory=dict, description="Process memory and threads")
