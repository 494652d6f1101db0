"""
Domain models for channel attribution statistics.

Provides type-safe dataclasses for channels, ad spend, and the derived
statistics returned to dashboards. Derived structures serialize to the
camelCase shapes the dashboard consumes via ``to_dict()``.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, List, Dict, Any, Iterator, Tuple

from core.demographics import AgeRanges, GenderBreakdown, CHANNEL_AGE_SCHEME, DETAILED_AGE_SCHEME


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class CTAType(str, Enum):
    """Call-to-action buttons shown on the quiz result screen."""
    BOOKING = "booking"
    PHONE = "phone"
    LINE = "line"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    THREADS = "threads"
    X = "x"
    GOOGLE_MAPS = "google_maps"
    CLINIC_PAGE = "clinic_page"
    CLINIC_HOMEPAGE = "clinic_homepage"
    DIRECT_LINK = "direct_link"

    @property
    def display_name(self) -> str:
        """Human-readable CTA name."""
        return CTA_TYPE_NAMES[self.value]


CTA_TYPE_NAMES: Dict[str, str] = {
    "booking": "予約",
    "phone": "電話",
    "line": "LINE",
    "instagram": "Instagram",
    "youtube": "YouTube",
    "facebook": "Facebook",
    "tiktok": "TikTok",
    "threads": "Threads",
    "x": "X",
    "google_maps": "マップ",
    "clinic_page": "医院ページ",
    "clinic_homepage": "ホームページ",
    "direct_link": "直リンク",
}


def cta_display_name(cta_type: str) -> str:
    """Display name for a CTA tag, falling back to the raw tag."""
    return CTA_TYPE_NAMES.get(cta_type, cta_type)


# Overall stats credit each completed link-channel session as one CTA under this tag
QR_LINK_CTA = "qr_link"


class CTASource(str, Enum):
    """Screen a CTA button was clicked on."""
    RESULT = "result"
    CLINIC_PAGE = "clinic_page"


class ChannelType(str, Enum):
    """
    How a channel's QR code is used.

    A diagnosis channel opens the quiz and logs an access event per scan.
    A link channel sends the visitor straight to a URL after the profile
    form; each completed link session stands for one access.
    """
    DIAGNOSIS = "diagnosis"
    LINK = "link"


# ═══════════════════════════════════════════════════════════════════════════════
# CHANNELS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AdSpend:
    """Ad-spend configuration attached to a channel."""
    budget: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    placement: Optional[str] = None

    @property
    def has_budget(self) -> bool:
        """Efficiency metrics are only computed for a positive budget."""
        return self.budget is not None and self.budget > 0


@dataclass(frozen=True)
class Channel:
    """A tracked marketing source (one QR code)."""
    id: str
    name: str = ""
    is_active: bool = True
    ad_spend: AdSpend = field(default_factory=AdSpend)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    channel_type: ChannelType = ChannelType.DIAGNOSIS

    @property
    def is_link(self) -> bool:
        return self.channel_type == ChannelType.LINK

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "channelType": self.channel_type.value}

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


# ═══════════════════════════════════════════════════════════════════════════════
# DERIVED MAPS
# ═══════════════════════════════════════════════════════════════════════════════

class CTATypeCounts:
    """
    CTA click counts keyed by CTA type.

    Every known CTA type is always present (default 0). Unknown tags seen
    in the event stream are appended after the known ones.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {cta.value: 0 for cta in CTAType}

    def add(self, cta_type: Optional[str], count: int = 1) -> None:
        if not cta_type:
            return
        self._counts[cta_type] = self._counts.get(cta_type, 0) + count

    def __getitem__(self, cta_type: str) -> int:
        return self._counts.get(cta_type, 0)

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def to_dict(self) -> Dict[str, int]:
        return dict(self._counts)


@dataclass(frozen=True)
class DailyCount:
    """Access count for one clinic-local calendar day."""
    date: date
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "count": self.count}


# ═══════════════════════════════════════════════════════════════════════════════
# STATISTICS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ChannelCounts:
    """Raw per-channel counts for one time window."""
    access_count: int = 0
    completed_count: int = 0
    cta_count: int = 0
    cta_by_type: CTATypeCounts = field(default_factory=CTATypeCounts)
    gender_by_type: GenderBreakdown = field(default_factory=GenderBreakdown)
    age_ranges: AgeRanges = field(default_factory=lambda: AgeRanges(CHANNEL_AGE_SCHEME))
    access_by_date: List[DailyCount] = field(default_factory=list)


@dataclass(frozen=True)
class CategoryStat:
    """Completions and CTA clicks for one quiz result category."""
    count: int = 0
    cta_count: int = 0
    cta_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "ctaCount": self.cta_count, "ctaRate": self.cta_rate}


@dataclass
class CombinedCounts:
    """Raw counts across a set of channels for one time window."""
    access_count: int = 0
    completed_count: int = 0
    cta_count: int = 0
    cta_by_type: CTATypeCounts = field(default_factory=CTATypeCounts)
    gender_by_type: GenderBreakdown = field(default_factory=GenderBreakdown)
    age_ranges: AgeRanges = field(default_factory=lambda: AgeRanges(DETAILED_AGE_SCHEME))
    category_completions: Dict[str, int] = field(default_factory=dict)
    category_clicks: Dict[str, int] = field(default_factory=dict)
    clinic_page_views: int = 0
    cta_from_result: int = 0
    cta_from_clinic_page: int = 0
    link_completed_count: int = 0


@dataclass(frozen=True)
class MetricTotals:
    """Headline counts compared across periods."""
    access_count: int = 0
    completed_count: int = 0
    cta_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "accessCount": self.access_count,
            "completedCount": self.completed_count,
            "ctaCount": self.cta_count,
        }
