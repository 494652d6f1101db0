"""Period-over-period trend calculation."""
from dataclasses import dataclass
from typing import Optional, Dict, Any

from core.metrics import round1
from core.models import MetricTotals

TREND_METRICS = ("accessCount", "completedCount", "ctaCount")


@dataclass(frozen=True)
class Trend:
    """Signed percent change, or ``is_new`` when there is no usable baseline."""
    value: Optional[float] = None
    is_new: bool = False

    def to_dict(self) -> Dict[str, Any]:
        if self.is_new:
            return {"isNew": True}
        return {"value": self.value, "isNew": False}


def calculate_trend(current: int, previous: Optional[int]) -> Trend:
    """
    Compare a metric against its previous-period value.

    ``previous`` is None when no previous period exists (the "all" period),
    which is reported the same way as growth from zero.
    """
    if previous is None:
        return Trend(is_new=True)
    if previous == 0:
        if current > 0:
            return Trend(is_new=True)
        return Trend(value=0.0)
    return Trend(value=round1((current - previous) / previous * 100))


def build_trends(current: MetricTotals, previous: Optional[MetricTotals]) -> Dict[str, Trend]:
    """Trends for access, completion and CTA counts."""
    prev = previous.to_dict() if previous is not None else {}
    cur = current.to_dict()
    return {name: calculate_trend(cur[name], prev.get(name)) for name in TREND_METRICS}
