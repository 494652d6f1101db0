"""
Derived metrics: rates and ad-spend efficiency.

Rates are percentages rounded half-up to one decimal place; monetary
metrics are rounded half-up to whole currency units. A zero denominator
never raises: rates fall back to 0, cost metrics to None ("not
computable", distinct from a genuine 0).
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional, Dict, Any

from core.models import AdSpend

NO_AD_PERIOD_LABEL = "no end date"
AD_DATE_FORMAT = "%Y/%m/%d"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from negative infinity (dashboard rounding, not banker's)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round1(value: float) -> float:
    """Round to one decimal place."""
    return round_half_up(value, 1)


def round_currency(value: float) -> int:
    """Round to whole currency units."""
    return int(math.floor(value + 0.5))


def percentage(numerator: int, denominator: int) -> float:
    """Percentage rounded to one decimal; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0.0
    return round1(numerator / denominator * 100)


def completion_rate(completed_count: int, access_count: int) -> float:
    """Completions per access, as a percentage."""
    return percentage(completed_count, access_count)


def cta_rate(cta_count: int, completed_count: int) -> float:
    """CTA clicks per completion, as a percentage (CTAs live on the result screen)."""
    return percentage(cta_count, completed_count)


def cost_per(budget: int, count: int) -> Optional[int]:
    """Budget divided by ``count``, or None when ``count`` is 0."""
    if count <= 0:
        return None
    return round_currency(budget / count)


def ad_days(start_date: Optional[date], end_date: Optional[date]) -> Optional[int]:
    """Inclusive campaign length in days (at least 1), or None without both dates."""
    if start_date is None or end_date is None:
        return None
    return max(1, (end_date - start_date).days + 1)


def format_ad_period(start_date: Optional[date], end_date: Optional[date]) -> str:
    """Human label for an ad campaign's own date range."""
    if start_date is None and end_date is None:
        return NO_AD_PERIOD_LABEL
    start = start_date.strftime(AD_DATE_FORMAT) if start_date else ""
    end = end_date.strftime(AD_DATE_FORMAT) if end_date else ""
    return f"{start}〜{end}"


@dataclass(frozen=True)
class AdEfficiency:
    """Cost metrics for a positive ad budget."""
    ad_budget: int
    cpa: Optional[int] = None
    cpd: Optional[int] = None
    cpc: Optional[int] = None
    ad_days: Optional[int] = None
    daily_cost: Optional[int] = None
    period_label: Optional[str] = None
    placement: Optional[str] = None

    def to_dict(self, include_schedule: bool = True) -> Dict[str, Any]:
        """
        Serialize to dashboard keys.

        Args:
            include_schedule: Include adDays/dailyCost/periodLabel/adPlacement
                (per-channel cards); cross-channel totals have no single schedule.
        """
        result: Dict[str, Any] = {
            "adBudget": self.ad_budget,
            "cpa": self.cpa,
            "cpd": self.cpd,
            "cpc": self.cpc,
        }
        if include_schedule:
            result.update({
                "adDays": self.ad_days,
                "dailyCost": self.daily_cost,
                "periodLabel": self.period_label,
                "adPlacement": self.placement,
            })
        return result


def compute_ad_efficiency(
    ad_spend: Optional[AdSpend],
    access_count: int,
    completed_count: int,
    cta_count: int,
) -> Optional[AdEfficiency]:
    """
    Compute ad-spend efficiency for one channel.

    Returns:
        AdEfficiency, or None when there is no positive budget
    """
    if ad_spend is None or not ad_spend.has_budget:
        return None

    budget = ad_spend.budget
    days = ad_days(ad_spend.start_date, ad_spend.end_date)
    return AdEfficiency(
        ad_budget=budget,
        cpa=cost_per(budget, access_count),
        cpd=cost_per(budget, completed_count),
        cpc=cost_per(budget, cta_count),
        ad_days=days,
        daily_cost=round_currency(budget / days) if days is not None else None,
        period_label=format_ad_period(ad_spend.start_date, ad_spend.end_date),
        placement=ad_spend.placement,
    )


def compute_total_efficiency(
    total_budget: int,
    access_count: int,
    completed_count: int,
    cta_count: int,
) -> Optional[AdEfficiency]:
    """Cross-channel efficiency over a summed budget (no schedule)."""
    if total_budget <= 0:
        return None
    return AdEfficiency(
        ad_budget=total_budget,
        cpa=cost_per(total_budget, access_count),
        cpd=cost_per(total_budget, completed_count),
        cpc=cost_per(total_budget, cta_count),
    )
