"""
Tests for core.metrics module.
"""
import pytest
from datetime import date

from core.metrics import (
    NO_AD_PERIOD_LABEL,
    AdEfficiency,
    ad_days,
    completion_rate,
    compute_ad_efficiency,
    compute_total_efficiency,
    cost_per,
    cta_rate,
    format_ad_period,
    percentage,
    round1,
    round_currency,
    round_half_up,
)
from core.models import AdSpend


class TestRounding:
    """Tests for half-up rounding helpers."""

    def test_round_half_up_rounds_halves_up(self):
        """Halves round up, unlike banker's rounding."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round1(0.25) == 0.3

    def test_round1(self):
        """One decimal place."""
        assert round1(38.888) == 38.9
        assert round1(85.714) == 85.7

    def test_round_currency(self):
        """Whole currency units."""
        assert round_currency(257.14) == 257
        assert round_currency(128.5) == 129
        assert isinstance(round_currency(100.0), int)


class TestRates:
    """Tests for rate helpers."""

    def test_completion_rate(self):
        """Completions per access."""
        assert completion_rate(35, 90) == 38.9

    def test_cta_rate(self):
        """CTA clicks per completion."""
        assert cta_rate(30, 35) == 85.7

    def test_zero_denominator(self):
        """A zero denominator yields 0, never an error."""
        assert completion_rate(5, 0) == 0
        assert cta_rate(3, 0) == 0
        assert percentage(0, 0) == 0

    def test_rate_above_hundred(self):
        """Rates are not clamped."""
        assert cta_rate(15, 10) == 150.0


class TestCostPer:
    """Tests for cost_per function."""

    def test_divides_and_rounds(self):
        """Budget over count, rounded."""
        assert cost_per(9000, 90) == 100
        assert cost_per(9000, 35) == 257

    def test_zero_count_is_none(self):
        """Zero count is not computable."""
        assert cost_per(9000, 0) is None


class TestAdSchedule:
    """Tests for ad_days and format_ad_period."""

    def test_ad_days_inclusive(self):
        """Both ends count."""
        assert ad_days(date(2026, 1, 1), date(2026, 1, 9)) == 9

    def test_ad_days_same_day(self):
        """A one-day campaign is one day."""
        assert ad_days(date(2026, 1, 1), date(2026, 1, 1)) == 1

    def test_ad_days_reversed_is_at_least_one(self):
        """Reversed dates never yield zero or negative days."""
        assert ad_days(date(2026, 1, 9), date(2026, 1, 1)) == 1

    def test_ad_days_missing_date(self):
        """Missing either date gives None."""
        assert ad_days(date(2026, 1, 1), None) is None
        assert ad_days(None, date(2026, 1, 1)) is None

    def test_period_label(self):
        """Formatted with slashes and a wave dash."""
        assert format_ad_period(date(2026, 1, 1), date(2026, 1, 9)) == "2026/01/01〜2026/01/09"

    def test_period_label_open_end(self):
        """Open-ended campaigns leave the end blank."""
        assert format_ad_period(date(2026, 1, 1), None) == "2026/01/01〜"

    def test_period_label_no_dates(self):
        """No dates at all."""
        assert format_ad_period(None, None) == NO_AD_PERIOD_LABEL


class TestComputeAdEfficiency:
    """Tests for compute_ad_efficiency function."""

    def test_full_efficiency(self):
        """All metrics computed from budget and counts."""
        spend = AdSpend(
            budget=9000,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 1, 9),
            placement="Station",
        )
        eff = compute_ad_efficiency(spend, access_count=90, completed_count=35, cta_count=30)
        assert eff.ad_budget == 9000
        assert eff.cpa == 100
        assert eff.cpd == 257
        assert eff.cpc == 300
        assert eff.ad_days == 9
        assert eff.daily_cost == 1000
        assert eff.period_label == "2026/01/01〜2026/01/09"
        assert eff.placement == "Station"

    def test_zero_counts_give_none(self):
        """Zero denominators are None, not 0."""
        eff = compute_ad_efficiency(AdSpend(budget=5000), 0, 0, 0)
        assert eff.cpa is None
        assert eff.cpd is None
        assert eff.cpc is None

    def test_no_dates(self):
        """Without dates there are no days and no daily cost."""
        eff = compute_ad_efficiency(AdSpend(budget=5000), 10, 5, 1)
        assert eff.ad_days is None
        assert eff.daily_cost is None
        assert eff.period_label == NO_AD_PERIOD_LABEL

    @pytest.mark.parametrize("spend", [None, AdSpend(), AdSpend(budget=0), AdSpend(budget=-100)])
    def test_no_positive_budget(self, spend):
        """Efficiency is omitted without a positive budget."""
        assert compute_ad_efficiency(spend, 10, 5, 1) is None

    def test_to_dict_keys(self):
        """Per-channel serialization includes the schedule."""
        eff = AdEfficiency(ad_budget=9000, cpa=100, cpd=257, cpc=300, ad_days=9,
                           daily_cost=1000, period_label="x", placement="Station")
        d = eff.to_dict()
        assert d == {
            "adBudget": 9000,
            "cpa": 100,
            "cpd": 257,
            "cpc": 300,
            "adDays": 9,
            "dailyCost": 1000,
            "periodLabel": "x",
            "adPlacement": "Station",
        }

    def test_to_dict_without_schedule(self):
        """Totals omit the schedule keys."""
        eff = AdEfficiency(ad_budget=9000, cpa=100)
        assert set(eff.to_dict(include_schedule=False)) == {"adBudget", "cpa", "cpd", "cpc"}


class TestComputeTotalEfficiency:
    """Tests for compute_total_efficiency function."""

    def test_summed_budget(self):
        """Cost metrics over the summed budget."""
        eff = compute_total_efficiency(12000, 120, 40, 0)
        assert eff.ad_budget == 12000
        assert eff.cpa == 100
        assert eff.cpd == 300
        assert eff.cpc is None
        assert eff.ad_days is None

    def test_zero_budget(self):
        """No budget, no efficiency."""
        assert compute_total_efficiency(0, 10, 5, 1) is None
