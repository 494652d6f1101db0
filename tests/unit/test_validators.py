"""
Tests for core.validators module.
"""
import pytest
from datetime import date

from core.validators import (
    MAX_CHANNEL_IDS,
    validate_date_string,
    validate_period,
    validate_channel_ids,
    validate_place_name,
)
from core.exceptions import ValidationError, InvalidPeriodError


class TestValidateDateString:
    """Tests for validate_date_string function."""

    def test_valid_date(self):
        """Valid date string should return date object."""
        result = validate_date_string("2026-01-15")
        assert result == date(2026, 1, 15)

    def test_valid_date_custom_format(self):
        """Custom format should work."""
        result = validate_date_string("2026/01/15", format="%Y/%m/%d")
        assert result == date(2026, 1, 15)

    def test_invalid_format(self):
        """Invalid format should raise ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            validate_date_string("15-01-2026")
        assert "Invalid date format" in str(exc_info.value)

    def test_invalid_date(self):
        """Invalid date should raise ValidationError."""
        with pytest.raises(ValidationError):
            validate_date_string("2026-02-30")

    def test_empty_string(self):
        """Empty string should raise ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            validate_date_string("")
        assert "required" in str(exc_info.value).lower()

    def test_non_string(self):
        """Non-string should raise ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            validate_date_string(12345)
        assert "string" in str(exc_info.value).lower()


class TestValidatePeriod:
    """Tests for validate_period function."""

    @pytest.mark.parametrize("value", ["today", "week", "month", "all", "custom"])
    def test_valid_periods(self, value):
        assert validate_period(value) == value

    def test_normalizes_case(self):
        assert validate_period(" WEEK ") == "week"

    def test_default_when_missing(self):
        """Empty values fall back to the default."""
        assert validate_period(None) == "month"
        assert validate_period("", default="all") == "all"

    def test_unknown_period(self):
        """Unknown periods raise InvalidPeriodError."""
        with pytest.raises(InvalidPeriodError) as exc_info:
            validate_period("year")
        assert exc_info.value.field == "period"
        assert "year" in str(exc_info.value)


class TestValidateChannelIds:
    """Tests for validate_channel_ids function."""

    def test_none_means_unspecified(self):
        assert validate_channel_ids(None) is None

    def test_split_and_strip(self):
        assert validate_channel_ids("ch-1, ch_2 ,ch3") == ["ch-1", "ch_2", "ch3"]

    def test_deduplicates(self):
        assert validate_channel_ids("a,b,a") == ["a", "b"]

    def test_only_separators(self):
        """An explicit but empty list stays empty."""
        assert validate_channel_ids(",,") == []

    def test_invalid_characters(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_channel_ids("ok,bad id;drop")
        assert exc_info.value.field == "channel_ids"

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_channel_ids("x" * 65)

    def test_too_many(self):
        value = ",".join(f"ch{i}" for i in range(MAX_CHANNEL_IDS + 1))
        with pytest.raises(ValidationError) as exc_info:
            validate_channel_ids(value)
        assert "Cannot exceed" in str(exc_info.value)


class TestValidatePlaceName:
    """Tests for validate_place_name function."""

    def test_strips(self):
        assert validate_place_name(" 渋谷区 ", "city") == "渋谷区"

    def test_required(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_place_name(None, "region")
        assert exc_info.value.field == "region"

    def test_blank_required(self):
        with pytest.raises(ValidationError):
            validate_place_name("   ", "city")

    def test_optional(self):
        assert validate_place_name(None, "town", allow_none=True) is None
        assert validate_place_name("", "town", allow_none=True) is None

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_place_name("a" * 101, "town")
