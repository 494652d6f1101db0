"""
Tests for core.config module.
"""
import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from core.config import (
    AppConfig,
    CacheConfig,
    ConfigurationError,
    GeoConfig,
    StatsConfig,
    config,
    validate_config,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_stats_defaults(self):
        stats = StatsConfig(timezone="Asia/Tokyo")
        assert stats.page_view_event_type == "clinic_page_view"
        assert stats.histogram_days == 10
        assert stats.tz == ZoneInfo("Asia/Tokyo")

    def test_all_time_start_is_utc_epoch(self):
        stats = StatsConfig(timezone="Asia/Tokyo")
        assert stats.all_time_start == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert stats.all_time_start.utcoffset() == timedelta(0)

    def test_geo_defaults(self):
        geo = GeoConfig(clinic_latitude=None, clinic_longitude=None)
        assert geo.max_places == 100
        assert geo.coordinate_precision == 3
        assert geo.clinic_center is None

    def test_clinic_center(self):
        geo = GeoConfig(clinic_latitude=35.6, clinic_longitude=139.7)
        assert geo.clinic_center == (35.6, 139.7)

    def test_global_config(self):
        assert isinstance(config, AppConfig)
        assert config.version


class TestValidateConfig:
    """Tests for validate_config function."""

    def _config(self, **sections):
        return replace(
            AppConfig(),
            stats=sections.get("stats", StatsConfig(timezone="Asia/Tokyo")),
            geo=sections.get("geo", GeoConfig(clinic_latitude=None, clinic_longitude=None)),
            cache=sections.get(
                "cache",
                CacheConfig(url="redis://localhost", enabled=False, ttl_seconds=60, closed_period_ttl_seconds=3600),
            ),
        )

    def test_valid(self):
        validate_config(self._config())

    def test_unknown_timezone(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(self._config(stats=StatsConfig(timezone="Mars/Olympus")))
        assert "CLINIC_TIMEZONE" in str(exc_info.value)

    def test_half_configured_clinic(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(self._config(geo=GeoConfig(clinic_latitude=35.6, clinic_longitude=None)))
        assert "set together" in str(exc_info.value)

    def test_latitude_out_of_range(self):
        with pytest.raises(ConfigurationError):
            validate_config(self._config(geo=GeoConfig(clinic_latitude=95.0, clinic_longitude=139.7)))

    def test_ttl_must_be_positive(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(self._config(
                cache=CacheConfig(url="redis://x", enabled=True, ttl_seconds=0, closed_period_ttl_seconds=3600)
            ))
        assert "CACHE_DEFAULT_TTL" in str(exc_info.value)

    def test_closed_period_ttl_not_shorter(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(self._config(
                cache=CacheConfig(url="redis://x", enabled=True, ttl_seconds=600, closed_period_ttl_seconds=60)
            ))
        assert "CACHE_CLOSED_PERIOD_TTL" in str(exc_info.value)
