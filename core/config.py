"""
Centralized configuration for the QR attribution dashboard.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from core.config import config

    tz = config.stats.timezone
    cache_ttl = config.cache.ttl_seconds
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from pathlib import Path
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    """Read an optional float from the environment."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class StoreConfig:
    """DuckDB event store configuration."""

    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("EVENT_DB_PATH", "data/events.duckdb"))
    )
    query_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class StatsConfig:
    """Aggregation rules shared by every dashboard statistic."""

    timezone: str = field(default_factory=lambda: os.getenv("CLINIC_TIMEZONE", "Asia/Tokyo"))

    # Access events with this tag are page views of the clinic profile,
    # not QR visits, and never count toward access/CTA metrics
    page_view_event_type: str = "clinic_page_view"

    # Daily access histogram keeps this many most recent non-empty days
    histogram_days: int = 10

    # Ages outside this inclusive range are dropped from bucketing
    min_age: int = 0
    max_age: int = 120

    uncategorized_label: str = "未分類"

    # Lower bound used for the "all" period
    all_time_start: datetime = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)

    @property
    def tz(self) -> ZoneInfo:
        """Clinic-local timezone."""
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class GeoConfig:
    """Location rollup configuration."""

    clinic_latitude: Optional[float] = field(
        default_factory=lambda: _optional_float("CLINIC_LATITUDE")
    )
    clinic_longitude: Optional[float] = field(
        default_factory=lambda: _optional_float("CLINIC_LONGITUDE")
    )
    max_places: int = 100

    # Representative coordinates are rounded to this many decimals (~100 m)
    coordinate_precision: int = 3

    @property
    def clinic_center(self) -> Optional[Tuple[float, float]]:
        """Clinic coordinates if both are configured."""
        if self.clinic_latitude is None or self.clinic_longitude is None:
            return None
        return (self.clinic_latitude, self.clinic_longitude)


@dataclass(frozen=True)
class CacheConfig:
    """Caching configuration."""

    url: str = field(default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    enabled: bool = field(
        default_factory=lambda: os.getenv("CACHE_ENABLED", "false").lower() == "true"
    )
    ttl_seconds: int = field(default_factory=lambda: int(os.getenv("CACHE_DEFAULT_TTL", "60")))
    # Custom periods that ended before today never change
    closed_period_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("CACHE_CLOSED_PERIOD_TTL", "3600"))
    )


@dataclass(frozen=True)
class WebConfig:
    """Web dashboard configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEB_PORT", "8080")))

    # Rate limiting
    stats_rate_limit: str = "60/minute"
    health_rate_limit: str = "120/minute"

    request_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    store: StoreConfig = field(default_factory=StoreConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    geo: GeoConfig = field(default_factory=GeoConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    web: WebConfig = field(default_factory=WebConfig)


# Global config instance
config = AppConfig()


# ─── Convenience Exports ──────────────────────────────────────────────────────
VERSION = config.version
DEFAULT_TIMEZONE = config.stats.timezone
PAGE_VIEW_EVENT_TYPE = config.stats.page_view_event_type


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = config) -> None:
    """
    Validate that configuration values are usable.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    errors = []

    try:
        ZoneInfo(app_config.stats.timezone)
    except (KeyError, ValueError):
        errors.append(f"CLINIC_TIMEZONE is not a known timezone: {app_config.stats.timezone!r}")

    geo = app_config.geo
    if (geo.clinic_latitude is None) != (geo.clinic_longitude is None):
        errors.append("CLINIC_LATITUDE and CLINIC_LONGITUDE must be set together")
    if geo.clinic_latitude is not None and not -90 <= geo.clinic_latitude <= 90:
        errors.append("CLINIC_LATITUDE must be between -90 and 90")
    if geo.clinic_longitude is not None and not -180 <= geo.clinic_longitude <= 180:
        errors.append("CLINIC_LONGITUDE must be between -180 and 180")

    if app_config.cache.ttl_seconds <= 0:
        errors.append("CACHE_DEFAULT_TTL must be positive")
    if app_config.cache.closed_period_ttl_seconds < app_config.cache.ttl_seconds:
        errors.append("CACHE_CLOSED_PERIOD_TTL must not be shorter than CACHE_DEFAULT_TTL")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
