"""
Core shared library for the QR attribution dashboard.

This package contains the aggregation engine and the shared logic used
by the web/ package:
- exceptions: Custom exception hierarchy
- validators: Input validation functions
- periods: Period keyword resolution
- attribution_service: The four dashboard statistics operations
- scoring: Quiz result selection for completed sessions
- config: Centralized configuration
"""

# Import in dependency order
from core.exceptions import (
    ValidationError,
    InvalidPeriodError,
    EventStoreError,
    EventStoreUnavailableError,
    QueryTimeoutError,
)

from core.validators import (
    validate_date_string,
    validate_period,
    validate_channel_ids,
    validate_place_name,
)

from core.periods import (
    Period,
    PeriodKind,
    TimeWindow,
    resolve_period,
)

from core.attribution_service import AttributionService

from core.scoring import (
    ResultPattern,
    QuizSession,
    select_result_pattern,
)

from core.config import config

__all__ = [
    # Exceptions
    "ValidationError",
    "InvalidPeriodError",
    "EventStoreError",
    "EventStoreUnavailableError",
    "QueryTimeoutError",
    # Validators
    "validate_date_string",
    "validate_period",
    "validate_channel_ids",
    "validate_place_name",
    # Periods
    "Period",
    "PeriodKind",
    "TimeWindow",
    "resolve_period",
    # Service
    "AttributionService",
    # Scoring
    "ResultPattern",
    "QuizSession",
    "select_result_pattern",
    # Config
    "config",
]
