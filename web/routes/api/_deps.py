"""Shared dependencies for API route modules."""
import time

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.duckdb_store import get_store
from core.exceptions import ValidationError
from core.observability import get_logger
from core.validators import validate_channel_ids, validate_place_name

# One limiter for every dashboard route, keyed by client address
limiter = Limiter(key_func=get_remote_address)

# Process start, for uptime reporting
START_TIME = time.time()

__all__ = [
    "limiter",
    "get_store",
    "get_logger",
    "START_TIME",
    "ValidationError",
    "validate_channel_ids",
    "validate_place_name",
]
