"""
Logging, correlation IDs and in-process metrics for the dashboard.

Every request gets a correlation id and a small log context (period,
channel ids) that both formatters attach to each line. Aggregation
entry points are wrapped with ``@timed`` so their durations show up in
the logs and on ``/api/metrics``.

Usage:
    from core.observability import setup_logging, get_logger, timed

    setup_logging(level="INFO", json_format=True)
    logger = get_logger(__name__)

    @timed("channel_stats")
    async def get_channel_stats(...): ...
"""
import asyncio
import functools
import json
import logging
import time
import uuid
from collections import deque
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Any, Deque, Dict, Callable

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# LogRecord attributes that are not caller-supplied extras
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

SLOW_OPERATION_MS = 1000
TIMING_WINDOW = 100


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


class correlation_context:
    """Bind a correlation id (generated if not given) for the duration of a block."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token = None

    def __enter__(self) -> str:
        self._token = _correlation_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, *args):
        _correlation_id.reset(self._token)


def add_log_context(**fields) -> None:
    """Attach fields to every log line for the rest of the current request."""
    _log_context.set({**_log_context.get(), **fields})


def clear_log_context() -> None:
    _log_context.set({})


def _context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Request context merged with the record's own ``extra`` fields."""
    fields = dict(_log_context.get())
    fields.update(
        (k, v) for k, v in vars(record).items()
        if k not in _RECORD_ATTRS and not k.startswith("_")
    )
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id
        entry.update(_context_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """TIMESTAMP - LEVEL - LOGGER [CORRELATION_ID] - MESSAGE | {context}"""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        tag = f" [{correlation_id}]" if correlation_id else ""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        line = f"{timestamp} - {record.levelname:8} - {record.name}{tag} - {record.getMessage()}"
        fields = _context_fields(record)
        if fields:
            line += f" | {fields}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines instead of human-readable text
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Request lines are already logged by the middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Measure a block in milliseconds.

    Usage:
        with Timer("health_store") as timer:
            stats = await store.get_stats()
        latency = timer.elapsed_ms
    """

    def __init__(self, name: str):
        self.name = name
        self.elapsed_ms: float = 0
        self._start: float = 0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000


def timed(name: Optional[str] = None, warn_threshold_ms: float = SLOW_OPERATION_MS):
    """
    Log and record the duration of every call.

    Calls slower than ``warn_threshold_ms`` are logged at WARNING, the rest
    at DEBUG. Durations are recorded under ``name`` (default: function name)
    whether the call returns or raises.
    """
    def decorator(func: Callable) -> Callable:
        operation = name or func.__name__
        func_logger = get_logger(func.__module__)

        def _finish(start: float) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000
            metrics.record_timing(operation, elapsed_ms)
            level = logging.WARNING if elapsed_ms > warn_threshold_ms else logging.DEBUG
            func_logger.log(level, f"{operation} completed", extra={"duration_ms": round(elapsed_ms, 2)})

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _finish(start)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _finish(start)
        return sync_wrapper

    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS COLLECTOR
# ═══════════════════════════════════════════════════════════════════════════════

class MetricsCollector:
    """
    In-process counters served by ``/api/metrics``.

    Requests and errors are plain counts. Timings keep a sliding window of
    the most recent samples per key (HTTP endpoint or ``@timed`` operation).
    """

    def __init__(self, window: int = TIMING_WINDOW):
        self._window = window
        self._requests: Dict[str, int] = {}
        self._errors: Dict[str, int] = {}
        self._timings: Dict[str, Deque[float]] = {}

    def record_request(self, endpoint: str) -> None:
        self._requests[endpoint] = self._requests.get(endpoint, 0) + 1

    def record_error(self, error_type: str) -> None:
        self._errors[error_type] = self._errors.get(error_type, 0) + 1

    def record_timing(self, key: str, duration_ms: float) -> None:
        if key not in self._timings:
            self._timings[key] = deque(maxlen=self._window)
        self._timings[key].append(duration_ms)

    @staticmethod
    def _summarize(samples: Deque[float]) -> Dict[str, Optional[float]]:
        ordered = sorted(samples)
        count = len(ordered)
        return {
            "count": count,
            "avg_ms": round(sum(ordered) / count, 2),
            "min_ms": round(ordered[0], 2),
            "max_ms": round(ordered[-1], 2),
            "p50_ms": round(ordered[count // 2], 2),
            # Too few samples for a meaningful tail
            "p95_ms": round(ordered[int(count * 0.95)], 2) if count >= 20 else None,
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "requests": dict(self._requests),
            "errors": dict(self._errors),
            "timing": {key: self._summarize(samples) for key, samples in self._timings.items() if samples},
        }


# Global metrics instance
metrics = MetricsCollector()
