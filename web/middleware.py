"""
FastAPI middleware for observability.

RequestLoggingMiddleware binds a correlation id and the dashboard query
context (period, channel ids) to every log line of a request, and feeds
request counts and timings into the metrics collector.
RequestTimeoutMiddleware bounds a request; cancelling it is the only way
an in-flight store query is abandoned.
"""
import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

from core.config import config
from core.observability import (
    get_logger,
    correlation_context,
    get_correlation_id,
    add_log_context,
    clear_log_context,
    metrics,
)

logger = get_logger(__name__)

# Paths excluded from request logging and timeouts
QUIET_PATHS = ("/api/health", "/health")

# Query parameters copied into every log line of a request
CONTEXT_PARAMS = {"period": "period", "channelIds": "channel_ids"}


def _query_context(request: Request) -> Dict[str, str]:
    return {
        field: request.query_params[param]
        for param, field in CONTEXT_PARAMS.items()
        if param in request.query_params
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlation ids, request logging and request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with correlation_context(request.headers.get("X-Request-ID")) as correlation_id:
            clear_log_context()
            add_log_context(**_query_context(request))
            return await self._handle(request, call_next, correlation_id)

    async def _handle(self, request: Request, call_next: Callable, correlation_id: str) -> Response:
        endpoint = f"{request.method} {request.url.path}"
        quiet = request.url.path in QUIET_PATHS
        start = time.perf_counter()

        if not quiet:
            logger.info(
                f"Request started: {endpoint}",
                extra={"client_ip": request.client.host if request.client else "unknown"},
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {endpoint}",
                extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2), "error": str(e)},
            )
            metrics.record_error(type(e).__name__)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        metrics.record_request(endpoint)
        metrics.record_timing(endpoint, duration_ms)
        if response.status_code >= 400:
            metrics.record_error(f"HTTP_{response.status_code}")

        if not quiet:
            logger.log(
                logging.INFO if response.status_code < 400 else logging.WARNING,
                f"Request completed: {endpoint}",
                extra={"status_code": response.status_code, "duration_ms": round(duration_ms, 2)},
            )
        return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a statistics request runs past the configured timeout."""

    def __init__(self, app, timeout: Optional[float] = None):
        super().__init__(app)
        self.timeout = timeout or config.web.request_timeout_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Request timeout: {request.method} {path}", extra={"timeout": self.timeout})
            metrics.record_error("REQUEST_TIMEOUT")
            return JSONResponse(
                status_code=504,
                content={
                    "error": "Request Timeout",
                    "detail": f"Statistics not ready within {self.timeout}s",
                    "path": path,
                    "correlation_id": get_correlation_id(),
                },
            )
