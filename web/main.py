"""
FastAPI web application for the QR attribution dashboard.
"""
import os

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse, JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from web.routes import api
from web.routes.api._deps import limiter
from web.middleware import RequestLoggingMiddleware, RequestTimeoutMiddleware
from core.attribution_service import reset_attribution_service
from core.cache import cache
from core.config import VERSION, validate_config, ConfigurationError
from core.duckdb_store import get_store, close_store
from core.exceptions import EventStoreError, ValidationError
from core.observability import setup_logging, get_logger, get_correlation_id, metrics

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
log_format = os.getenv("LOG_FORMAT", "text")
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(level=log_level, json_format=(log_format == "json"))
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="QR Attribution Dashboard",
    description="Channel attribution statistics for clinic QR campaigns",
    version=VERSION,
    default_response_class=ORJSONResponse
)

# Add rate limiter to app state
app.state.limiter = limiter


# Custom rate limit exceeded handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail
        }
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "detail": str(exc), "field": exc.field}
    )


@app.exception_handler(EventStoreError)
async def event_store_error_handler(request: Request, exc: EventStoreError):
    logger.error(f"Event store failure on {request.url.path}: {exc}")
    metrics.record_error(type(exc).__name__)
    return JSONResponse(
        status_code=503,
        content={
            "error": "Statistics temporarily unavailable",
            "detail": exc.message,
            "correlation_id": get_correlation_id(),
        }
    )


# Middleware added last runs first: logging wraps the timeout so 504s
# carry the correlation id and are counted like any other response
app.add_middleware(RequestTimeoutMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Add Gzip compression (min 500 bytes to compress)
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(api.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("QR Attribution Dashboard starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config()
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    # Open the event store (required)
    store = await get_store()
    stats = await store.get_stats()
    logger.info(
        f"Event store ready: {stats['channels']} channels, "
        f"{stats['access_events']} access events, "
        f"{stats['completion_events']} sessions, "
        f"{stats['cta_clicks']} CTA clicks, "
        f"{stats['db_size_mb']} MB"
    )

    # Initialize Redis cache (non-fatal if unavailable)
    if await cache.connect():
        logger.info("Redis cache connected")
    else:
        logger.info("Redis cache not available, running without cache")

    logger.info("Dashboard ready")


@app.on_event("shutdown")
async def shutdown_event():
    # Disconnect Redis cache
    try:
        await cache.disconnect()
    except Exception as e:
        logger.warning(f"Error disconnecting Redis: {e}")

    # Drop the service before its store goes away
    reset_attribution_service()
    try:
        await close_store()
        logger.info("DuckDB closed")
    except Exception as e:
        logger.warning(f"Error closing DuckDB: {e}")
    logger.info("QR Attribution Dashboard stopped")
