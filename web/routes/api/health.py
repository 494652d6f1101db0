"""Health check and metrics endpoints."""
import asyncio
import time

from fastapi import APIRouter, Request

from core.cache import cache
from core.config import VERSION, config
from core.exceptions import EventStoreError
from core.observability import get_correlation_id, metrics, Timer
from web.schemas import HealthResponse, MetricsResponse
from ._deps import limiter, get_store, get_logger, START_TIME

router = APIRouter()
logger = get_logger(__name__)

# Health check stats cache (60 second TTL) with lock
_stats_cache: dict = {"data": None, "expires_at": 0}
_stats_cache_lock = asyncio.Lock()
_STATS_CACHE_TTL = 60


def reset_stats_cache() -> None:
    """Forget cached store stats."""
    _stats_cache["data"] = None
    _stats_cache["expires_at"] = 0


@router.get("/health", response_model=HealthResponse)
@limiter.limit(config.web.health_rate_limit)
async def health_check(request: Request):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)

    now = time.time()
    async with _stats_cache_lock:
        if _stats_cache["data"] and now < _stats_cache["expires_at"]:
            store_stats = _stats_cache["data"]
            store_status = "connected"
            db_latency_ms = 0.0
        else:
            db_latency_ms = None
            try:
                with Timer("health_check_db") as timer:
                    store = await get_store()
                    store_stats = await store.get_stats()
                store_status = "connected"
                db_latency_ms = round(timer.elapsed_ms, 2)
                _stats_cache["data"] = store_stats
                _stats_cache["expires_at"] = now + _STATS_CACHE_TTL
            except EventStoreError as e:
                logger.warning(f"Health check store error: {e}")
                store_stats = None
                store_status = f"error: {e}"

    return {
        "status": "healthy" if store_stats else "degraded",
        "version": VERSION,
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "store": {
            "status": store_status,
            "latency_ms": db_latency_ms,
            **(store_stats or {})
        },
        "cache": cache.get_stats(),
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit(config.web.health_rate_limit)
async def get_metrics_endpoint(request: Request):
    """Get application metrics."""
    import psutil

    uptime_seconds = int(time.time() - START_TIME)
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system = {
            "memory_mb": round(memory_info.rss / 1024 / 1024, 1),
            "memory_percent": round(process.memory_percent(), 1),
            "threads": process.num_threads(),
        }
    except psutil.Error as e:
        logger.warning(f"Process metrics unavailable: {e}")
        system = {}

    return {
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "system": system,
        **metrics.get_stats(),
    }
