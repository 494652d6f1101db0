"""
DuckDB event store for the attribution dashboard.

Holds channels and the three event streams (access, completion, CTA
click) and implements the event query primitives the aggregation layer
consumes. Timestamps are stored as naive UTC; clinic-local dates are
derived in Python.

Domain-specific query methods are organized into repository mixins:
- EventsMixin: grouped counts, raw rows, seeding helpers
- ChannelsMixin: channel registry
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, List, Dict, Any, Union

import duckdb

from core.config import config
from core.exceptions import EventStoreUnavailableError, QueryTimeoutError
from core.repositories import EventsMixin, ChannelsMixin

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_TABLES = ("channels", "access_events", "completion_events", "cta_clicks")


class DuckDBStore(EventsMixin, ChannelsMixin):
    """
    Async-compatible DuckDB store for attribution events.

    Features:
    - Persistent storage (or ``:memory:`` for tests)
    - Thread offloading to avoid blocking asyncio event loop
    - Per-query timeout
    - Store failures surface as EventStoreUnavailableError
    """

    def __init__(
        self,
        db_path: Union[Path, str, None] = None,
        query_timeout: Optional[float] = None,
    ):
        self.db_path = db_path if db_path is not None else config.store.db_path
        self.query_timeout = query_timeout or config.store.query_timeout_seconds
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()  # Serializes all database access

        # Thread pool for offloading blocking DB operations
        self._executor: Optional[ThreadPoolExecutor] = None

        # Stats for monitoring
        self._total_queries = 0

    @property
    def in_memory(self) -> bool:
        return str(self.db_path) == IN_MEMORY

    async def connect(self) -> None:
        """Initialize database connection, schema, and thread pool."""
        if not self.in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                try:
                    self._connection = duckdb.connect(str(self.db_path))
                    self._init_schema()
                except duckdb.Error as e:
                    self._connection = None
                    raise EventStoreUnavailableError(
                        "Cannot open event store", str(e), operation="connect"
                    ) from e

                # Single worker - DuckDB requires serialized access
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="duckdb")

                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection and thread pool."""
        async with self._lock:
            # Shutdown thread pool (waits for in-flight queries to finish)
            if self._executor:
                self._executor.shutdown(wait=True)
                self._executor = None

            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection info for monitoring."""
        return {
            "status": "active" if self._connection else "not_initialized",
            "total_queries": self._total_queries,
            "db_path": str(self.db_path),
        }

    @asynccontextmanager
    async def connection(self):
        """Get database connection with automatic reconnection.

        Acquires lock to ensure single-threaded DuckDB access.
        """
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    # ─── Query Execution with Timeout ────────────────────────────────────────

    async def _run(self, query: str, params: Optional[list], fetch: Optional[str], operation: str) -> Any:
        """Run a query on the worker thread, enforcing timeout and wrapping store errors."""
        async with self.connection() as conn:
            self._total_queries += 1

            def _work():
                result = conn.execute(query, params or [])
                if fetch == "one":
                    return result.fetchone()
                if fetch == "all":
                    return result.fetchall()
                return None

            loop = asyncio.get_running_loop()
            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(self._executor, _work),
                    timeout=self.query_timeout,
                )
            except asyncio.TimeoutError:
                raise QueryTimeoutError(query, self.query_timeout, f"{operation} failed")
            except duckdb.Error as e:
                logger.error(f"DuckDB {operation} failed: {e}")
                raise EventStoreUnavailableError("Event store query failed", str(e), operation=operation) from e

    async def _execute_with_timeout(self, query: str, params: list = None) -> None:
        """Execute a query with timeout (for INSERT/UPDATE/DELETE)."""
        await self._run(query, params, None, "execute")

    async def _fetch_one(self, query: str, params: list = None) -> Optional[tuple]:
        """Execute query and fetch one result with timeout."""
        return await self._run(query, params, "one", "fetch_one")

    async def _fetch_all(self, query: str, params: list = None) -> List[tuple]:
        """Execute query and fetch all results with timeout."""
        return await self._run(query, params, "all", "fetch_all")

    def _init_schema(self) -> None:
        """Create database schema if not exists."""
        schema_sql = """
        -- Channels (one per QR code) with optional ad spend
        CREATE TABLE IF NOT EXISTS channels (
            id VARCHAR PRIMARY KEY,
            name VARCHAR NOT NULL DEFAULT '',
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            budget INTEGER,
            ad_start_date DATE,
            ad_end_date DATE,
            ad_placement VARCHAR,
            latitude DOUBLE,
            longitude DOUBLE,
            channel_type VARCHAR NOT NULL DEFAULT 'diagnosis',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        -- QR scans and page views (naive UTC)
        CREATE TABLE IF NOT EXISTS access_events (
            channel_id VARCHAR NOT NULL,
            event_type VARCHAR,
            created_at TIMESTAMP NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_access_channel_time ON access_events(channel_id, created_at);

        -- Quiz sessions; completed_at NULL means abandoned
        CREATE TABLE IF NOT EXISTS completion_events (
            session_id VARCHAR PRIMARY KEY,
            channel_id VARCHAR NOT NULL,
            created_at TIMESTAMP NOT NULL,
            completed_at TIMESTAMP,
            is_demo BOOLEAN NOT NULL DEFAULT FALSE,
            total_score INTEGER,
            result_category VARCHAR,
            user_age INTEGER,
            user_gender VARCHAR,
            latitude DOUBLE,
            longitude DOUBLE,
            region VARCHAR,
            city VARCHAR,
            town VARCHAR
        );

        CREATE INDEX IF NOT EXISTS idx_completion_channel_time ON completion_events(channel_id, created_at);

        -- CTA clicks on the result screen or clinic page
        CREATE TABLE IF NOT EXISTS cta_clicks (
            channel_id VARCHAR NOT NULL,
            session_id VARCHAR,
            cta_type VARCHAR NOT NULL,
            source VARCHAR NOT NULL DEFAULT 'result',
            created_at TIMESTAMP NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_cta_channel_time ON cta_clicks(channel_id, created_at);

        -- Columns added after the first release
        ALTER TABLE channels ADD COLUMN IF NOT EXISTS channel_type VARCHAR DEFAULT 'diagnosis';
        ALTER TABLE cta_clicks ADD COLUMN IF NOT EXISTS source VARCHAR DEFAULT 'result';
        """
        self._connection.execute(schema_sql)
        logger.info("DuckDB schema initialized")

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        counts = {}
        for table in _TABLES:
            row = await self._fetch_one(f"SELECT COUNT(*) FROM {table}")
            counts[table] = row[0] if row else 0

        size_mb = 0
        if not self.in_memory and Path(self.db_path).exists():
            size_mb = round(Path(self.db_path).stat().st_size / 1024 / 1024, 2)

        return {**counts, "db_size_mb": size_mb}


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_store_instance: Optional[DuckDBStore] = None
_store_lock = asyncio.Lock()


async def get_store() -> DuckDBStore:
    """Get singleton DuckDB store instance (coroutine-safe)."""
    global _store_instance
    async with _store_lock:
        if _store_instance is None:
            _store_instance = DuckDBStore()
            await _store_instance.connect()
    return _store_instance


async def close_store() -> None:
    """Close singleton store instance."""
    global _store_instance
    if _store_instance:
        await _store_instance.close()
        _store_instance = None
