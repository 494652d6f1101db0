"""DuckDBStore event query methods."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Sequence, Tuple

from core.config import config
from core.event_query import EventFilter, EventKind, GroupCount, check_fields

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = {"created_at", "completed_at"}

# FROM clause and base exclusions per event kind
_SOURCES: Dict[EventKind, Tuple[str, str]] = {
    EventKind.ACCESS: (
        "access_events e",
        "e.event_type IS DISTINCT FROM ?",
    ),
    EventKind.PAGE_VIEW: (
        "access_events e",
        "e.event_type = ?",
    ),
    EventKind.COMPLETION: (
        "completion_events e",
        "NOT e.is_demo AND e.completed_at IS NOT NULL",
    ),
    EventKind.CTA_CLICK: (
        "cta_clicks e LEFT JOIN completion_events s ON e.session_id = s.session_id",
        "",
    ),
}


def to_store_timestamp(value: datetime) -> datetime:
    """Convert to the naive-UTC form stored in DuckDB (naive input is taken as UTC)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_store_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a stored timestamp."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _column(kind: EventKind, field: str) -> str:
    if kind == EventKind.CTA_CLICK and field == "result_category":
        return "s.result_category"
    return f"e.{field}"


class EventsMixin:

    def _event_where(self, kind: EventKind, event_filter: EventFilter) -> Tuple[str, str, list]:
        """FROM clause, WHERE clause and parameters for one filtered query."""
        source, exclusion = _SOURCES[kind]
        ids = sorted(event_filter.channel_ids)
        placeholders = ", ".join("?" for _ in ids)
        clauses = [
            f"e.channel_id IN ({placeholders})",
            "e.created_at >= ?",
            "e.created_at < ?",
        ]
        params: list = [*ids, to_store_timestamp(event_filter.start), to_store_timestamp(event_filter.end)]
        if exclusion:
            clauses.append(exclusion)
            if kind in (EventKind.ACCESS, EventKind.PAGE_VIEW):
                params.append(config.stats.page_view_event_type)
        return source, " AND ".join(clauses), params

    async def count_grouped(
        self,
        kind: EventKind,
        event_filter: EventFilter,
        group_by: Sequence[str],
    ) -> List[GroupCount]:
        """
        Count events per distinct group values, in first-seen order.

        An empty ``group_by`` returns a single total with an empty key.
        """
        check_fields(kind, group_by)
        if event_filter.is_empty:
            return []

        source, where, params = self._event_where(kind, event_filter)
        if not group_by:
            row = await self._fetch_one(f"SELECT COUNT(*) FROM {source} WHERE {where}", params)
            return [GroupCount((), row[0] if row else 0)]

        columns = ", ".join(_column(kind, f) for f in group_by)
        query = f"""
            SELECT {columns}, COUNT(*) AS cnt
            FROM {source}
            WHERE {where}
            GROUP BY {columns}
            ORDER BY MIN(e.created_at), {columns}
        """
        rows = await self._fetch_all(query, params)
        return [GroupCount(tuple(row[:-1]), row[-1]) for row in rows]

    async def fetch_rows(
        self,
        kind: EventKind,
        event_filter: EventFilter,
        fields: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Selected fields of every matching event, oldest first."""
        check_fields(kind, fields)
        if event_filter.is_empty or not fields:
            return []

        source, where, params = self._event_where(kind, event_filter)
        columns = ", ".join(_column(kind, f) for f in fields)
        query = f"""
            SELECT {columns}
            FROM {source}
            WHERE {where}
            ORDER BY e.created_at
        """
        rows = await self._fetch_all(query, params)
        return [
            {
                f: from_store_timestamp(value) if f in _TIMESTAMP_FIELDS else value
                for f, value in zip(fields, row)
            }
            for row in rows
        ]

    # ─── Write helpers (seeding and tests) ───────────────────────────────────

    async def insert_access_event(
        self,
        channel_id: str,
        created_at: datetime,
        event_type: Optional[str] = "qr_scan",
    ) -> None:
        """Record one access event."""
        await self._execute_with_timeout(
            "INSERT INTO access_events (channel_id, event_type, created_at) VALUES (?, ?, ?)",
            [channel_id, event_type, to_store_timestamp(created_at)],
        )

    async def insert_completion(
        self,
        channel_id: str,
        created_at: datetime,
        completed_at: Optional[datetime] = None,
        is_demo: bool = False,
        total_score: Optional[int] = None,
        result_category: Optional[str] = None,
        user_age: Optional[int] = None,
        user_gender: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        region: Optional[str] = None,
        city: Optional[str] = None,
        town: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """
        Record one quiz session.

        Returns:
            The session id (generated when not given)
        """
        session_id = session_id or uuid.uuid4().hex
        await self._execute_with_timeout("""
            INSERT INTO completion_events (
                session_id, channel_id, created_at, completed_at, is_demo,
                total_score, result_category, user_age, user_gender,
                latitude, longitude, region, city, town
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            session_id,
            channel_id,
            to_store_timestamp(created_at),
            to_store_timestamp(completed_at) if completed_at else None,
            is_demo,
            total_score,
            result_category,
            user_age,
            user_gender,
            latitude,
            longitude,
            region,
            city,
            town,
        ])
        return session_id

    async def insert_cta_click(
        self,
        channel_id: str,
        cta_type: str,
        created_at: datetime,
        session_id: Optional[str] = None,
        source: str = "result",
    ) -> None:
        """Record one CTA click (``source``: result screen or clinic page)."""
        await self._execute_with_timeout(
            "INSERT INTO cta_clicks (channel_id, session_id, cta_type, source, created_at) VALUES (?, ?, ?, ?, ?)",
            [channel_id, session_id, cta_type, source, to_store_timestamp(created_at)],
        )
