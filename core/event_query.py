"""
Event query primitives consumed by the aggregation layer.

Any store can back the dashboards as long as it implements
``EventQueryAdapter`` and applies the per-kind exclusion rules:

- ACCESS: page-view-only events (``clinic_page_view``) are excluded
- PAGE_VIEW: only those clinic page views
- COMPLETION: demo sessions and sessions without a completion time are excluded
- CTA_CLICK: no exclusions

Every query is scoped by an ``EventFilter``: a channel id set plus a
half-open time window on the event's creation time.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple

from core.models import Channel
from core.periods import TimeWindow


class EventKind(str, Enum):
    ACCESS = "access"
    PAGE_VIEW = "page_view"
    COMPLETION = "completion"
    CTA_CLICK = "cta_click"


# Fields each kind exposes for grouping and row retrieval
EVENT_FIELDS: Dict[EventKind, FrozenSet[str]] = {
    EventKind.ACCESS: frozenset({
        "channel_id", "event_type", "created_at",
    }),
    EventKind.PAGE_VIEW: frozenset({
        "channel_id", "created_at",
    }),
    EventKind.COMPLETION: frozenset({
        "channel_id", "session_id", "created_at", "completed_at", "total_score",
        "result_category", "user_age", "user_gender",
        "latitude", "longitude", "region", "city", "town",
    }),
    EventKind.CTA_CLICK: frozenset({
        "channel_id", "session_id", "cta_type", "source", "created_at", "result_category",
    }),
}


@dataclass(frozen=True)
class EventFilter:
    """Channel set and time window shared by every query of one aggregation."""
    channel_ids: FrozenSet[str]
    window: TimeWindow

    @classmethod
    def create(cls, channel_ids: Iterable[str], window: TimeWindow) -> "EventFilter":
        return cls(frozenset(channel_ids), window)

    @property
    def is_empty(self) -> bool:
        return not self.channel_ids

    @property
    def start(self) -> datetime:
        return self.window.start

    @property
    def end(self) -> datetime:
        return self.window.end


@dataclass(frozen=True)
class GroupCount:
    """One grouped-count result: group values in ``group_by`` order."""
    key: Tuple[Any, ...]
    count: int


class EventQueryAdapter(Protocol):
    """Read-side query primitives over the event store."""

    async def count_grouped(
        self,
        kind: EventKind,
        event_filter: EventFilter,
        group_by: Sequence[str],
    ) -> List[GroupCount]:
        """Count events per distinct ``group_by`` values."""
        ...

    async def fetch_rows(
        self,
        kind: EventKind,
        event_filter: EventFilter,
        fields: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Raw rows with the selected fields, oldest first."""
        ...


class ChannelRegistry(Protocol):
    """Read access to channel definitions."""

    async def get_channels(self, channel_ids: Optional[Iterable[str]] = None) -> Dict[str, Channel]:
        ...

    async def get_active_channel_ids(self) -> List[str]:
        ...


def check_fields(kind: EventKind, fields: Sequence[str]) -> None:
    """
    Reject fields the event kind does not expose.

    Raises:
        ValueError: On an unknown field
    """
    unknown = [f for f in fields if f not in EVENT_FIELDS[kind]]
    if unknown:
        raise ValueError(f"Unknown {kind.value} field(s): {', '.join(unknown)}")
