"""DuckDBStore channel registry methods."""
from __future__ import annotations

import logging
from typing import Optional, List, Dict, Iterable

from core.models import AdSpend, Channel, ChannelType

logger = logging.getLogger(__name__)


class ChannelsMixin:

    async def add_channel(self, channel: Channel) -> None:
        """Insert or replace a channel definition."""
        spend = channel.ad_spend
        await self._execute_with_timeout("""
            INSERT OR REPLACE INTO channels (
                id, name, is_active, budget, ad_start_date, ad_end_date,
                ad_placement, latitude, longitude, channel_type
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            channel.id,
            channel.name,
            channel.is_active,
            spend.budget,
            spend.start_date,
            spend.end_date,
            spend.placement,
            channel.latitude,
            channel.longitude,
            channel.channel_type.value,
        ])
        logger.debug(f"Channel {channel.id} saved")

    async def get_channels(self, channel_ids: Optional[Iterable[str]] = None) -> Dict[str, Channel]:
        """
        Channel definitions keyed by id.

        Args:
            channel_ids: Restrict to these ids (None = all channels)
        """
        query = """
            SELECT id, name, is_active, budget, ad_start_date, ad_end_date,
                   ad_placement, latitude, longitude, channel_type
            FROM channels
        """
        params: list = []
        if channel_ids is not None:
            ids = sorted(set(channel_ids))
            if not ids:
                return {}
            query += f" WHERE id IN ({', '.join('?' for _ in ids)})"
            params = ids
        query += " ORDER BY id"

        rows = await self._fetch_all(query, params)
        return {
            row[0]: Channel(
                id=row[0],
                name=row[1] or "",
                is_active=bool(row[2]),
                ad_spend=AdSpend(
                    budget=row[3],
                    start_date=row[4],
                    end_date=row[5],
                    placement=row[6],
                ),
                latitude=row[7],
                longitude=row[8],
                channel_type=ChannelType(row[9] or ChannelType.DIAGNOSIS.value),
            )
            for row in rows
        }

    async def get_active_channel_ids(self) -> List[str]:
        """Ids of all active channels."""
        rows = await self._fetch_all("SELECT id FROM channels WHERE is_active ORDER BY id")
        return [row[0] for row in rows]
