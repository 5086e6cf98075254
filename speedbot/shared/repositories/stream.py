"""Repository for the streams table."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import asyncpg

from speedbot.shared.locks import KeyedLocks
from speedbot.shared.models.stream import StreamRecord

logger = logging.getLogger(__name__)

_COLUMNS = (
    "channel_id, channel_name, is_live, last_shoutout_at, offline_since, "
    "stream_id, title, game_id, tag_ids, created_at, updated_at"
)


def _to_record(row: asyncpg.Record) -> StreamRecord:
    data = dict(row)
    data["tag_ids"] = list(data.get("tag_ids") or [])
    return StreamRecord(**data)


class StreamRepository:
    """Pure SQL operations for the ``streams`` table, keyed by channel id.

    Callers doing a read-modify-write on one row hold ``lock(channel_id)``
    for the whole sequence; the repository itself never takes it.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool
        self._locks = KeyedLocks()

    def lock(self, channel_id: str) -> asyncio.Lock:
        """Return the single-writer lock for one channel's row."""
        return self._locks.get(channel_id)

    # ==================== Reads ====================

    async def get_one(self, channel_id: str) -> StreamRecord | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM streams WHERE channel_id = $1",
                channel_id,
            )
            return _to_record(row) if row else None

    async def get_all(self) -> list[StreamRecord]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_COLUMNS} FROM streams")
            return [_to_record(r) for r in rows]

    async def get_live(self) -> list[StreamRecord]:
        """Return every channel currently recorded as live."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_COLUMNS} FROM streams WHERE is_live = TRUE")
            return [_to_record(r) for r in rows]

    # ==================== Writes ====================

    async def create(self, record: StreamRecord) -> None:
        logger.debug(f"Creating record for {record.channel_id} {record.channel_name}")
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO streams (
                    channel_id, channel_name, is_live, last_shoutout_at,
                    offline_since, stream_id, title, game_id, tag_ids
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                record.channel_id,
                record.channel_name,
                record.is_live,
                record.last_shoutout_at,
                record.offline_since,
                record.stream_id,
                record.title,
                record.game_id,
                record.tag_ids,
            )

    async def update(self, record: StreamRecord) -> None:
        """Overwrite every mutable column of the row keyed by ``record.channel_id``."""
        logger.debug(f"Updating record for {record.channel_id} {record.channel_name}")
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE streams SET
                    channel_name     = $2,
                    is_live          = $3,
                    last_shoutout_at = $4,
                    offline_since    = $5,
                    stream_id        = $6,
                    title            = $7,
                    game_id          = $8,
                    tag_ids          = $9,
                    updated_at       = NOW()
                WHERE channel_id = $1
                """,
                record.channel_id,
                record.channel_name,
                record.is_live,
                record.last_shoutout_at,
                record.offline_since,
                record.stream_id,
                record.title,
                record.game_id,
                record.tag_ids,
            )

    async def set_ended(self, channel_id: str, at: datetime | None = None) -> None:
        """Mark a channel offline and stamp ``offline_since``."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                "UPDATE streams SET is_live = FALSE, offline_since = $2, updated_at = NOW() "
                "WHERE channel_id = $1",
                channel_id,
                at or datetime.now(timezone.utc),
            )
