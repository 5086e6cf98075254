"""Stream lifecycle reconciliation.

Each observed stream is classified against its persisted record:

- no record: a new channel, shouted out and stored as live
- record offline: the channel went live again, shouted out unless a
  suppression rule applies
- record live: still live, only its metadata is refreshed

Live records missing from the observation set are marked offline.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from speedbot.services.notifier import Notifier
from speedbot.shared.models.stream import (
    FilterCriteria,
    ObservedStream,
    StreamPatch,
    StreamRecord,
    Thresholds,
    apply_patch,
    blacklist_reason,
    is_whitelisted,
)

logger = logging.getLogger(__name__)

NEW = "new"
GONE_LIVE = "gone_live"
REFRESHED = "refreshed"
OFFLINE = "offline"

SUPPRESSED_RECONNECT = "reconnect"
SUPPRESSED_RECENT_SHOUTOUT = "recent shoutout"
SUPPRESSED_NOTIFIER_FAILURE = "notifier failure"


class StreamStore(Protocol):
    def lock(self, channel_id: str) -> asyncio.Lock: ...
    async def get_one(self, channel_id: str) -> StreamRecord | None: ...
    async def get_live(self) -> list[StreamRecord]: ...
    async def create(self, record: StreamRecord) -> None: ...
    async def update(self, record: StreamRecord) -> None: ...
    async def set_ended(self, channel_id: str, at: datetime | None = None) -> None: ...


@dataclass(frozen=True)
class Reconciliation:
    """What one reconcile call did to one channel."""

    channel_id: str
    transition: str
    alerted: bool = False
    suppressed: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_minutes(now: datetime, then: datetime) -> int:
    return math.floor((now - then).total_seconds() / 60)


def elapsed_hours(now: datetime, then: datetime) -> int:
    return math.floor((now - then).total_seconds() / 3600)


class StreamLifecycle:
    def __init__(
        self,
        store: StreamStore,
        notifier: Notifier,
        subscribe: Callable[[str], Awaitable[Any]],
        criteria: FilterCriteria,
        thresholds: Thresholds,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.subscribe = subscribe
        self.criteria = criteria
        self.thresholds = thresholds
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def reconcile(self, stream: ObservedStream) -> Reconciliation:
        """Classify *stream* against its record and apply the transition."""
        async with self.store.lock(stream.user_id):
            record = await self.store.get_one(stream.user_id)
            if record is None:
                return await self.add_new(stream)
            if not record.is_live:
                return await self.gone_live(record, stream)
            return await self.refresh(record, stream)

    async def mark_offline(self, channel_id: str) -> Reconciliation | None:
        """Record a live channel as ended; no-op if it is unknown or offline."""
        async with self.store.lock(channel_id):
            record = await self.store.get_one(channel_id)
            if record is None or not record.is_live:
                return None
            logger.info(f"Stream ended: {channel_id} {record.channel_name}")
            await self.store.set_ended(channel_id, self._clock())
            return Reconciliation(channel_id, OFFLINE)

    async def reconcile_all(self, observed: list[ObservedStream]) -> list[Reconciliation]:
        """Reconcile one polling cycle's observation set.

        Channels are handled concurrently; a failure on one channel is
        logged and does not affect the others.
        """
        results = await asyncio.gather(*(self._guarded(self.reconcile, s.user_id, s) for s in observed))

        seen = {s.user_id for s in observed}
        for record in await self.store.get_live():
            if record.channel_id not in seen:
                results.append(
                    await self._guarded(self.mark_offline, record.channel_id, record.channel_id)
                )

        return [r for r in results if r is not None]

    async def _guarded(self, func: Callable[..., Awaitable[Any]], channel_id: str, *args: Any) -> Any:
        try:
            return await func(*args)
        except Exception:
            logger.exception(f"Reconciliation failed for channel {channel_id}")
            return None

    # ------------------------------------------------------------------
    # Transitions (caller holds the channel lock)
    # ------------------------------------------------------------------

    async def add_new(self, stream: ObservedStream) -> Reconciliation:
        logger.info(f"New channel {stream.user_id} {stream.user_name}, storing and shouting out")
        now = self._clock()
        alerted, suppressed = await self._alert(stream)

        record = StreamRecord.from_observed(stream)
        if alerted:
            record = apply_patch(record, StreamPatch(last_shoutout_at=now))

        await self._subscribe(stream)
        await self.store.create(record)
        return Reconciliation(stream.user_id, NEW, alerted, suppressed)

    async def gone_live(self, record: StreamRecord, stream: ObservedStream) -> Reconciliation:
        logger.debug(f"Existing channel seen newly live: {stream.user_id} {stream.user_name}")
        now = self._clock()
        alerted = False
        suppressed = self.shoutout_suppression(record, now)
        if suppressed is None:
            alerted, suppressed = await self._alert(stream)

        changes: dict[str, Any] = {"is_live": True, "offline_since": None}
        if alerted:
            changes["last_shoutout_at"] = now

        # Resubscribed on every transition, whatever the alert outcome
        await self._subscribe(stream)
        await self.store.update(apply_patch(record, StreamPatch.metadata(stream, **changes)))
        return Reconciliation(stream.user_id, GONE_LIVE, alerted, suppressed)

    async def refresh(self, record: StreamRecord, stream: ObservedStream) -> Reconciliation:
        await self.store.update(apply_patch(record, StreamPatch.metadata(stream, is_live=True)))
        return Reconciliation(stream.user_id, REFRESHED)

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def shoutout_suppression(self, record: StreamRecord, now: datetime) -> str | None:
        """Return the time-based reason to skip a shoutout, or None if one is due.

        Negative elapsed times (clock skew, bad rows) never suppress.
        """
        name = f"{record.channel_id} {record.channel_name}"

        if record.offline_since is not None:
            offline_minutes = elapsed_minutes(now, record.offline_since)
            if offline_minutes < 0:
                logger.warning(f"offline_since is {offline_minutes} minutes in the future for {name}")
            elif offline_minutes < self.thresholds.reconnect_minutes:
                logger.debug(
                    f"Stream went offline {offline_minutes} minutes ago - probably just a "
                    f"reconnect, suppressing shoutout for {name}"
                )
                return SUPPRESSED_RECONNECT

        whitelisted = is_whitelisted(self.criteria, record.channel_id)
        if whitelisted:
            reason = "User is in the whitelist"
        elif record.last_shoutout_at is None:
            reason = "Last shoutout is not set"
        else:
            hours = elapsed_hours(now, record.last_shoutout_at)
            if hours < 0:
                logger.warning(f"Last shoutout was a negative number of hours ago ({hours}) for {name}")
                reason = f"Last shoutout was {hours} hours ago"
            elif hours < self.thresholds.shoutout_hours:
                logger.debug(
                    f"Stream was already shouted out {hours} hours ago - suppressing shoutout for {name}"
                )
                return SUPPRESSED_RECENT_SHOUTOUT
            else:
                reason = f"Last shoutout was {hours} hours ago, which is over threshold"

        logger.debug(f"{reason} - shouting out stream for {name}")
        return None

    async def _alert(self, stream: ObservedStream) -> tuple[bool, str | None]:
        reason = blacklist_reason(self.criteria, stream)
        if reason:
            logger.info(f"{reason.capitalize()}, suppressing alert for {stream.user_id} {stream.user_name}")
            return False, reason

        try:
            delivered = await self.notifier.notify(stream)
        except Exception:
            logger.exception(f"Unable to trigger alert for {stream.user_id} {stream.user_name}")
            delivered = False

        if not delivered:
            return False, SUPPRESSED_NOTIFIER_FAILURE
        logger.info(f"Shouted out {stream.user_id} {stream.user_name}")
        return True, None

    async def _subscribe(self, stream: ObservedStream) -> None:
        logger.debug(f"Subscribing to webhook for {stream.user_id} {stream.user_name}...")
        try:
            await self.subscribe(stream.user_id)
        except Exception:
            logger.exception(f"Webhook subscription failed for {stream.user_id}")
