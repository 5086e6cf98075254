"""Polling loop driving the stream lifecycle."""

from __future__ import annotations

import asyncio
import logging

from speedbot.lifecycle import Reconciliation, StreamLifecycle
from speedbot.services.errors import HelixStatusError
from speedbot.services.stream_query import StreamQuery
from speedbot.shared.models.stream import FilterCriteria

logger = logging.getLogger(__name__)


class StreamPoller:
    """Polls Helix every *interval* seconds and reconciles what it sees."""

    def __init__(
        self,
        query: StreamQuery,
        lifecycle: StreamLifecycle,
        criteria: FilterCriteria,
        interval: int = 60,
    ):
        self.query = query
        self.lifecycle = lifecycle
        self.criteria = criteria
        self.interval = interval

        self._running = False
        self._task: asyncio.Task | None = None

    async def run_cycle(self) -> list[Reconciliation]:
        """Query, reconcile and sweep once.

        A failed stream listing raises ``HelixStatusError`` before anything
        is reconciled, leaving every record as it was.
        """
        observed = await self.query.by_metadata(
            self.criteria.game_ids,
            tag_ids=self.criteria.tag_ids,
            keywords=self.criteria.keywords,
        )
        results = await self.lifecycle.reconcile_all(observed)

        alerted = sum(1 for r in results if r.alerted)
        logger.info(f"Cycle done: {len(observed)} matching streams, {alerted} shoutouts")
        return results

    async def start(self) -> None:
        if self._running:
            logger.warning("StreamPoller already running")
            return
        if not self.criteria.game_ids:
            logger.warning("No game ids configured, every cycle will come back empty")

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"StreamPoller started (interval={self.interval}s)")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("StreamPoller stopped")

    async def wait(self) -> None:
        """Block until the loop ends; re-raises what ended it."""
        if self._task:
            await self._task

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
            except HelixStatusError as exc:
                logger.warning(f"Skipping cycle, stream listing failed: {exc}")
            except Exception:
                logger.exception("Polling cycle failed")
            await asyncio.sleep(self.interval)
