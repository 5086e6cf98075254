"""Selects candidate streams by game, tag and title keyword."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from speedbot.shared.models.stream import ObservedStream

if TYPE_CHECKING:
    from speedbot.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


class StreamQuery:
    """Builds the per-cycle observation set from Helix ``/streams``."""

    def __init__(self, client: TwitchAPIClient):
        self.client = client

    async def fetch_candidates(self, game_ids: Iterable[str]) -> list[ObservedStream]:
        raw = await self.client.get_streams(sorted(game_ids))
        return [ObservedStream.from_helix(s) for s in raw]

    async def streams_by_tag_ids(
        self,
        game_ids: Iterable[str],
        tag_ids: Iterable[str],
        candidates: list[ObservedStream] | None = None,
    ) -> list[ObservedStream]:
        if candidates is None:
            candidates = await self.fetch_candidates(game_ids)
        wanted = set(tag_ids)
        return [s for s in candidates if s.tag_ids and wanted.intersection(s.tag_ids)]

    async def streams_by_keywords(
        self,
        game_ids: Iterable[str],
        keywords: Iterable[str],
        candidates: list[ObservedStream] | None = None,
    ) -> list[ObservedStream]:
        if candidates is None:
            candidates = await self.fetch_candidates(game_ids)
        lowered = [kw.lower() for kw in keywords]
        return [
            s for s in candidates if s.title and any(kw in s.title.lower() for kw in lowered)
        ]

    async def by_metadata(
        self,
        game_ids: Iterable[str],
        *,
        tag_ids: Iterable[str] = (),
        keywords: Iterable[str] = (),
    ) -> list[ObservedStream]:
        """Streams matching any tag or any keyword, once per channel.

        The candidate list is fetched once and both filters run over it.
        Tag matches come first, so a stream matching both keeps its
        tag-matched copy.
        """
        candidates = await self.fetch_candidates(game_ids)
        tagged, by_keyword = await asyncio.gather(
            self.streams_by_tag_ids(game_ids, tag_ids, candidates),
            self.streams_by_keywords(game_ids, keywords, candidates),
        )

        merged: dict[str, ObservedStream] = {}
        for stream in [*tagged, *by_keyword]:
            merged.setdefault(stream.user_id, stream)

        logger.debug(
            f"{len(candidates)} candidates: {len(tagged)} by tag, "
            f"{len(by_keyword)} by keyword, {len(merged)} unique"
        )
        return list(merged.values())
