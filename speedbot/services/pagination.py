"""Cursor pagination over Helix list endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from speedbot.services.errors import HelixStatusError

if TYPE_CHECKING:
    from speedbot.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


async def fetch_all(
    client: TwitchAPIClient,
    endpoint: str,
    payload: dict[str, Any] | None = None,
    *,
    page_size: int = PAGE_SIZE,
    stop_on_short_page: bool = False,
    strict: bool = False,
) -> list[dict]:
    """Follow ``pagination.cursor`` until the upstream runs out of pages.

    Stops on an empty page, a missing cursor, or a non-200 status (the
    items gathered so far are kept). With *stop_on_short_page*, a page
    shorter than *page_size* also ends the walk even if a cursor came back.
    With *strict*, a non-200 status raises ``HelixStatusError`` instead.
    """
    items: list[dict] = []
    cursor: str | None = None

    while True:
        body = await client.request(endpoint, {**(payload or {}), "first": page_size, "after": cursor})
        if not isinstance(body, dict):
            if strict:
                raise HelixStatusError(endpoint, body)
            logger.warning(f"Pagination of {endpoint} stopped on status {body} after {len(items)} items")
            break

        data = body.get("data") or []
        if not data:
            break
        items.extend(data)

        cursor = (body.get("pagination") or {}).get("cursor")
        if not cursor:
            break
        if stop_on_short_page and len(data) < page_size:
            break

    logger.debug(f"Fetched {len(items)} items from {endpoint}")
    return items
