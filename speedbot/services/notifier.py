"""Outbound live notifications."""

import logging
from typing import Protocol

import httpx

from speedbot.shared.models.stream import ObservedStream

logger = logging.getLogger(__name__)

EMBED_COLOR = 0x9146FF


class Notifier(Protocol):
    async def notify(self, stream: ObservedStream) -> bool: ...


class DiscordWebhookNotifier:
    """Posts a "now live" embed to a Discord channel webhook."""

    def __init__(self, webhook_url: str, http: httpx.AsyncClient | None = None):
        self.webhook_url = webhook_url
        self._http = http or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self._http.aclose()

    def build_message(self, stream: ObservedStream) -> dict:
        fields = [{"name": "Viewers", "value": str(stream.viewer_count), "inline": True}]
        if stream.game_id:
            fields.append({"name": "Game", "value": stream.game_id, "inline": True})
        embed = {
            "title": stream.title or f"{stream.user_name} is live",
            "url": stream.url,
            "color": EMBED_COLOR,
            "author": {"name": stream.user_name, "url": stream.url},
            "fields": fields,
        }
        if stream.started_at:
            embed["timestamp"] = stream.started_at.isoformat()
        return {"content": f"{stream.user_name} is now live! {stream.url}", "embeds": [embed]}

    async def notify(self, stream: ObservedStream) -> bool:
        """Send the alert; True when Discord accepted it."""
        try:
            response = await self._http.post(self.webhook_url, json=self.build_message(stream))
        except httpx.HTTPError as e:
            logger.error(f"Discord webhook request failed for {stream.user_id}: {e}")
            return False

        if not response.is_success:
            logger.error(f"Discord webhook returned {response.status_code}: {response.text}")
            return False
        return True
