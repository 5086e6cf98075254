"""
Tests for speedbot/services/notifier.py
"""
import json

import httpx
import pytest

from conftest import make_stream
from speedbot.services.notifier import DiscordWebhookNotifier

WEBHOOK_URL = "https://discord.com/api/webhooks/1/abc"


def notifier_answering(handler):
    sent = []

    def _handler(request):
        sent.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    return DiscordWebhookNotifier(WEBHOOK_URL, http=http), sent


@pytest.mark.unit
class TestDiscordWebhookNotifier:

    @pytest.mark.asyncio
    async def test_success_posts_embed(self):
        notifier, sent = notifier_answering(lambda r: httpx.Response(204))

        assert await notifier.notify(make_stream("1", title="Any% WR pace")) is True

        payload = json.loads(sent[0].content)
        embed = payload["embeds"][0]
        assert embed["title"] == "Any% WR pace"
        assert embed["url"] == "https://twitch.tv/runner1"
        assert embed["timestamp"].startswith("2026-10-19T11:30:00")
        assert "Runner1 is now live" in payload["content"]

    @pytest.mark.asyncio
    async def test_error_status_is_failure(self):
        notifier, _ = notifier_answering(lambda r: httpx.Response(429, text="rate limited"))

        assert await notifier.notify(make_stream("1")) is False

    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        notifier, _ = notifier_answering(refuse)

        assert await notifier.notify(make_stream("1")) is False

    def test_untitled_stream_message(self):
        notifier = DiscordWebhookNotifier(WEBHOOK_URL)

        message = notifier.build_message(make_stream("1", title=None))

        assert message["embeds"][0]["title"] == "Runner1 is live"
