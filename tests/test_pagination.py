"""
Tests for speedbot/services/pagination.py
Cursor following and stop conditions
"""
from unittest.mock import AsyncMock

import pytest

from speedbot.services.errors import HelixStatusError
from speedbot.services.pagination import fetch_all


def page(count, cursor=None, start=0):
    body = {"data": [{"n": start + i} for i in range(count)]}
    body["pagination"] = {"cursor": cursor} if cursor else {}
    return body


def stub_client(*responses):
    client = AsyncMock()
    client.request.side_effect = list(responses)
    return client


@pytest.mark.unit
class TestFetchAll:

    @pytest.mark.asyncio
    async def test_follows_cursor_until_empty_page(self):
        client = stub_client(page(100, "c1"), page(100, "c2", 100), page(0, "c3"))

        items = await fetch_all(client, "/streams", {"game_id": ["1"]})

        assert len(items) == 200
        assert [i["n"] for i in items] == list(range(200))
        afters = [call.args[1]["after"] for call in client.request.call_args_list]
        assert afters == [None, "c1", "c2"]

    @pytest.mark.asyncio
    async def test_stops_when_cursor_missing(self):
        client = stub_client(page(100, "c1"), page(40))

        items = await fetch_all(client, "/tags/streams")

        assert len(items) == 140
        assert client.request.await_count == 2

    @pytest.mark.asyncio
    async def test_short_page_with_cursor_continues_by_default(self):
        client = stub_client(page(30, "c1"), page(20))

        items = await fetch_all(client, "/tags/streams")

        assert len(items) == 50

    @pytest.mark.asyncio
    async def test_short_page_stops_stream_listing(self):
        client = stub_client(page(100, "c1"), page(99, "c2", 100), page(100, "c3", 199))

        items = await fetch_all(client, "/streams", stop_on_short_page=True)

        assert len(items) == 199
        assert client.request.await_count == 2

    @pytest.mark.asyncio
    async def test_error_status_keeps_accumulated_items(self):
        client = stub_client(page(100, "c1"), 503)

        items = await fetch_all(client, "/streams")

        assert len(items) == 100

    @pytest.mark.asyncio
    async def test_strict_error_status_raises(self):
        client = stub_client(page(100, "c1"), 503)

        with pytest.raises(HelixStatusError) as exc_info:
            await fetch_all(client, "/streams", strict=True)

        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_sends_page_size_and_base_payload(self):
        client = stub_client(page(0))

        await fetch_all(client, "/streams", {"game_id": ["1"]}, page_size=50)

        client.request.assert_awaited_once_with("/streams", {"game_id": ["1"], "first": 50, "after": None})
