"""
Pytest configuration
Fake Helix transport, in-memory stream store and common fixtures
"""
import dataclasses
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from speedbot.services.twitch_api import TwitchAPIClient
from speedbot.shared.locks import KeyedLocks
from speedbot.shared.models.stream import (
    Blacklist,
    FilterCriteria,
    ObservedStream,
    StreamRecord,
    Thresholds,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeTwitch:
    """httpx.MockTransport handler standing in for id.twitch.tv and Helix.

    Each token exchange issues ``token-1``, ``token-2``, ... Helix routes
    are keyed by path without the ``/helix`` prefix and answer from a queue;
    the last queued response keeps repeating.
    """

    def __init__(self, token_status: int = 200):
        self.token_status = token_status
        self.tokens_issued = 0
        self.routes: dict[str, list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def route(self, path: str, *responses: httpx.Response) -> None:
        self.routes[path] = list(responses)

    def helix_requests(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/helix{path}"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "id.twitch.tv":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "invalid client"})
            self.tokens_issued += 1
            return httpx.Response(200, json={"access_token": f"token-{self.tokens_issued}"})

        queue = self.routes[request.url.path.removeprefix("/helix")]
        return queue.pop(0) if len(queue) > 1 else queue[0]


class FakeStreamRepository:
    """In-memory stand-in for StreamRepository with the same lock discipline."""

    def __init__(self, records=()):
        self.rows = {r.channel_id: r for r in records}
        self._locks = KeyedLocks()

    def lock(self, channel_id):
        return self._locks.get(channel_id)

    async def get_one(self, channel_id):
        return self.rows.get(channel_id)

    async def get_all(self):
        return list(self.rows.values())

    async def get_live(self):
        return [r for r in self.rows.values() if r.is_live]

    async def create(self, record):
        if record.channel_id in self.rows:
            raise ValueError(f"duplicate channel_id {record.channel_id}")
        self.rows[record.channel_id] = record

    async def update(self, record):
        self.rows[record.channel_id] = record

    async def set_ended(self, channel_id, at=None):
        self.rows[channel_id] = dataclasses.replace(
            self.rows[channel_id], is_live=False, offline_since=at
        )


def make_helix_stream(user_id="100", title="Any% glitchless attempts", tag_ids=None, **extra):
    data = {
        "id": f"s{user_id}",
        "user_id": user_id,
        "user_login": f"runner{user_id}",
        "user_name": f"Runner{user_id}",
        "game_id": "1",
        "title": title,
        "tag_ids": tag_ids,
        "viewer_count": 42,
        "started_at": "2026-10-19T11:30:00Z",
    }
    data.update(extra)
    return data


def make_stream(user_id="100", title="Any% glitchless attempts", tag_ids=(), **extra):
    return ObservedStream.from_helix(
        make_helix_stream(user_id, title, list(tag_ids) or None, **extra)
    )


def make_record(channel_id="100", *, is_live=False, last_shoutout_ago=None, offline_ago=None):
    return StreamRecord(
        channel_id=channel_id,
        channel_name=f"Runner{channel_id}",
        is_live=is_live,
        last_shoutout_at=NOW - last_shoutout_ago if last_shoutout_ago is not None else None,
        offline_since=NOW - offline_ago if offline_ago is not None else None,
    )


@pytest.fixture
def fake_twitch():
    return FakeTwitch()


@pytest.fixture
def client(fake_twitch):
    return TwitchAPIClient(
        "test_client_id",
        "test_client_secret",
        callback_domain="https://bot.example.com/",
        http=httpx.AsyncClient(transport=httpx.MockTransport(fake_twitch)),
    )


@pytest.fixture
def criteria():
    return FilterCriteria(
        game_ids=frozenset({"1"}),
        tag_ids=frozenset({"tag-speedrun"}),
        keywords=frozenset({"any%"}),
        blacklist=Blacklist(
            keywords=frozenset({"Rerun"}),
            tag_ids=frozenset({"tag-bad"}),
            user_ids=frozenset({"666"}),
        ),
        whitelist_user_ids=frozenset({"777"}),
    )


@pytest.fixture
def thresholds():
    return Thresholds(reconnect_minutes=5, shoutout_hours=6)


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.notify.return_value = True
    return mock


@pytest.fixture
def subscribe():
    return AsyncMock(return_value=202)

