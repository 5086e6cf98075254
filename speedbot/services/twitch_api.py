"""Twitch Helix API client.

Only the app access token (client-credentials grant) is used. Twitch does
not let these tokens be refreshed, so an expired one is simply dropped and
a new one requested. Expiry is never tracked locally: a 401 response is
the only signal that the token is stale.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from speedbot.services.errors import HelixStatusError
from speedbot.services.pagination import fetch_all
from speedbot.shared.cache import AsyncTTLCache, cached

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv"
OAUTH_TOKEN_PATH = "/oauth2/token"

WEBHOOK_LEASE_SECONDS = 86400
LOOKUP_TTL = 3600

_BODY_METHODS = {"POST", "PUT", "PATCH"}


class TokenManager:
    """Holds the one app access token shared by every request.

    Refreshes are single-flight: concurrent callers that find no token wait
    on one exchange instead of each starting their own. The exchange itself
    goes through *request* without authentication.
    """

    def __init__(
        self,
        request: Callable[..., Awaitable[Any]],
        client_id: str,
        client_secret: str,
        oauth_base: str = OAUTH_BASE,
    ):
        self._request = request
        self.client_id = client_id
        self.client_secret = client_secret
        self.oauth_base = oauth_base
        self._token: str | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> str | None:
        return self._token

    async def ensure_token(self) -> str:
        """Return the cached token, exchanging client credentials if absent.

        A failed exchange raises ``HelixStatusError`` (or the transport
        error) to the caller; it is not retried.
        """
        if self._token:
            return self._token

        async with self._lock:
            if self._token:
                return self._token

            logger.debug("Requesting new OAuth token...")
            body = await self._request(
                OAUTH_TOKEN_PATH,
                {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                "POST",
                auth_exempt=True,
                retries=0,
                base_url=self.oauth_base,
            )
            if not isinstance(body, dict):
                raise HelixStatusError(OAUTH_TOKEN_PATH, body)
            self._token = body["access_token"]
            logger.debug("Successfully got OAuth token.")
            return self._token

    def invalidate(self, token: str | None = None) -> None:
        """Drop the cached token.

        When *token* is given, only drop it if it is still the cached one, so
        a stale 401 cannot discard a token another request just fetched.
        """
        if token is None or token == self._token:
            self._token = None


class TwitchAPIClient:
    """Authenticated access to Helix.

    ``request`` returns the decoded body on 200 and the bare status code on
    any other non-401 status; callers tell them apart by type. Game and tag
    lookups are cached per client for ``LOOKUP_TTL`` seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        callback_domain: str = "",
        http: httpx.AsyncClient | None = None,
        base_url: str = HELIX_BASE,
        oauth_base: str = OAUTH_BASE,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.callback_domain = callback_domain.rstrip("/")
        self.base_url = base_url
        self._http = http or httpx.AsyncClient(timeout=10.0)
        self.tokens = TokenManager(self.request, client_id, client_secret, oauth_base)

        self.get_game_ids = cached(
            AsyncTTLCache(maxsize=32, ttl=LOOKUP_TTL),
            key_func=lambda names: "games:" + ",".join(sorted(names)),
        )(self._fetch_game_ids)
        self.get_all_tags = cached(
            AsyncTTLCache(maxsize=1, ttl=LOOKUP_TTL),
            key_func=lambda: "tags",
        )(self._fetch_all_tags)

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Core request
    # ------------------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        method: str = "GET",
        *,
        response_type: str = "json",
        headers: dict[str, str] | None = None,
        retries: int = 1,
        auth_exempt: bool = False,
        base_url: str | None = None,
    ) -> Any:
        """Send one logical request, re-authenticating at most *retries* times.

        A 401 with no retries left is unrecoverable: the process exits.
        """
        method = method.upper()
        url = f"{base_url or self.base_url}{endpoint}"
        payload = {k: v for k, v in (payload or {}).items() if v is not None}
        if method in _BODY_METHODS:
            body_kwargs: dict[str, Any] = {"json": payload}
        else:
            body_kwargs = {"params": payload}

        while True:
            compiled_headers = {"Client-Id": self.client_id, **(headers or {})}
            token = None
            if not auth_exempt:
                token = await self.tokens.ensure_token()
                compiled_headers["Authorization"] = f"Bearer {token}"

            logger.debug(f"API request: {method} {url} {payload}")
            response = await self._http.request(
                method, url, headers=compiled_headers, **body_kwargs
            )

            if response.status_code == 401:
                if not auth_exempt:
                    self.tokens.invalidate(token)
                if retries <= 0:
                    logger.error(f"API request to {endpoint} failed with authentication failure.")
                    logger.info(response.text)
                    sys.exit(1)
                logger.info("OAuth token expired, getting a new one...")
                retries -= 1
                continue

            if response.status_code != 200:
                # 202 is the normal answer from the webhook hub
                level = logging.DEBUG if response.is_success else logging.WARNING
                logger.log(level, f"API request to {endpoint} returned {response.status_code}")
                return response.status_code

            logger.debug(f"Quota left: {response.headers.get('Ratelimit-Remaining')}")
            if response_type == "json":
                return response.json()
            return response.text

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _fetch_game_ids(self, names: list[str]) -> list[str]:
        """Resolve game names to Helix game ids; unknown names are dropped."""
        if not names:
            return []
        body = await self.request("/games", {"name": list(names)})
        if not isinstance(body, dict):
            logger.error(f"Failed to look up games {names}: status {body}")
            return []
        return [game["id"] for game in body.get("data", [])]

    async def get_user_id(self, login: str) -> str | None:
        body = await self.request("/users", {"login": login})
        if not isinstance(body, dict) or not body.get("data"):
            logger.warning(f"No user found for login {login}")
            return None
        return body["data"][0]["id"]

    async def _fetch_all_tags(self) -> list[dict[str, str]]:
        """Return the stream tag catalog as ``{"id", "name"}`` pairs (en-us names)."""
        tags = await fetch_all(self, "/tags/streams")
        return [
            {"id": tag["tag_id"], "name": tag.get("localization_names", {}).get("en-us", "")}
            for tag in tags
        ]

    async def get_streams(self, game_ids: list[str]) -> list[dict]:
        """List every live stream in the given games.

        Raises ``HelixStatusError`` if any page fails. Without game ids nothing
        is requested and the listing is empty.
        """
        if not game_ids:
            return []
        return await fetch_all(
            self,
            "/streams",
            {"game_id": list(game_ids)},
            stop_on_short_page=True,
            strict=True,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def _stream_webhook_request(self, user_id: str, mode: str) -> Any:
        result = await self.request(
            "/webhooks/hub",
            {
                "hub.callback": f"{self.callback_domain}/streamUpdate/{user_id}",
                "hub.mode": mode,
                "hub.topic": f"{HELIX_BASE}/streams?user_id={user_id}",
                "hub.lease_seconds": WEBHOOK_LEASE_SECONDS,
            },
            method="POST",
            response_type="text",
        )
        logger.debug(f"Webhook {mode} for {user_id}: {result!r}")
        return result

    async def subscribe_to_user_stream(self, user_id: str) -> Any:
        return await self._stream_webhook_request(user_id, "subscribe")

    async def unsubscribe_from_user_stream(self, user_id: str) -> Any:
        return await self._stream_webhook_request(user_id, "unsubscribe")

    async def get_all_webhooks(self) -> Any:
        subs = await self.request("/webhooks/subscriptions")
        logger.debug(f"API Subscriptions: {subs}")
        return subs
