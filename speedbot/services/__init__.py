"""Clients for the services speedbot talks to."""

from .notifier import DiscordWebhookNotifier, Notifier
from .stream_query import StreamQuery
from .errors import HelixStatusError
from .twitch_api import TokenManager, TwitchAPIClient

__all__ = [
    "DiscordWebhookNotifier",
    "HelixStatusError",
    "Notifier",
    "StreamQuery",
    "TokenManager",
    "TwitchAPIClient",
]
