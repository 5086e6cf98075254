"""Twitch stream tracker with Discord shoutouts."""

__version__ = "0.1.0"
