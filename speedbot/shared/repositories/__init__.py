"""Shared repository layer for the speedbot services."""

from .stream import StreamRepository

__all__ = [
    "StreamRepository",
]
