"""Shared data models for the speedbot services."""

from .stream import (
    Blacklist,
    FilterCriteria,
    ObservedStream,
    StreamPatch,
    StreamRecord,
    Thresholds,
    apply_patch,
    blacklist_reason,
    is_whitelisted,
)

__all__ = [
    "Blacklist",
    "FilterCriteria",
    "ObservedStream",
    "StreamPatch",
    "StreamRecord",
    "Thresholds",
    "apply_patch",
    "blacklist_reason",
    "is_whitelisted",
]
