"""Data models for tracked channels, observed streams and filter rules."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Sentinel distinguishing "leave this field alone" from an explicit None
_UNSET: Any = object()


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class ObservedStream:
    """A live stream as reported by Helix ``/streams`` in the current poll."""

    id: str
    user_id: str
    user_name: str
    user_login: str = ""
    title: str | None = None
    game_id: str | None = None
    tag_ids: tuple[str, ...] = ()
    viewer_count: int = 0
    started_at: datetime | None = None

    @classmethod
    def from_helix(cls, data: dict) -> ObservedStream:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            user_name=data.get("user_name") or data.get("user_login", ""),
            user_login=data.get("user_login", ""),
            title=data.get("title"),
            game_id=data.get("game_id"),
            tag_ids=tuple(data.get("tag_ids") or ()),
            viewer_count=int(data.get("viewer_count") or 0),
            started_at=_parse_timestamp(data.get("started_at")),
        )

    @property
    def url(self) -> str:
        return f"https://twitch.tv/{self.user_login or self.user_name}"


@dataclass
class StreamRecord:
    """Persisted row of the ``streams`` table, one per tracked channel."""

    channel_id: str
    channel_name: str
    is_live: bool = False
    last_shoutout_at: datetime | None = None
    offline_since: datetime | None = None
    stream_id: str | None = None
    title: str | None = None
    game_id: str | None = None
    tag_ids: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_observed(cls, stream: ObservedStream) -> StreamRecord:
        return cls(
            channel_id=stream.user_id,
            channel_name=stream.user_name,
            is_live=True,
            stream_id=stream.id,
            title=stream.title,
            game_id=stream.game_id,
            tag_ids=list(stream.tag_ids),
        )


@dataclass(frozen=True)
class StreamPatch:
    """Fields a lifecycle transition is allowed to change on a record.

    Any field left at ``_UNSET`` keeps the record's current value; an
    explicit ``None`` clears it.
    """

    channel_name: str = _UNSET
    is_live: bool = _UNSET
    last_shoutout_at: datetime | None = _UNSET
    offline_since: datetime | None = _UNSET
    stream_id: str | None = _UNSET
    title: str | None = _UNSET
    game_id: str | None = _UNSET
    tag_ids: list[str] = _UNSET

    @classmethod
    def metadata(cls, stream: ObservedStream, **changes: Any) -> StreamPatch:
        """Patch carrying the last-seen metadata of *stream* plus *changes*."""
        return cls(
            channel_name=stream.user_name,
            stream_id=stream.id,
            title=stream.title,
            game_id=stream.game_id,
            tag_ids=list(stream.tag_ids),
            **changes,
        )

    def changes(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not _UNSET
        }


def apply_patch(record: StreamRecord, patch: StreamPatch) -> StreamRecord:
    """Return a copy of *record* with *patch* applied.

    Going live always clears ``offline_since`` unless the patch sets it.
    """
    changes = patch.changes()
    if changes.get("is_live") is True and "offline_since" not in changes:
        changes["offline_since"] = None
    return dataclasses.replace(record, **changes)


@dataclass(frozen=True)
class Blacklist:
    keywords: frozenset[str] = frozenset()
    tag_ids: frozenset[str] = frozenset()
    user_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FilterCriteria:
    """Read-only per-run filter configuration."""

    game_ids: frozenset[str] = frozenset()
    tag_ids: frozenset[str] = frozenset()
    keywords: frozenset[str] = frozenset()
    blacklist: Blacklist = field(default_factory=Blacklist)
    whitelist_user_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Thresholds:
    reconnect_minutes: int = 5
    shoutout_hours: int = 6


def is_whitelisted(criteria: FilterCriteria, channel_id: str) -> bool:
    return channel_id in criteria.whitelist_user_ids


def blacklist_reason(criteria: FilterCriteria, stream: ObservedStream) -> str | None:
    """Return why *stream* must not be shouted out, or None if it may be."""
    blacklist = criteria.blacklist
    if stream.title:
        title = stream.title.lower()
        if any(kw.lower() in title for kw in blacklist.keywords):
            return "blacklisted keyword"
    if stream.tag_ids and blacklist.tag_ids.intersection(stream.tag_ids):
        return "blacklisted tag"
    if stream.user_id in blacklist.user_ids:
        return "blacklisted user"
    return None
