"""
Tests for speedbot/shared/models/stream.py
Helix parsing, record patches, blacklist/whitelist rules
"""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_helix_stream, make_record, make_stream
from speedbot.shared.models.stream import (
    ObservedStream,
    StreamPatch,
    apply_patch,
    blacklist_reason,
    is_whitelisted,
)


@pytest.mark.unit
class TestObservedStream:

    def test_from_helix(self):
        stream = ObservedStream.from_helix(make_helix_stream("5", "WR pace", ["t1", "t2"]))

        assert stream.user_id == "5"
        assert stream.user_name == "Runner5"
        assert stream.tag_ids == ("t1", "t2")
        assert stream.viewer_count == 42
        assert stream.started_at == datetime(2026, 10, 19, 11, 30, tzinfo=timezone.utc)
        assert stream.url == "https://twitch.tv/runner5"

    def test_missing_optional_fields(self):
        stream = ObservedStream.from_helix({"id": "s1", "user_id": "1", "user_login": "someone"})

        assert stream.tag_ids == ()
        assert stream.title is None
        assert stream.started_at is None
        assert stream.user_name == "someone"


@pytest.mark.unit
class TestApplyPatch:

    def test_unset_fields_are_kept(self):
        record = make_record("1", last_shoutout_ago=timedelta(0))

        patched = apply_patch(record, StreamPatch(title="new title"))

        assert patched.title == "new title"
        assert patched.last_shoutout_at == record.last_shoutout_at
        assert patched is not record

    def test_explicit_none_clears(self):
        record = make_record("1", last_shoutout_ago=timedelta(0))

        patched = apply_patch(record, StreamPatch(last_shoutout_at=None))

        assert patched.last_shoutout_at is None

    def test_going_live_clears_offline_since(self):
        record = make_record("1", offline_ago=timedelta(0))

        patched = apply_patch(record, StreamPatch(is_live=True))

        assert patched.is_live is True
        assert patched.offline_since is None

    def test_metadata_patch(self):
        stream = make_stream("1", title="Glitched", tag_ids=["t"])

        patched = apply_patch(make_record("1"), StreamPatch.metadata(stream, is_live=True))

        assert patched.title == "Glitched"
        assert patched.tag_ids == ["t"]
        assert patched.game_id == "1"
        assert patched.stream_id == "s1"


@pytest.mark.unit
class TestFilterRules:

    def test_clean_stream_passes(self, criteria):
        assert blacklist_reason(criteria, make_stream("1", title="any% attempts")) is None

    def test_keyword_is_case_insensitive_substring(self, criteria):
        assert blacklist_reason(criteria, make_stream("1", title="bestofRERUNS")) == "blacklisted keyword"

    def test_tag_intersection(self, criteria):
        stream = make_stream("1", tag_ids=["tag-speedrun", "tag-bad"])
        assert blacklist_reason(criteria, stream) == "blacklisted tag"

    def test_user_id(self, criteria):
        assert blacklist_reason(criteria, make_stream("666")) == "blacklisted user"

    def test_stream_without_title_or_tags(self, criteria):
        assert blacklist_reason(criteria, make_stream("1", title=None)) is None

    def test_whitelist(self, criteria):
        assert is_whitelisted(criteria, "777")
        assert not is_whitelisted(criteria, "100")
