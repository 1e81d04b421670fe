"""
Unit tests for time helpers, cache items and statistics.
"""

import pytest

from lexicache.cache.item import CacheItem, deserialize_entries, serialize_entries
from lexicache.cache.stats import (
    CacheStats,
    calculate_hit_rate,
    compare_stats,
    compute_stats,
    generate_report,
)
from lexicache.cache.timeutils import (
    estimate_size,
    format_bytes,
    format_duration,
    is_expired,
    parse_time_string,
    remaining_ttl,
)
from lexicache.core.exceptions import CacheSerializationError


@pytest.mark.unit
class TestExpiry:
    """Test freshness arithmetic."""

    def test_fresh_at_exact_ttl(self):
        """An item should be fresh exactly at its TTL."""
        assert not is_expired(0, 1000, 1000)

    def test_expired_after_ttl(self):
        """An item should expire one millisecond after its TTL."""
        assert is_expired(0, 1000, 1001)

    def test_remaining_never_negative(self):
        """Remaining time should never go below zero."""
        assert remaining_ttl(0, 1000, 400) == 600
        assert remaining_ttl(0, 1000, 5000) == 0


@pytest.mark.unit
class TestFormatting:
    """Test duration and size formatting."""

    @pytest.mark.parametrize(
        "ms, expected",
        [
            (999, "0s"),
            (45_000, "45s"),
            (90_000, "1m 30s"),
            (2 * 3_600_000 + 5 * 60_000, "2h 5m"),
            (26 * 3_600_000, "1d 2h"),
        ],
    )
    def test_format_duration(self, ms, expected):
        """Durations should be formatted in the largest fitting unit."""
        assert format_duration(ms) == expected

    def test_format_bytes(self):
        """Byte counts should be formatted in binary units."""
        assert format_bytes(512) == "512.00 B"
        assert format_bytes(2048) == "2.00 KB"

    def test_estimate_size_utf8(self):
        """Size estimates should count UTF-8 bytes."""
        assert estimate_size({"a": "b"}) == len('{"a": "b"}')
        assert estimate_size("中") == len('"中"'.encode("utf-8"))

    def test_estimate_size_unserializable(self):
        """Unserializable data should fall back to a string estimate."""
        assert estimate_size({1, 2}) == 0


@pytest.mark.unit
class TestParseTimeString:
    """Test duration string parsing."""

    @pytest.mark.parametrize(
        "value, expected",
        [("250ms", 250), ("5s", 5000), ("2m", 120_000), ("1h", 3_600_000), ("1d", 86_400_000)],
    )
    def test_valid(self, value, expected):
        """Unit-suffixed durations should parse to milliseconds."""
        assert parse_time_string(value) == expected

    @pytest.mark.parametrize("value", ["", "5", "5x", "1.5h", "-1s"])
    def test_invalid(self, value):
        """Malformed duration strings should be rejected."""
        with pytest.raises(ValueError):
            parse_time_string(value)


@pytest.mark.unit
class TestCacheItem:
    """Test item bookkeeping and persisted format."""

    def test_last_accessed_defaults_to_timestamp(self):
        """last_accessed should default to the timestamp."""
        item = CacheItem(data={}, timestamp=100, ttl=1000)
        assert item.last_accessed == 100

    def test_touch(self):
        """touch should update the access time and hit count."""
        item = CacheItem(data={}, timestamp=100, ttl=1000)
        item.touch(500)
        assert item.hits == 1
        assert item.last_accessed == 500

    def test_copy_is_independent(self):
        """A copy should not share data with the original."""
        item = CacheItem(data={"a": 1}, timestamp=100, ttl=1000)
        clone = item.copy()
        clone.touch(200)
        assert item.hits == 0

    def test_serialized_blob_restores_items(self):
        """A serialized blob should restore the same items."""
        items = {"en:common": CacheItem(data={"hi": "Hello"}, timestamp=100, ttl=1000, hits=2)}
        restored = deserialize_entries(serialize_entries(items))
        assert restored["en:common"].data == {"hi": "Hello"}
        assert restored["en:common"].hits == 2

    def test_invalid_json_blob(self):
        """Invalid JSON should raise a storage error."""
        with pytest.raises(CacheSerializationError):
            deserialize_entries("{not json")

    def test_non_object_blob(self):
        """A blob that is not an object should raise a storage error."""
        with pytest.raises(CacheSerializationError):
            deserialize_entries("[1, 2]")

    def test_missing_fields(self):
        """Entries missing fields should be rejected."""
        with pytest.raises(CacheSerializationError, match="missing fields"):
            CacheItem.from_dict({"data": {}})

    def test_unserializable_data(self):
        """Unserializable data should raise a storage error."""
        with pytest.raises(CacheSerializationError):
            serialize_entries({"en": CacheItem(data=object(), timestamp=0, ttl=1000)})


@pytest.mark.unit
class TestStats:
    """Test derived statistics."""

    def test_hit_rate(self):
        """Hit rate should be hits over lookups."""
        assert calculate_hit_rate(3, 1) == 0.75
        assert calculate_hit_rate(0, 0) == 0.0

    def test_compute_stats(self):
        """compute_stats should summarize size, memory and timestamps."""
        items = [
            CacheItem(data=None, timestamp=0, ttl=1000, hits=2),
            CacheItem(data=None, timestamp=500, ttl=1000, hits=1),
        ]
        stats = compute_stats(items, now=1000)
        assert stats == CacheStats(size=2, total_hits=3, average_age=750.0)

    def test_compute_stats_empty(self):
        """An empty store should produce zeroed stats."""
        assert compute_stats([], now=1000) == CacheStats(size=0, total_hits=0, average_age=0.0)

    def test_compare_stats(self):
        """compare_stats should report the change between snapshots."""
        diff = compare_stats(CacheStats(1, 2, 100.0), CacheStats(3, 7, 50.0))
        assert (diff.size_diff, diff.hits_diff, diff.age_diff) == (2, 5, -50.0)

    def test_generate_report(self):
        """generate_report should render a readable summary."""
        report = generate_report(CacheStats(size=4, total_hits=9, average_age=90_000))
        assert "Size: 4 items" in report
        assert "Total Hits: 9" in report
        assert "Average Age: 1m 30s" in report
