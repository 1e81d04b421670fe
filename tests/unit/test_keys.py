"""
Unit tests for the cache key codec.
"""

import pytest

from lexicache.cache import keys
from lexicache.cache.keys import CacheKey
from lexicache.core.exceptions import CacheValidationError


@pytest.mark.unit
class TestCreate:
    """Test key construction."""

    def test_locale_only(self):
        """A locale alone should be the whole key."""
        assert keys.create("en") == "en"

    def test_locale_and_namespace(self):
        """Locale and namespace should be joined by the separator."""
        assert keys.create("en", "common") == "en:common"

    def test_all_parts(self):
        """All three parts should be joined in order."""
        assert keys.create("en", "common", "title") == "en:common:title"

    def test_empty_namespace_is_skipped(self):
        """An empty namespace should be skipped."""
        assert keys.create("zh", "") == "zh"

    def test_key_without_namespace_rejected(self):
        """A key without a namespace should be rejected."""
        with pytest.raises(CacheValidationError, match="requires a namespace"):
            keys.create("en", None, "title")

    def test_separator_inside_part_rejected(self):
        """A separator inside any part should be rejected."""
        with pytest.raises(CacheValidationError):
            keys.create("en", "a:b")

    def test_cache_key_encode(self):
        """CacheKey.encode should produce the serialized key."""
        assert CacheKey("fr", "errors").encode() == "fr:errors"


@pytest.mark.unit
class TestParse:
    """Test key decoding."""

    def test_round_trip(self):
        """Valid triples should round-trip through create and parse."""
        assert keys.parse(keys.create("en", "common", "title")) == CacheKey("en", "common", "title")

    def test_locale_only(self):
        """A single segment should parse as a locale."""
        assert keys.parse("en") == CacheKey("en", None, None)

    def test_empty_string_parses_to_empty_locale(self):
        """An empty string should parse to an empty locale."""
        parsed = keys.parse("")
        assert parsed.locale == ""
        assert parsed.namespace is None

    def test_extra_segments_ignored(self):
        """Segments past the third should be dropped."""
        assert keys.parse("en:a:b:c") == CacheKey("en", "a", "b")


@pytest.mark.unit
class TestValidate:
    """Test key validation."""

    def test_valid_key(self):
        """A normal key should be valid."""
        assert keys.validate("en:common")

    def test_empty_key_invalid(self):
        """An empty key should be invalid."""
        assert not keys.validate("")

    def test_non_string_invalid(self):
        """Non-string keys should be invalid."""
        assert not keys.validate(None)
        assert not keys.validate(42)

    def test_length_limit(self):
        """Keys longer than 256 characters should be invalid."""
        assert keys.validate("a" * 256)
        assert not keys.validate("a" * 257)


@pytest.mark.unit
class TestNormalize:
    """Test key normalization."""

    def test_lowercases_and_replaces(self):
        """normalize should lowercase and replace disallowed characters."""
        assert keys.normalize("  EN:Common Page ") == "en:common_page"

    def test_keeps_allowed_characters(self):
        """normalize should keep separators, digits, underscores and dashes."""
        assert keys.normalize("zh-cn:ui_labels") == "zh-cn:ui_labels"


@pytest.mark.unit
class TestPatterns:
    """Test wildcard patterns."""

    def test_create_pattern_defaults(self):
        """create_pattern should default every segment to a wildcard."""
        assert keys.create_pattern() == "*:*:*"
        assert keys.create_pattern("en") == "en:*:*"
        assert keys.create_pattern(None, "common") == "*:common:*"

    def test_locale_pattern_matches_all_depths(self):
        """A locale pattern should match keys of every depth."""
        pattern = keys.create_pattern("en")
        assert keys.matches_pattern("en", pattern)
        assert keys.matches_pattern("en:common", pattern)
        assert keys.matches_pattern("en:common:title", pattern)

    def test_locale_pattern_rejects_other_locale(self):
        """A locale pattern should not match another locale."""
        assert not keys.matches_pattern("zh:common", keys.create_pattern("en"))

    def test_namespace_pattern(self):
        """A namespace pattern should match that namespace in any locale."""
        pattern = keys.create_pattern(None, "common")
        assert keys.matches_pattern("zh:common", pattern)
        assert not keys.matches_pattern("zh:errors", pattern)
        assert not keys.matches_pattern("zh", pattern)

    def test_key_longer_than_pattern_does_not_match(self):
        """A key with more segments than the pattern should not match."""
        assert not keys.matches_pattern("en:common:title", "en:*")
