"""
Unit tests for configuration validation.

Test Coverage
-------------
- Recursive ConfigSchema type checking
- Base cache rules (size, ttl, storage key, persistence flag)
- Advanced blocks (compression, performance, eviction strategy)
- Preload and health rules
"""

import pytest

from lexicache.core.config.validator import (
    ConfigSchema,
    ConfigValidation,
    validate_advanced_cache_config,
    validate_cache_config,
    validate_health_config,
    validate_preload_config,
)
from lexicache.core.exceptions import CacheValidationError


@pytest.mark.unit
class TestConfigSchema:
    """Test recursive schema checks."""

    def test_type_error_has_dotted_path(self):
        """Type errors should name the dotted path."""
        schema = ConfigSchema(fields={"compression": ConfigSchema(fields={"level": int})})
        errors = schema.collect_errors({"compression": {"level": "9"}})
        assert errors == ["Config value at 'compression.level' must be int; got str"]

    def test_bool_is_not_an_int(self):
        """Booleans should not count as integers."""
        schema = ConfigSchema(fields={"level": int})
        assert schema.collect_errors({"level": True})

    def test_int_accepted_for_float(self):
        """Integers should be accepted where floats are expected."""
        assert ConfigSchema(fields={"rate": float}).collect_errors({"rate": 1}) == []

    def test_unknown_keys_rejected_when_strict(self):
        """Unknown keys should be rejected in strict mode."""
        schema = ConfigSchema(fields={"a": int}, allow_extra=False)
        errors = schema.collect_errors({"a": 1, "b": 2})
        assert errors == ["Unexpected config keys at '<root>': b"]

    def test_non_mapping(self):
        """A non-mapping input should be rejected."""
        errors = ConfigSchema(fields={}).collect_errors([1])
        assert "must be a mapping" in errors[0]

    def test_validate_raises_with_all_errors(self):
        """validate should raise with every error listed."""
        schema = ConfigSchema(fields={"a": int, "b": str})
        with pytest.raises(CacheValidationError) as exc_info:
            schema.validate({"a": "x", "b": 1})
        assert len(exc_info.value.details["errors"]) == 2


@pytest.mark.unit
class TestValidateCacheConfig:
    """Test base cache rules."""

    def test_empty_partial_is_valid(self):
        """An empty partial should be valid."""
        result = validate_cache_config({})
        assert result.is_valid
        assert result.warnings == []

    def test_max_size_too_small_names_minimum(self):
        """A too-small max size should name the minimum."""
        result = validate_cache_config({"maxSize": 5})
        assert result.errors == ["maxSize must be at least 10"]

    def test_max_size_too_large(self):
        """A too-large max size should be rejected."""
        assert validate_cache_config({"maxSize": 10_001}).errors == ["maxSize must not exceed 10000"]

    def test_max_size_bounds_inclusive(self):
        """The max size bounds should be inclusive."""
        assert validate_cache_config({"maxSize": 10}).is_valid
        assert validate_cache_config({"maxSize": 10_000}).is_valid

    def test_max_size_must_be_integer(self):
        """max size must be an integer."""
        assert validate_cache_config({"maxSize": 10.5}).errors == ["maxSize must be an integer"]
        assert validate_cache_config({"maxSize": True}).errors == ["maxSize must be an integer"]

    def test_ttl_too_short(self):
        """A too-short TTL should be rejected."""
        assert validate_cache_config({"ttl": 999}).errors == ["ttl must be at least 1000ms"]

    def test_ttl_very_high_is_only_a_warning(self):
        """A very long TTL should only warn."""
        result = validate_cache_config({"ttl": 86_400_001})
        assert result.is_valid
        assert result.warnings == ["ttl is very high (86400001ms), consider reducing it"]

    def test_storage_key(self):
        """The storage key must be a non-empty string."""
        assert not validate_cache_config({"storageKey": ""}).is_valid
        assert not validate_cache_config({"storageKey": 3}).is_valid

    def test_enable_persistence_must_be_bool(self):
        """enable_persistence must be a boolean."""
        assert validate_cache_config({"enablePersistence": "yes"}).errors == [
            "enablePersistence must be a boolean"
        ]

    def test_snake_case_keys(self):
        """snake_case keys should be accepted."""
        assert validate_cache_config({"max_size": 5}).errors == ["maxSize must be at least 10"]

    def test_errors_accumulate(self):
        """Errors should accumulate instead of stopping at the first."""
        result = validate_cache_config({"maxSize": 5, "ttl": 10, "storageKey": ""})
        assert len(result.errors) == 3

    def test_does_not_mutate_input(self):
        """Validation should not mutate its input."""
        partial = {"maxSize": 5}
        validate_cache_config(partial)
        assert partial == {"maxSize": 5}


@pytest.mark.unit
class TestValidateAdvancedCacheConfig:
    """Test compression, performance and strategy rules."""

    def test_valid_advanced(self):
        """A full advanced config should be valid."""
        result = validate_advanced_cache_config(
            {
                "maxSize": 100,
                "compression": {"enableCompression": True, "threshold": 0, "level": 9},
                "performance": {"maxConcurrentLoads": 3, "loadTimeout": 2000},
                "evictionStrategy": "LFU",
            }
        )
        assert result.is_valid

    def test_compression_level_range(self):
        """The compression level should stay within range."""
        result = validate_advanced_cache_config({"compression": {"level": 10}})
        assert result.errors == ["compression.level must be between 1 and 9"]

    def test_negative_threshold_only_matters_when_enabled(self):
        """A negative threshold should only matter when compression is on."""
        assert validate_advanced_cache_config({"compression": {"threshold": -1}}).is_valid
        assert not validate_advanced_cache_config(
            {"compression": {"enableCompression": True, "threshold": -1}}
        ).is_valid

    def test_compression_type_error_reported_once(self):
        """A compression type error should be reported once."""
        result = validate_advanced_cache_config({"compression": {"level": "high"}})
        assert result.errors == ["Config value at 'compression.level' must be int; got str"]

    def test_max_concurrent_loads_minimum(self):
        """max concurrent loads should be at least one."""
        result = validate_advanced_cache_config({"performance": {"maxConcurrentLoads": 0}})
        assert result.errors == ["performance.maxConcurrentLoads must be at least 1"]

    def test_short_load_timeout_warns(self):
        """A short load timeout should only warn."""
        result = validate_advanced_cache_config({"performance": {"loadTimeout": 500}})
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_unknown_strategy(self):
        """An unknown eviction strategy should be rejected."""
        result = validate_advanced_cache_config({"evictionStrategy": "random"})
        assert not result.is_valid
        assert "evictionStrategy must be one of" in result.errors[0]

    def test_base_rules_apply(self):
        """Advanced validation should include the base rules."""
        assert validate_advanced_cache_config({"maxSize": 5}).errors == [
            "maxSize must be at least 10"
        ]


@pytest.mark.unit
class TestValidatePreloadConfig:
    """Test preload rules."""

    def test_valid(self):
        """A valid preload config should pass."""
        result = validate_preload_config(
            {
                "enablePreload": True,
                "preloadLocales": ["en", "zh"],
                "batchSize": 5,
                "delayBetweenBatches": 0,
                "timeout": 5000,
                "namespaces": ["common"],
            }
        )
        assert result.is_valid

    @pytest.mark.parametrize(
        "partial",
        [
            {"batchSize": 0},
            {"batchSize": 1.5},
            {"timeout": 0},
            {"delayBetweenBatches": -1},
            {"enablePreload": 1},
            {"preloadLocales": "en"},
            {"preloadLocales": ["en", ""]},
            {"namespaces": [1]},
        ],
    )
    def test_invalid(self, partial):
        """An invalid preload config should report errors."""
        assert not validate_preload_config(partial).is_valid


@pytest.mark.unit
class TestValidateHealthConfig:
    """Test health threshold rules."""

    def test_valid(self):
        """Valid health thresholds should pass."""
        assert validate_health_config({"enabled": True, "min_hit_rate": 0.5}).is_valid

    def test_rate_out_of_range(self):
        """Rates outside zero to one should be rejected."""
        assert validate_health_config({"max_error_rate": 1.5}).errors == [
            "health.max_error_rate must be between 0 and 1"
        ]

    def test_interval_must_be_positive(self):
        """The check interval must be positive."""
        assert not validate_health_config({"interval_seconds": 0}).is_valid

    def test_capacity_strikes_minimum(self):
        """Capacity strikes should be at least one."""
        assert not validate_health_config({"capacity_strikes": 0}).is_valid


@pytest.mark.unit
class TestConfigValidation:
    """Test the result object."""

    def test_merge(self):
        """merge should combine errors and warnings."""
        merged = ConfigValidation(errors=["a"]).merge(ConfigValidation(errors=["b"], warnings=["w"]))
        assert merged.errors == ["a", "b"]
        assert merged.warnings == ["w"]

    def test_raise_if_invalid(self):
        """raise_if_invalid should raise with the first error."""
        with pytest.raises(CacheValidationError) as exc_info:
            ConfigValidation(errors=["bad"]).raise_if_invalid("Invalid")
        assert exc_info.value.details["errors"] == ["bad"]

    def test_raise_if_invalid_noop_when_valid(self):
        """raise_if_invalid should not raise for a valid result."""
        ConfigValidation(warnings=["w"]).raise_if_invalid("Invalid")
