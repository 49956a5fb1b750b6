#=============================================================================
# File        : tests/test_config.py
# Project     : LeakScope v1.0
# Component   : Configuration Test Suite
# Description : Config defaults, validation and environment overrides
#               • Clamping, coercion and from_env overlays
#               • First-pass size bands and result helpers
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-08-19
#=============================================================================

"""
Tests for configuration defaults, validation, env overrides and result helpers.
"""

import pytest

from leakscope.config import (
    AnalyzerConfig,
    Framework,
    LeakDetectionConfig,
    LeakPatternConfig,
    LeakThresholds,
    ReactLeakDetectionConfig,
    ReferenceChainConfig,
)
from leakscope.detectors.heuristics import build_leak_info, determine_leak_pattern
from leakscope.report import LeakDetectionResult, LeakPatternType, LeakSeverity, format_bytes
from leakscope.snapshot import MemoryObjectType

from builders import obj


class TestLeakDetectionConfig:
    """Defaults, clamping and environment overrides."""

    def test_defaults(self):
        config = LeakDetectionConfig()
        assert config.scan_interval_s == 2.0
        assert config.scan_count == 1
        assert config.force_gc is False
        assert config.framework is None
        assert config.severity_threshold is LeakSeverity.LOW
        assert config.size_threshold == 50 * 1024
        assert config.growth_rate_threshold == pytest.approx(0.1)

    def test_react_defaults(self):
        config = ReactLeakDetectionConfig()
        assert config.scan_interval_s == 1.0
        assert config.force_gc is True
        assert config.framework is Framework.REACT
        assert config.size_threshold == 10 * 1024
        assert config.scan_count == 1
        assert config.auto_snapshot_on_mount and config.auto_snapshot_on_unmount

    def test_values_are_clamped_and_coerced(self):
        config = LeakDetectionConfig(scan_interval_s=-3, scan_count=0, size_threshold=-1,
                                     framework="Vue", severity_threshold="high")
        assert config.scan_interval_s == 0.0
        assert config.scan_count == 1
        assert config.size_threshold == 0
        assert config.framework is Framework.VUE
        assert config.severity_threshold is LeakSeverity.HIGH

    def test_unknown_framework_and_severity_are_rejected(self):
        with pytest.raises(ValueError):
            LeakDetectionConfig(framework="backbone")
        with pytest.raises(ValueError):
            LeakDetectionConfig(severity_threshold="dire")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LEAKSCOPE_SCAN_INTERVAL_S", "0.25")
        monkeypatch.setenv("LEAKSCOPE_SCAN_COUNT", "3")
        monkeypatch.setenv("LEAKSCOPE_FORCE_GC", "1")
        monkeypatch.setenv("LEAKSCOPE_FRAMEWORK", "svelte")
        monkeypatch.setenv("LEAKSCOPE_SEVERITY_THRESHOLD", "HIGH")
        monkeypatch.setenv("LEAKSCOPE_SIZE_THRESHOLD", "not-a-number")

        config = LeakDetectionConfig.from_env()

        assert config.scan_interval_s == pytest.approx(0.25)
        assert config.scan_count == 3
        assert config.force_gc is True
        assert config.framework is Framework.SVELTE
        assert config.severity_threshold is LeakSeverity.HIGH
        assert config.size_threshold == 50 * 1024

    def test_from_env_keeps_base_values(self, monkeypatch):
        monkeypatch.delenv("LEAKSCOPE_FORCE_GC", raising=False)
        monkeypatch.delenv("LEAKSCOPE_FRAMEWORK", raising=False)
        base = ReactLeakDetectionConfig()

        config = LeakDetectionConfig.from_env(base)

        assert isinstance(config, ReactLeakDetectionConfig)
        assert config.force_gc is True
        assert config.framework is Framework.REACT

    def test_merge_is_immutable(self):
        config = LeakDetectionConfig()
        merged = config.merge(scan_count=4)
        assert merged.scan_count == 4
        assert config.scan_count == 1

    def test_pattern_toggles(self):
        config = LeakDetectionConfig(detect_timers=False)
        assert not config.pattern_enabled(LeakPatternType.TIMER_REFERENCE)
        assert config.pattern_enabled(LeakPatternType.DETACHED_DOM)
        assert config.pattern_enabled(LeakPatternType.LARGE_CACHE)


class TestOtherConfigs:
    """Tracer, classifier and analyzer settings."""

    def test_reference_chain_bounds(self):
        assert ReferenceChainConfig().max_path_length == 50
        assert ReferenceChainConfig().max_paths == 10
        with pytest.raises(ValueError):
            ReferenceChainConfig(max_paths=0)
        with pytest.raises(ValueError):
            ReferenceChainConfig(max_path_length=0)

    def test_pattern_config_validation(self):
        config = LeakPatternConfig(enabled_pattern_types=["detached-dom", LeakPatternType.DETACHED_DOM],
                                   min_severity="medium")
        assert config.enabled_pattern_types == (LeakPatternType.DETACHED_DOM,)
        assert config.min_severity is LeakSeverity.MEDIUM
        with pytest.raises(ValueError):
            LeakPatternConfig(min_confidence=1.5)
        with pytest.raises(ValueError):
            LeakPatternConfig(feature_threshold_ratio=0)

    def test_thresholds_validation(self):
        assert LeakThresholds().merge(added_min_size=1).added_min_size == 1
        with pytest.raises(ValueError):
            LeakThresholds(changed_min_rate=-0.1)

    def test_analyzer_detection_config_follows_framework(self):
        assert isinstance(AnalyzerConfig().detection_config(), ReactLeakDetectionConfig)

        vue = AnalyzerConfig(framework="vue").detection_config()
        assert type(vue) is LeakDetectionConfig
        assert vue.framework is Framework.VUE

        explicit = LeakDetectionConfig(scan_count=2)
        assert AnalyzerConfig(leak_detection=explicit).detection_config() is explicit


class TestHeuristicsAndResults:
    """First-pass size bands and result helpers."""

    @pytest.mark.parametrize("type_, size, expected", [
        (MemoryObjectType.DOM_NODE, 20000, (LeakPatternType.DETACHED_DOM, LeakSeverity.HIGH)),
        (MemoryObjectType.DOM_NODE, 5000, (LeakPatternType.DETACHED_DOM, LeakSeverity.MEDIUM)),
        (MemoryObjectType.COMPONENT_INSTANCE, 60000, (LeakPatternType.ZOMBIE_COMPONENT, LeakSeverity.CRITICAL)),
        (MemoryObjectType.COMPONENT_INSTANCE, 100, (LeakPatternType.ZOMBIE_COMPONENT, LeakSeverity.HIGH)),
        (MemoryObjectType.EVENT_LISTENER, 100, (LeakPatternType.EVENT_LISTENER, LeakSeverity.MEDIUM)),
        (MemoryObjectType.TIMER, 100, (LeakPatternType.TIMER_REFERENCE, LeakSeverity.MEDIUM)),
        (MemoryObjectType.CLOSURE, 30000, (LeakPatternType.CLOSURE_CYCLE, LeakSeverity.HIGH)),
        (MemoryObjectType.PROMISE, 100, (LeakPatternType.PROMISE_CHAIN, LeakSeverity.MEDIUM)),
        (MemoryObjectType.MAP, 200000, (LeakPatternType.LARGE_CACHE, LeakSeverity.MEDIUM)),
        (MemoryObjectType.OBJECT, 60000, (LeakPatternType.OTHER, LeakSeverity.HIGH)),
        (MemoryObjectType.OBJECT, 600, (LeakPatternType.OTHER, LeakSeverity.LOW)),
    ])
    def test_first_pass_bands(self, type_, size, expected):
        assert determine_leak_pattern(obj("x", type=type_, size=size)) == expected

    def test_named_context_and_store_objects(self):
        assert determine_leak_pattern(obj("c", name="ThemeProvider"))[0] is LeakPatternType.CONTEXT_REFERENCE
        assert determine_leak_pattern(obj("s", name="ReduxStore"))[0] is LeakPatternType.STORE_REFERENCE

    def test_empty_result_summary(self):
        result = LeakDetectionResult()
        assert result.has_leak is False
        assert result.summary() == "No memory leaks detected."

    def test_result_summary_and_filters(self):
        leaks = [
            build_leak_info(obj("a", size=2048), LeakPatternType.OTHER, LeakSeverity.CRITICAL),
            build_leak_info(obj("b", size=1024), LeakPatternType.TIMER_REFERENCE, LeakSeverity.LOW),
        ]
        result = LeakDetectionResult(leaks=leaks, memory_growth=4096)

        assert result.has_leak
        assert result.total_leaked_bytes == 3072
        assert [l.object.id for l in result.filter_by_severity(LeakSeverity.HIGH)] == ["a"]
        assert [l.object.id for l in result.filter_by_pattern(LeakPatternType.TIMER_REFERENCE)] == ["b"]
        assert "LeakScope Summary (2 leaks)" in result.summary()
        assert result.to_dict()["hasLeak"] is True
        assert '"memoryGrowth": 4096' in result.to_json()

    def test_negative_duration_is_rejected(self):
        with pytest.raises(ValueError):
            LeakDetectionResult(duration_ms=-1)

    @pytest.mark.parametrize("size, expected", [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (-2048, "-2 KB"),
    ])
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected
