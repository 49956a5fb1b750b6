#=============================================================================
# File        : leakscope/config.py
# Project     : LeakScope v1.0
# Component   : Configuration - Detection, Tracing and Classifier Settings
# Description : Central configuration with validation, env overrides, and
#               named thresholds for the leak detection engine.
#               • Validation & coercion for safe values
#               • Environment variable overrides for ops
#               • Overridable heuristic thresholds
#               • Immutable runtime config
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, Enums
# Standards   : PEP 8, Type Hints, Immutable Configuration
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: dataclasses, typing, os, enum, report
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_config.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple, Union

from .report import LeakSeverity, LeakPatternType


class Framework(Enum):
    """Frontend frameworks a leak feature or detection session can target."""
    REACT = "react"
    VUE = "vue"
    SVELTE = "svelte"
    ANGULAR = "angular"
    NODEJS = "nodejs"
    VANILLA = "vanilla"


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None: return default
    return v.strip().lower() in {"1", "true", "yes", "on"}

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None: return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None: return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    if v is None or not v.strip(): return default
    return v.strip().lower()


def coerce_framework(value: Union[Framework, str, None]) -> Optional[Framework]:
    """Accept a Framework, its string value, or None."""
    if value is None or isinstance(value, Framework):
        return value
    try:
        return Framework(str(value).lower())
    except ValueError:
        raise ValueError(f"Unknown framework '{value}'") from None


def coerce_severity(value: Union[LeakSeverity, str]) -> LeakSeverity:
    if isinstance(value, LeakSeverity):
        return value
    try:
        return LeakSeverity(str(value).lower())
    except ValueError:
        raise ValueError(f"Unknown severity '{value}'") from None


@dataclass(frozen=True)
class LeakThresholds:
    """
    Tunable size and growth bands used by the heuristics.

    Sizes are in bytes, rates are fractions (0.5 == 50%).
    """
    # Diff engine candidate selection
    added_min_size: int = 10000
    changed_min_delta: int = 5000
    changed_min_rate: float = 0.5

    # First-pass severity bands
    dom_high_size: int = 10000
    component_critical_size: int = 50000
    closure_high_size: int = 20000
    collection_large_size: int = 100000
    other_high_size: int = 50000

    # Classifier features
    large_leak_size: int = 100 * 1024
    large_cache_size: int = 1024 * 1024
    large_cache_entries: int = 100
    growing_collection_rate: float = 0.2
    promise_chain_length: int = 5

    # Reference chain simplification
    key_node_size: int = 10 * 1024
    simplify_min_hops: int = 3
    simplify_max_gap: int = 10

    def __post_init__(self):
        for name in ("changed_min_rate", "growing_collection_rate"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.simplify_max_gap < 2:
            raise ValueError("simplify_max_gap must be at least 2")

    def merge(self, **overrides) -> "LeakThresholds":
        return replace(self, **overrides)


DEFAULT_THRESHOLDS = LeakThresholds()


@dataclass(frozen=True)
class LeakDetectionConfig:
    """
    Snapshot/diff detection session settings.

    Safety defaults:
      - no forced garbage collection
      - every leak pattern enabled
      - one wait/snapshot round per session
    """
    scan_interval_s: float = 2.0
    scan_count: int = 1
    force_gc: bool = False
    framework: Optional[Framework] = None
    severity_threshold: LeakSeverity = LeakSeverity.LOW
    size_threshold: int = 50 * 1024
    growth_rate_threshold: float = 0.1

    # Per-pattern toggles
    detect_detached_dom: bool = True
    detect_zombie_components: bool = True
    detect_event_listeners: bool = True
    detect_timers: bool = True
    detect_closure_cycles: bool = True

    thresholds: LeakThresholds = DEFAULT_THRESHOLDS

    def __post_init__(self):
        # Validation (runs even when frozen via object.__setattr__)
        object.__setattr__(self, "scan_interval_s", max(0.0, float(self.scan_interval_s)))
        object.__setattr__(self, "scan_count", max(1, int(self.scan_count)))
        object.__setattr__(self, "size_threshold", max(0, int(self.size_threshold)))
        object.__setattr__(self, "growth_rate_threshold", max(0.0, float(self.growth_rate_threshold)))
        object.__setattr__(self, "framework", coerce_framework(self.framework))
        object.__setattr__(self, "severity_threshold", coerce_severity(self.severity_threshold))

    def pattern_enabled(self, pattern: LeakPatternType) -> bool:
        """Check the per-pattern toggle; patterns without a toggle are always on."""
        toggle = _PATTERN_TOGGLES.get(pattern)
        return True if toggle is None else bool(getattr(self, toggle))

    # --------- Factory helpers ---------

    @classmethod
    def from_env(cls, base: Optional["LeakDetectionConfig"] = None) -> "LeakDetectionConfig":
        """
        Build config from environment variables, overlaying a base config.
        Supported envs:
          LEAKSCOPE_SCAN_INTERVAL_S
          LEAKSCOPE_SCAN_COUNT
          LEAKSCOPE_FORCE_GC (0|1)
          LEAKSCOPE_FRAMEWORK (react|vue|svelte|angular|nodejs|vanilla)
          LEAKSCOPE_SEVERITY_THRESHOLD (critical|high|medium|low|info)
          LEAKSCOPE_SIZE_THRESHOLD
          LEAKSCOPE_GROWTH_RATE_THRESHOLD
        """
        base = base or cls()
        framework = _env_str("LEAKSCOPE_FRAMEWORK", None)
        return replace(
            base,
            scan_interval_s=_env_float("LEAKSCOPE_SCAN_INTERVAL_S", base.scan_interval_s),
            scan_count=_env_int("LEAKSCOPE_SCAN_COUNT", base.scan_count),
            force_gc=_env_bool("LEAKSCOPE_FORCE_GC", base.force_gc),
            framework=framework or base.framework,
            severity_threshold=_env_str("LEAKSCOPE_SEVERITY_THRESHOLD", None) or base.severity_threshold,
            size_threshold=_env_int("LEAKSCOPE_SIZE_THRESHOLD", base.size_threshold),
            growth_rate_threshold=_env_float("LEAKSCOPE_GROWTH_RATE_THRESHOLD", base.growth_rate_threshold),
        )

    def merge(self, **overrides) -> "LeakDetectionConfig":
        """Return a copy with provided fields overridden (immutably)."""
        return replace(self, **overrides)


_PATTERN_TOGGLES = {
    LeakPatternType.DETACHED_DOM: "detect_detached_dom",
    LeakPatternType.ZOMBIE_COMPONENT: "detect_zombie_components",
    LeakPatternType.EVENT_LISTENER: "detect_event_listeners",
    LeakPatternType.TIMER_REFERENCE: "detect_timers",
    LeakPatternType.CLOSURE_CYCLE: "detect_closure_cycles",
}


@dataclass(frozen=True)
class ReactLeakDetectionConfig(LeakDetectionConfig):
    """React component lifecycle settings; tighter bands than the generic defaults."""
    scan_interval_s: float = 1.0
    force_gc: bool = True
    framework: Optional[Framework] = Framework.REACT
    size_threshold: int = 10 * 1024
    growth_rate_threshold: float = 0.05

    detect_hook_leaks: bool = True
    detect_context_leaks: bool = True
    detect_store_leaks: bool = True
    auto_snapshot_on_mount: bool = True
    auto_snapshot_on_unmount: bool = True


@dataclass(frozen=True)
class ReferenceChainConfig:
    """Reference chain tracer bounds and output toggles."""
    max_path_length: int = 50
    max_paths: int = 10
    simplify_paths: bool = True
    identify_key_nodes: bool = True
    generate_abstract_path: bool = True
    generate_fix_suggestions: bool = True
    thresholds: LeakThresholds = DEFAULT_THRESHOLDS

    def __post_init__(self):
        if self.max_path_length < 1:
            raise ValueError(f"max_path_length must be positive, got {self.max_path_length}")
        if self.max_paths < 1:
            raise ValueError(f"max_paths must be positive, got {self.max_paths}")

    def merge(self, **overrides) -> "ReferenceChainConfig":
        return replace(self, **overrides)


@dataclass(frozen=True)
class LeakPatternConfig:
    """Leak pattern classifier settings."""
    min_confidence: float = 0.6
    enabled_pattern_types: Optional[Tuple[LeakPatternType, ...]] = None
    min_severity: LeakSeverity = LeakSeverity.LOW
    framework: Optional[Framework] = Framework.REACT
    collect_stats: bool = True
    feature_threshold_ratio: float = 0.25

    def __post_init__(self):
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be between 0.0 and 1.0, got {self.min_confidence}")
        if self.feature_threshold_ratio <= 0:
            raise ValueError("feature_threshold_ratio must be positive")
        if self.enabled_pattern_types is not None:
            types = tuple(dict.fromkeys(LeakPatternType(p) for p in self.enabled_pattern_types))
            object.__setattr__(self, "enabled_pattern_types", types)
        object.__setattr__(self, "min_severity", coerce_severity(self.min_severity))
        object.__setattr__(self, "framework", coerce_framework(self.framework))

    def merge(self, **overrides) -> "LeakPatternConfig":
        return replace(self, **overrides)


@dataclass(frozen=True)
class AnalyzerConfig:
    """Top level analysis settings: what to scan and how to post-process it."""
    framework: Framework = Framework.REACT
    component_name: Optional[str] = None
    component_path: Optional[str] = None
    auto_snapshot: bool = True
    generate_report: bool = True
    leak_detection: Optional[LeakDetectionConfig] = None
    reference_chain: ReferenceChainConfig = field(default_factory=ReferenceChainConfig)
    leak_pattern: LeakPatternConfig = field(default_factory=LeakPatternConfig)

    def __post_init__(self):
        object.__setattr__(self, "framework", coerce_framework(self.framework))

    def detection_config(self) -> LeakDetectionConfig:
        """Detection settings for the selected framework when none were given."""
        if self.leak_detection is not None:
            return self.leak_detection
        if self.framework is Framework.REACT:
            return ReactLeakDetectionConfig()
        return LeakDetectionConfig(framework=self.framework)

    def merge(self, **overrides) -> "AnalyzerConfig":
        return replace(self, **overrides)
