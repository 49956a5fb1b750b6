#=============================================================================
# File        : leakscope/core.py
# Project     : LeakScope v1.0
# Component   : Core Orchestrator - Detection Session Engine
# Description : Primary orchestration layer for snapshot based detection
#               • before/wait/gc/after/diff/classify session pipeline
#               • Component scoped detection
#               • First-pass heuristics refined by the pattern classifier
#               • Session phase tracking and global default detector
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, asyncio
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: asyncio, inspect, logging, time, enum, typing, config,
#               report, snapshot, store, detectors
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_core_detection.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import LeakDetectionConfig, LeakPatternConfig
from .report import LeakDetectionResult, LeakInfo
from .snapshot import MemoryObject, MemoryObjectType, MemorySnapshot, SnapshotDiff
from .store import SnapshotStore, get_snapshot_store, reset_snapshot_store
from .detectors.heuristics import build_leak_info, determine_leak_pattern
from .detectors.patterns import LeakPatternClassifier, get_classifier, reset_classifier

# Configure safe logging defaults
_logger = logging.getLogger(__name__)
_logger.setLevel(logging.WARNING)  # Only WARN/ERROR by default

# Add console handler only if none exists
if not _logger.handlers and not logging.getLogger().handlers:
    _console_handler = logging.StreamHandler()
    _console_handler.setLevel(logging.WARNING)
    _formatter = logging.Formatter('[LeakScope] %(levelname)s: %(message)s')
    _console_handler.setFormatter(_formatter)
    _logger.addHandler(_console_handler)


class DetectionPhase(Enum):
    """States of one detection session, in the order they are entered."""
    IDLE = "idle"
    SNAPSHOTTING_BEFORE = "snapshotting-before"
    WAITING = "waiting"
    COLLECTING_GARBAGE = "collecting-garbage"
    SNAPSHOTTING_AFTER = "snapshotting-after"
    DIFFING = "diffing"
    CLASSIFYING = "classifying"
    DONE = "done"


def owned_by_component(obj: MemoryObject,
                       component_name: str,
                       component_id: Optional[str] = None) -> bool:
    """True when the object is the component itself or is tagged as owned by it."""
    if obj.component_name == component_name:
        return True
    if component_id is not None and obj.meta("componentId") == component_id:
        return True
    owner = obj.meta("owner")
    if isinstance(owner, Mapping):
        if component_id is not None and owner.get("componentId") == component_id:
            return True
        if owner.get("componentName") == component_name:
            return True
    return False


def is_component_instance(obj: MemoryObject,
                          component_name: str,
                          component_path: Optional[str] = None) -> bool:
    if obj.type is not MemoryObjectType.COMPONENT_INSTANCE:
        return False
    if obj.component_name != component_name:
        return False
    return component_path is None or obj.component_path == component_path


class LeakDetector:
    """
    Runs detection sessions against a snapshot store.

    One detector is a context object: it owns references to the store
    and classifier it uses, so tests and embedders can run isolated
    detectors side by side. Sessions are sequential; callers serialise
    concurrent sessions for the same component themselves.
    """

    def __init__(self,
                 store: Optional[SnapshotStore] = None,
                 classifier: Optional[LeakPatternClassifier] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
        self.store = store if store is not None else get_snapshot_store()
        self.classifier = classifier if classifier is not None else get_classifier()
        self._sleep = sleep
        self.phase = DetectionPhase.IDLE
        self.last_phases: List[DetectionPhase] = []
        self._sessions = 0

    # --------- Session plumbing ---------

    def _enter(self, phase: DetectionPhase) -> None:
        self.phase = phase
        self.last_phases.append(phase)
        _logger.debug(f"Detection phase -> {phase.value}")

    def _begin_session(self) -> float:
        self._sessions += 1
        self.last_phases = []
        self._enter(DetectionPhase.IDLE)
        return time.perf_counter()

    async def collect_garbage(self) -> bool:
        """Ask the provider for a collection. Never fails the session."""
        collect = getattr(self.store.provider, "collect_garbage", None)
        if collect is None:
            _logger.warning("Snapshot provider cannot force garbage collection; results may include "
                            "objects that are merely uncollected")
            return False
        try:
            outcome = collect()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            _logger.warning(f"Forced garbage collection failed: {e}")
            return False
        return True

    async def wait_for_collection(self, config: LeakDetectionConfig) -> None:
        """Fixed delay for the runtime's collector, then an optional forced GC."""
        self._enter(DetectionPhase.WAITING)
        await self._sleep(config.scan_interval_s)
        if config.force_gc:
            self._enter(DetectionPhase.COLLECTING_GARBAGE)
            await self.collect_garbage()

    async def _sample(self, label: str, config: LeakDetectionConfig):
        """
        Take the before snapshot then ``scan_count`` wait/after rounds.

        Returns (base, target, diff, candidates). Candidates are the leak
        candidates of the last diff that were also candidates in every
        earlier round.
        """
        self._enter(DetectionPhase.SNAPSHOTTING_BEFORE)
        base = await self.store.create(f"{label}-before")
        target = base
        diff: Optional[SnapshotDiff] = None
        persistent: Optional[set] = None

        for round_no in range(config.scan_count):
            await self.wait_for_collection(config)
            self._enter(DetectionPhase.SNAPSHOTTING_AFTER)
            suffix = "after" if config.scan_count == 1 else f"after-{round_no + 1}"
            target = await self.store.create(f"{label}-{suffix}")
            self._enter(DetectionPhase.DIFFING)
            diff = self.store.diff(base.id, target.id)
            if diff is None:
                return base, target, None, []
            ids = {obj.id for obj in diff.leak_candidates}
            persistent = ids if persistent is None else persistent & ids

        candidates = [obj for obj in diff.leak_candidates if obj.id in persistent]
        return base, target, diff, candidates

    def _first_pass(self,
                    candidates: Iterable[MemoryObject],
                    diff: SnapshotDiff,
                    config: LeakDetectionConfig,
                    apply_thresholds: bool = True) -> List[LeakInfo]:
        """Heuristic labels for candidates, filtered by toggles and thresholds."""
        leaks: List[LeakInfo] = []
        for obj in candidates:
            pattern, severity = determine_leak_pattern(obj, diff, config.thresholds)
            if not config.pattern_enabled(pattern):
                continue
            if apply_thresholds:
                if severity < config.severity_threshold or obj.size < config.size_threshold:
                    continue
                change = diff.change_for(obj.id)
                if change is not None and change.change_rate < config.growth_rate_threshold:
                    continue
            leaks.append(build_leak_info(obj, pattern, severity))
        return leaks

    def _pattern_config(self,
                        config: LeakDetectionConfig,
                        pattern_config: Optional[LeakPatternConfig]) -> LeakPatternConfig:
        pattern_config = pattern_config or LeakPatternConfig()
        if config.framework is not None and pattern_config.framework is not config.framework:
            pattern_config = pattern_config.merge(framework=config.framework)
        return pattern_config

    def _finish(self,
                leaks: Sequence[LeakInfo],
                base: MemorySnapshot,
                target: MemorySnapshot,
                diff: SnapshotDiff,
                config: LeakDetectionConfig,
                pattern_config: Optional[LeakPatternConfig],
                started: float) -> LeakDetectionResult:
        self._enter(DetectionPhase.CLASSIFYING)
        result = LeakDetectionResult(
            leaks=leaks,
            base_snapshot_id=base.id,
            target_snapshot_id=target.id,
            diff_id=diff.id,
            memory_growth=diff.total_size_delta,
            objects_scanned=base.object_count + target.object_count,
        )
        result = self.classifier.analyze_leak_patterns(
            result, target, diff, self._pattern_config(config, pattern_config))
        duration_ms = (time.perf_counter() - started) * 1000.0
        self._enter(DetectionPhase.DONE)
        if result.has_leak:
            _logger.info(f"Detected {result.leak_count} leak(s), growth {diff.total_size_delta} bytes")
        return replace(result, duration_ms=duration_ms)

    def _no_comparison(self, base: MemorySnapshot, target: MemorySnapshot,
                       started: float) -> LeakDetectionResult:
        _logger.warning(f"Snapshots {base.id} / {target.id} could not be compared")
        self._enter(DetectionPhase.DONE)
        return LeakDetectionResult(
            base_snapshot_id=base.id,
            target_snapshot_id=target.id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            objects_scanned=base.object_count + target.object_count,
        )

    # --------- Public API ---------

    async def detect_memory_leak(self,
                                 config: Optional[LeakDetectionConfig] = None,
                                 pattern_config: Optional[LeakPatternConfig] = None) -> LeakDetectionResult:
        """
        Run one detection session.

        before snapshot, wait ``scan_interval_s``, optional GC, after
        snapshot, diff, heuristic labels, classifier refinement.
        """
        config = config or LeakDetectionConfig()
        started = self._begin_session()

        base, target, diff, candidates = await self._sample(f"leak-detection-{self._sessions}", config)
        if diff is None:
            return self._no_comparison(base, target, started)

        leaks = self._first_pass(candidates, diff, config)
        return self._finish(leaks, base, target, diff, config, pattern_config, started)

    async def detect_component_leak(self,
                                    component_name: str,
                                    component_path: Optional[str] = None,
                                    config: Optional[LeakDetectionConfig] = None,
                                    pattern_config: Optional[LeakPatternConfig] = None) -> LeakDetectionResult:
        """Same session as detect_memory_leak, restricted to instances of one component."""
        config = config or LeakDetectionConfig()
        started = self._begin_session()

        base, target, diff, candidates = await self._sample(f"component-{component_name}", config)
        if diff is None:
            return self._no_comparison(base, target, started)

        candidates = [c for c in candidates if is_component_instance(c, component_name, component_path)]
        leaks = self._first_pass(candidates, diff, config, apply_thresholds=False)
        return self._finish(leaks, base, target, diff, config, pattern_config, started)

    def compare_component(self,
                          base_id: str,
                          target_id: str,
                          component_name: str,
                          component_id: Optional[str] = None,
                          config: Optional[LeakDetectionConfig] = None,
                          pattern_config: Optional[LeakPatternConfig] = None) -> Optional[LeakDetectionResult]:
        """
        Diff two stored snapshots, keeping candidates owned by one component.

        Used for mount/unmount comparisons. Returns None when either
        snapshot is gone.
        """
        config = config or LeakDetectionConfig()
        started = self._begin_session()
        self._enter(DetectionPhase.DIFFING)
        diff = self.store.diff(base_id, target_id)
        if diff is None:
            self._enter(DetectionPhase.DONE)
            return None

        base = self.store.get(base_id)
        target = self.store.get(target_id)
        candidates = [c for c in diff.leak_candidates
                      if owned_by_component(c, component_name, component_id)]
        leaks = self._first_pass(candidates, diff, config, apply_thresholds=False)
        return self._finish(leaks, base, target, diff, config, pattern_config, started)

    def get_status(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'sessions': self._sessions,
            'snapshots_stored': len(self.store),
            'provider': type(self.store.provider).__name__,
        }


# Global instance for convenience
_default_detector: Optional[LeakDetector] = None


def get_default_detector() -> LeakDetector:
    """Get the default global detector (global store + global classifier)."""
    global _default_detector
    if _default_detector is None:
        _default_detector = LeakDetector()
    return _default_detector


async def detect_memory_leak(config: Optional[LeakDetectionConfig] = None) -> LeakDetectionResult:
    return await get_default_detector().detect_memory_leak(config)


async def detect_component_leak(component_name: str,
                                component_path: Optional[str] = None,
                                config: Optional[LeakDetectionConfig] = None) -> LeakDetectionResult:
    return await get_default_detector().detect_component_leak(component_name, component_path, config)


def reset_global_state() -> None:
    """Reset global detector, store and classifier state (for testing)."""
    global _default_detector
    _default_detector = None
    reset_snapshot_store()
    reset_classifier()
