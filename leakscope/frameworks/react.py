#=============================================================================
# File        : leakscope/frameworks/react.py
# Project     : LeakScope v1.0
# Component   : React Integration - Component Lifecycle Leak Detection
# Description : Mount/unmount aware leak detection for React components
#               • Mount snapshots and weakly held component instances
#               • Hook call registry (cleanup flag, dependency list)
#               • Unmount diff restricted to the component's objects
#               • React specific leak subtypes and hook diagnostics
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, asyncio, weakref
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: logging, time, weakref, dataclasses, enum, typing, config,
#               core, report
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_react_lifecycle.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
import time
import weakref
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import LeakPatternConfig, ReactLeakDetectionConfig
from ..core import LeakDetector, get_default_detector
from ..report import LeakDetectionResult, LeakInfo, LeakPatternType

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


class FrameworkLeakType(Enum):
    """React specific refinement of a detected leak."""
    HOOK_CLEANUP_MISSING = "hook-cleanup-missing"
    EVENT_LISTENER_AFTER_UNMOUNT = "event-listener-after-unmount"
    TIMER_AFTER_UNMOUNT = "timer-after-unmount"
    CLOSURE_CAPTURE = "closure-capture"
    CONTEXT_SUBSCRIPTION_UNCLEARED = "context-subscription-uncleared"
    DEPENDENCY_ARRAY_INCOMPLETE = "dependency-array-incomplete"
    GLOBAL_STORE_RETAINED = "global-store-retained"
    STATE_UPDATE_AFTER_UNMOUNT = "state-update-after-unmount"


_DESCRIPTIONS = {
    FrameworkLeakType.HOOK_CLEANUP_MISSING:
        "A useEffect has no cleanup function, so its side effects keep running after unmount",
    FrameworkLeakType.EVENT_LISTENER_AFTER_UNMOUNT:
        "An event listener was not removed when the component unmounted",
    FrameworkLeakType.TIMER_AFTER_UNMOUNT:
        "A timer kept running after the component unmounted",
    FrameworkLeakType.CLOSURE_CAPTURE:
        "A hook closure captured references that keep memory alive",
    FrameworkLeakType.CONTEXT_SUBSCRIPTION_UNCLEARED:
        "A context subscription was not released when the component unmounted",
    FrameworkLeakType.DEPENDENCY_ARRAY_INCOMPLETE:
        "A useEffect/useMemo/useCallback dependency array is incomplete",
    FrameworkLeakType.GLOBAL_STORE_RETAINED:
        "A global store (such as Redux) still references the component",
    FrameworkLeakType.STATE_UPDATE_AFTER_UNMOUNT:
        "The component tried to update state after it unmounted",
}


def get_framework_leak_type_description(leak_type: FrameworkLeakType) -> str:
    return _DESCRIPTIONS.get(leak_type, "Unknown React specific leak type")


@dataclass(frozen=True)
class HookCall:
    hook_name: str
    has_cleanup: bool
    deps: Optional[Tuple[Any, ...]] = None


@dataclass
class ComponentLifecycle:
    """Mutable lifecycle record for one mounted component id."""
    component_id: str
    component_name: str
    mounted: bool = True
    mount_time: float = field(default_factory=time.time)
    unmount_time: Optional[float] = None
    hook_calls: List[HookCall] = field(default_factory=list)

    def find_hook(self, hook_name: Any) -> Optional[HookCall]:
        return next((h for h in self.hook_calls if h.hook_name == hook_name), None)


@dataclass(frozen=True)
class HookLeak:
    hook_name: str
    leak_type: FrameworkLeakType
    cleanup_missing: bool = False
    dep_array_issue: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hookName': self.hook_name,
            'leakType': self.leak_type.value,
            'cleanupMissing': self.cleanup_missing,
            'depArrayIssue': self.dep_array_issue,
        }


@dataclass(frozen=True)
class ReactLeakDetectionResult(LeakDetectionResult):
    """Detection result enriched with React lifecycle findings."""
    framework_leak_types: Tuple[FrameworkLeakType, ...] = ()
    hook_leaks: Tuple[HookLeak, ...] = ()
    mount_time: Optional[float] = None
    unmount_time: Optional[float] = None

    @classmethod
    def from_result(cls, result: LeakDetectionResult, **extra) -> "ReactLeakDetectionResult":
        base = {f.name: getattr(result, f.name) for f in fields(LeakDetectionResult) if f.init}
        base.update(extra)
        return cls(**base)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            'reactLeakTypes': [t.value for t in self.framework_leak_types],
            'hookLeaks': [h.to_dict() for h in self.hook_leaks],
            'mountTime': self.mount_time,
            'unmountTime': self.unmount_time,
        })
        return data


# --------- Subtype analysis ---------

def _deps_incomplete(captured: Any, deps: Optional[Sequence[Any]]) -> bool:
    """True when a captured variable is missing from the dependency list."""
    if deps is None or not isinstance(captured, (list, tuple)):
        return False
    return any(name not in deps for name in captured)


def _created_before_unmount(leak: LeakInfo, lifecycle: Optional[ComponentLifecycle]) -> bool:
    if lifecycle is None or lifecycle.unmount_time is None:
        return False
    created = leak.object.created_at
    return created is not None and created < lifecycle.unmount_time


def analyze_framework_leak_types(leaks: Sequence[LeakInfo],
                                 lifecycle: Optional[ComponentLifecycle] = None,
                                 config: Optional[ReactLeakDetectionConfig] = None) -> List[FrameworkLeakType]:
    """Cross-reference leaks with lifecycle and hook records. Order of first detection."""
    config = config or ReactLeakDetectionConfig()
    found: Dict[FrameworkLeakType, None] = {}

    for leak in leaks:
        obj = leak.object
        hook_name = obj.meta("reactHook")
        hook = lifecycle.find_hook(hook_name) if (lifecycle is not None and hook_name) else None

        if config.detect_hook_leaks and leak.pattern is LeakPatternType.CLOSURE_CYCLE and hook_name:
            if hook is not None and not hook.has_cleanup:
                found[FrameworkLeakType.HOOK_CLEANUP_MISSING] = None
            found[FrameworkLeakType.CLOSURE_CAPTURE] = None
            if hook is not None and _deps_incomplete(obj.meta("capturedVariables"), hook.deps):
                found[FrameworkLeakType.DEPENDENCY_ARRAY_INCOMPLETE] = None

        if leak.pattern is LeakPatternType.EVENT_LISTENER and _created_before_unmount(leak, lifecycle):
            found[FrameworkLeakType.EVENT_LISTENER_AFTER_UNMOUNT] = None

        if leak.pattern is LeakPatternType.TIMER_REFERENCE and _created_before_unmount(leak, lifecycle):
            found[FrameworkLeakType.TIMER_AFTER_UNMOUNT] = None

        if config.detect_context_leaks and leak.pattern is LeakPatternType.CONTEXT_REFERENCE:
            found[FrameworkLeakType.CONTEXT_SUBSCRIPTION_UNCLEARED] = None

        if leak.pattern is LeakPatternType.ZOMBIE_COMPONENT and obj.meta("stateUpdateAfterUnmount"):
            found[FrameworkLeakType.STATE_UPDATE_AFTER_UNMOUNT] = None

        if config.detect_store_leaks and (
                leak.pattern is LeakPatternType.STORE_REFERENCE or obj.meta("globalStore")):
            found[FrameworkLeakType.GLOBAL_STORE_RETAINED] = None

    return list(found)


def analyze_hook_leaks(hook_calls: Sequence[HookCall], leaks: Sequence[LeakInfo]) -> List[HookLeak]:
    """Per hook call, report a missing cleanup or incomplete deps when a leak points at it."""
    hook_leaks: List[HookLeak] = []
    for hook in hook_calls:
        related = [leak for leak in leaks if leak.object.meta("reactHook") == hook.hook_name]
        if not related:
            continue
        if not hook.has_cleanup:
            hook_leaks.append(HookLeak(hook.hook_name, FrameworkLeakType.HOOK_CLEANUP_MISSING,
                                       cleanup_missing=True))
        with_captures = next((l for l in related if l.object.meta("capturedVariables")), None)
        if with_captures is not None and _deps_incomplete(
                with_captures.object.meta("capturedVariables"), hook.deps):
            hook_leaks.append(HookLeak(hook.hook_name, FrameworkLeakType.DEPENDENCY_ARRAY_INCOMPLETE,
                                       dep_array_issue=True))
    return hook_leaks


# --------- Lifecycle tracking ---------

class ReactLeakDetector:
    """
    Tracks React component lifecycles and checks each unmount for leaks.

    State (mount snapshots, instances, lifecycle records) is shared and
    unlocked; serialise mount/unmount calls per component id.
    """

    def __init__(self,
                 detector: Optional[LeakDetector] = None,
                 config: Optional[ReactLeakDetectionConfig] = None,
                 pattern_config: Optional[LeakPatternConfig] = None) -> None:
        self.detector = detector if detector is not None else get_default_detector()
        self.config = config or ReactLeakDetectionConfig()
        self.pattern_config = pattern_config
        self._mount_snapshots: Dict[str, str] = {}
        self._instances: Dict[str, weakref.ref] = {}
        self._lifecycle: Dict[str, ComponentLifecycle] = {}
        self.results: List[ReactLeakDetectionResult] = []

    async def register_component_mount(self,
                                       component_id: str,
                                       component_name: str,
                                       instance: Any = None) -> Optional[str]:
        """Record a mount; returns the mount snapshot id when one was taken."""
        if instance is not None:
            try:
                self._instances[component_id] = weakref.ref(instance)
            except TypeError:
                _logger.debug(f"Instance of {component_name} cannot be weakly referenced; not tracked")

        self._lifecycle[component_id] = ComponentLifecycle(component_id, component_name)

        if not self.config.auto_snapshot_on_mount:
            return None
        snapshot = await self.detector.store.create(f"component-{component_name}-mount-{component_id}")
        self._mount_snapshots[component_id] = snapshot.id
        return snapshot.id

    async def register_component_unmount(self,
                                         component_id: str,
                                         component_name: str) -> Optional[ReactLeakDetectionResult]:
        """
        Record an unmount and diff it against the mount snapshot.

        Returns None when unmount snapshots are disabled or no mount
        snapshot exists for the id.
        """
        lifecycle = self._lifecycle.get(component_id)
        if lifecycle is not None:
            lifecycle.mounted = False
            lifecycle.unmount_time = time.time()

        if not self.config.auto_snapshot_on_unmount:
            return None
        mount_snapshot_id = self._mount_snapshots.pop(component_id, None)
        if mount_snapshot_id is None:
            _logger.debug(f"No mount snapshot for {component_name} ({component_id})")
            return None

        await self.detector.wait_for_collection(self.config)
        unmount_snapshot = await self.detector.store.create(
            f"component-{component_name}-unmount-{component_id}")
        self._instances.pop(component_id, None)

        result = self.detector.compare_component(
            mount_snapshot_id, unmount_snapshot.id, component_name, component_id,
            self.config, self.pattern_config)
        if result is None:
            return None

        enriched = self._enrich(result, lifecycle, self.config)
        self.results.append(enriched)
        return enriched

    def register_hook_call(self,
                           component_id: str,
                           hook_name: str,
                           has_cleanup: bool,
                           deps: Optional[Sequence[Any]] = None) -> bool:
        """Attach a hook call to a mounted component; False if the id is unknown."""
        lifecycle = self._lifecycle.get(component_id)
        if lifecycle is None:
            return False
        lifecycle.hook_calls.append(
            HookCall(hook_name, has_cleanup, tuple(deps) if deps is not None else None))
        return True

    async def detect_react_component_leak(self,
                                          component_name: str,
                                          component_path: Optional[str] = None,
                                          config: Optional[ReactLeakDetectionConfig] = None,
                                          pattern_config: Optional[LeakPatternConfig] = None
                                          ) -> ReactLeakDetectionResult:
        """Generic component detection plus React subtype analysis."""
        config = config or self.config
        result = await self.detector.detect_component_leak(
            component_name, component_path, config, pattern_config or self.pattern_config)
        return self._enrich(result, self.find_lifecycle(component_name), config)

    def _enrich(self,
                result: LeakDetectionResult,
                lifecycle: Optional[ComponentLifecycle],
                config: ReactLeakDetectionConfig) -> ReactLeakDetectionResult:
        leak_types = analyze_framework_leak_types(result.leaks, lifecycle, config)
        hook_leaks: List[HookLeak] = []
        if lifecycle is not None and lifecycle.hook_calls and getattr(config, "detect_hook_leaks", True):
            hook_leaks = analyze_hook_leaks(lifecycle.hook_calls, result.leaks)
        return ReactLeakDetectionResult.from_result(
            result,
            framework_leak_types=tuple(leak_types),
            hook_leaks=tuple(hook_leaks),
            mount_time=lifecycle.mount_time if lifecycle is not None else None,
            unmount_time=lifecycle.unmount_time if lifecycle is not None else None,
        )

    def find_lifecycle(self, component_name: str) -> Optional[ComponentLifecycle]:
        """Most relevant record for a component name: prefer ones with hooks, then newest."""
        records = [l for l in self._lifecycle.values() if l.component_name == component_name]
        if not records:
            return None
        return max(records, key=lambda l: (bool(l.hook_calls), l.mount_time))

    def get_lifecycle(self, component_id: str) -> Optional[ComponentLifecycle]:
        return self._lifecycle.get(component_id)

    def is_instance_alive(self, component_id: str) -> Optional[bool]:
        """None when the instance was never tracked or its tracking ended."""
        ref = self._instances.get(component_id)
        if ref is None:
            return None
        return ref() is not None

    def reset(self) -> None:
        """Forget every mount snapshot, instance and lifecycle record."""
        self._mount_snapshots.clear()
        self._instances.clear()
        self._lifecycle.clear()
        self.results.clear()


# Global instance for convenience
_default_react_detector: Optional[ReactLeakDetector] = None


def get_react_detector() -> ReactLeakDetector:
    global _default_react_detector
    if _default_react_detector is None:
        _default_react_detector = ReactLeakDetector()
    return _default_react_detector


def reset_react_detector() -> None:
    global _default_react_detector
    _default_react_detector = None
