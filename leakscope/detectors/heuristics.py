#=============================================================================
# File        : leakscope/detectors/heuristics.py
# Project     : LeakScope v1.0
# Component   : First-Pass Heuristics - Type and Size Based Leak Labels
# Description : Cheap classification applied to every diff leak candidate
#               • Object type + size band to pattern and severity
#               • Per-pattern description and remediation text
#               • Framework inference from object metadata
#               • LeakInfo construction for candidates
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: typing, config, report, snapshot
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_core_detection.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

from typing import Dict, Optional, Tuple

from ..config import DEFAULT_THRESHOLDS, Framework, LeakThresholds, coerce_framework
from ..report import LeakInfo, LeakPatternType, LeakSeverity, format_bytes
from ..snapshot import MemoryObject, MemoryObjectType, SnapshotDiff

_COLLECTION_TYPES = (MemoryObjectType.ARRAY, MemoryObjectType.SET, MemoryObjectType.MAP)


def determine_leak_pattern(obj: MemoryObject,
                           diff: Optional[SnapshotDiff] = None,
                           thresholds: LeakThresholds = DEFAULT_THRESHOLDS
                           ) -> Tuple[LeakPatternType, LeakSeverity]:
    """Map an object to a (pattern, severity) pair from its type and size."""
    t = obj.type
    size = obj.size

    if t is MemoryObjectType.DOM_NODE:
        return (LeakPatternType.DETACHED_DOM,
                LeakSeverity.HIGH if size > thresholds.dom_high_size else LeakSeverity.MEDIUM)

    if t is MemoryObjectType.COMPONENT_INSTANCE:
        return (LeakPatternType.ZOMBIE_COMPONENT,
                LeakSeverity.CRITICAL if size > thresholds.component_critical_size else LeakSeverity.HIGH)

    if t is MemoryObjectType.EVENT_LISTENER:
        return LeakPatternType.EVENT_LISTENER, LeakSeverity.MEDIUM

    if t is MemoryObjectType.TIMER:
        return LeakPatternType.TIMER_REFERENCE, LeakSeverity.MEDIUM

    if t is MemoryObjectType.CLOSURE:
        return (LeakPatternType.CLOSURE_CYCLE,
                LeakSeverity.HIGH if size > thresholds.closure_high_size else LeakSeverity.MEDIUM)

    if t is MemoryObjectType.PROMISE:
        return LeakPatternType.PROMISE_CHAIN, LeakSeverity.MEDIUM

    if t in _COLLECTION_TYPES:
        change = diff.change_for(obj.id) if diff is not None else None
        if change is not None and change.size_delta > thresholds.changed_min_delta:
            return (LeakPatternType.GROWING_COLLECTION,
                    LeakSeverity.HIGH if size > thresholds.collection_large_size else LeakSeverity.MEDIUM)
        if size > thresholds.collection_large_size:
            return LeakPatternType.LARGE_CACHE, LeakSeverity.MEDIUM
    else:
        name = obj.name or ""
        if "Context" in name or "Provider" in name:
            return LeakPatternType.CONTEXT_REFERENCE, LeakSeverity.MEDIUM
        if "Store" in name or "Redux" in name:
            return LeakPatternType.STORE_REFERENCE, LeakSeverity.MEDIUM

    return (LeakPatternType.OTHER,
            LeakSeverity.HIGH if size > thresholds.other_high_size else LeakSeverity.LOW)


_GUIDANCE: Dict[LeakPatternType, Tuple[str, str]] = {
    LeakPatternType.DETACHED_DOM: (
        "Detached DOM node ({name}) of {size} is no longer rendered but is still referenced from script.",
        "Drop references to DOM nodes when the owning component unmounts and remove any "
        "listeners attached to them. Pay attention to refs and nodes appended to document.body.",
    ),
    LeakPatternType.ZOMBIE_COMPONENT: (
        "Zombie component instance ({component}) of {size} was unmounted but is still referenced.",
        "Check that listeners, timers and subscriptions created by the component are released "
        "on unmount, in particular in effect cleanup functions.",
    ),
    LeakPatternType.EVENT_LISTENER: (
        "Event listener of {size} was never removed.",
        "Remove every listener when the component unmounts or the element is removed. "
        "Register named handlers so the same function can be passed to removeEventListener.",
    ),
    LeakPatternType.TIMER_REFERENCE: (
        "Timer of {size} is still scheduled and keeps its callback alive.",
        "Clear timeouts and intervals with clearTimeout/clearInterval in the unmount or "
        "effect cleanup path.",
    ),
    LeakPatternType.CLOSURE_CYCLE: (
        "Closure cycle of {size}: a function captures a variable that holds a reference back to it.",
        "Break the cycle by not storing the containing object inside the closure, or hold it "
        "through a WeakMap/WeakRef.",
    ),
    LeakPatternType.PROMISE_CHAIN: (
        "Unsettled promise chain of {size}.",
        "Give every promise chain an error path and avoid unbounded chaining. Cancel stale work "
        "with an AbortController.",
    ),
    LeakPatternType.GROWING_COLLECTION: (
        "Collection of {size} keeps growing between snapshots.",
        "Bound the collection: cap its size, expire old entries or use an LRU policy.",
    ),
    LeakPatternType.LARGE_CACHE: (
        "Large cache object of {size}.",
        "Add an expiry or size limit to the cache, or key it with a WeakMap so entries can be "
        "collected.",
    ),
    LeakPatternType.CONTEXT_REFERENCE: (
        "Context value of {size} retains objects that should have been released.",
        "Keep context values small and serialisable. Do not pass component instances or DOM "
        "nodes through a provider.",
    ),
    LeakPatternType.STORE_REFERENCE: (
        "Global store entry of {size} retains objects that should have been released.",
        "Keep only serialisable data in the global store; never store component instances or "
        "DOM nodes.",
    ),
    LeakPatternType.OTHER: (
        "Potential memory leak of {size}.",
        "Look for long-lived references to this object and release them once the resource is "
        "no longer needed.",
    ),
}


def generate_leak_guidance(obj: MemoryObject, pattern: LeakPatternType) -> Tuple[str, str]:
    """Return (description, fix_suggestion) text for a pattern."""
    description, fix = _GUIDANCE.get(pattern, _GUIDANCE[LeakPatternType.OTHER])
    return (
        description.format(
            name=obj.name or "unnamed",
            component=obj.component_name or "unnamed component",
            size=format_bytes(obj.size),
        ),
        fix,
    )


def determine_framework(obj: MemoryObject) -> Optional[Framework]:
    """Infer the owning framework from explicit metadata or component markers."""
    declared = obj.meta("framework")
    if declared:
        try:
            return coerce_framework(declared)
        except ValueError:
            return None

    if not obj.component_name:
        return None
    if obj.component_name.startswith("React") or obj.meta("reactFiber"):
        return Framework.REACT
    if obj.meta("vue") or obj.meta("__vue__"):
        return Framework.VUE
    if obj.meta("svelte"):
        return Framework.SVELTE
    if obj.meta("angular"):
        return Framework.ANGULAR
    return None


def extract_component_info(obj: MemoryObject) -> Tuple[Optional[str], Optional[str]]:
    """(component_name, component_path) for component instances, else (None, None)."""
    if obj.type is not MemoryObjectType.COMPONENT_INSTANCE:
        return None, None
    return obj.component_name, obj.component_path


def build_leak_info(obj: MemoryObject,
                    pattern: LeakPatternType,
                    severity: LeakSeverity) -> LeakInfo:
    """Wrap a candidate in a LeakInfo with first-pass guidance text."""
    description, fix = generate_leak_guidance(obj, pattern)
    component_name, component_path = extract_component_info(obj)
    return LeakInfo(
        object=obj,
        pattern=pattern,
        severity=severity,
        size=obj.size,
        description=description,
        fix_suggestion=fix,
        framework=determine_framework(obj),
        component_name=component_name,
        component_path=component_path,
    )
