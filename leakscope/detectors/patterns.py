#=============================================================================
# File        : leakscope/detectors/patterns.py
# Project     : LeakScope v1.0
# Component   : Leak Pattern Classifier - Feature Voting Rule Engine
# Description : Feature based classification of suspected leaks
#               • LeakFeature records (predicate + metadata) in a registry
#               • Confidence scored votes into pattern, severity and fix text
#               • Per-feature failure isolation
#               • Detection statistics and user feedback tracking
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: logging, uuid, collections, dataclasses, typing, config,
#               report, snapshot
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_leak_patterns.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..config import DEFAULT_THRESHOLDS, Framework, LeakPatternConfig, LeakThresholds
from ..report import (
    LeakDetectionResult, LeakInfo, LeakPatternType, LeakSeverity, format_bytes, highest_severity,
)
from ..snapshot import MemoryObject, MemoryObjectType, MemoryReference, MemorySnapshot, SnapshotDiff

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


DetectFn = Callable[[MemoryObject, Optional[MemorySnapshot], Optional[SnapshotDiff]], bool]


@dataclass(frozen=True)
class LeakFeature:
    """A named predicate plus the vote it casts when it matches."""
    id: str
    name: str
    description: str
    detect: DetectFn
    pattern_type: LeakPatternType
    severity: LeakSeverity
    frameworks: Tuple[Framework, ...]
    fix_suggestion: str

    def applies_to(self, framework: Optional[Framework]) -> bool:
        return framework is None or framework in self.frameworks


class FeatureRegistry:
    """Ordered collection of leak features; order decides tie-breaks."""

    def __init__(self, features: Sequence[LeakFeature] = ()) -> None:
        self._features: List[LeakFeature] = []
        for feature in features:
            self.register(feature)

    def register(self, feature: LeakFeature) -> LeakFeature:
        if self.get(feature.id) is not None:
            raise ValueError(f"Feature '{feature.id}' is already registered")
        self._features.append(feature)
        return feature

    def unregister(self, feature_id: str) -> bool:
        for i, feature in enumerate(self._features):
            if feature.id == feature_id:
                del self._features[i]
                return True
        return False

    def get(self, feature_id: str) -> Optional[LeakFeature]:
        return next((f for f in self._features if f.id == feature_id), None)

    def ids(self) -> List[str]:
        return [f.id for f in self._features]

    def __iter__(self) -> Iterator[LeakFeature]:
        return iter(list(self._features))

    def __len__(self) -> int:
        return len(self._features)


# --------- Safe metadata helpers ---------

def _number(value: Any) -> float:
    """Numeric metadata value, 0 for anything that is not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _owner_unmounted(obj: MemoryObject) -> bool:
    owner = obj.meta("owner")
    return isinstance(owner, Mapping) and owner.get("unmounted") is True


def _outgoing(obj: MemoryObject, snapshot: Optional[MemorySnapshot]) -> Sequence[MemoryReference]:
    if obj.outgoing_references:
        return obj.outgoing_references
    if snapshot is not None:
        return snapshot.outgoing(obj.id)
    return ()


def _refers_back(source_id: str, target_id: str, snapshot: Optional[MemorySnapshot]) -> bool:
    """One hop cycle check: does ``target_id`` hold a reference to ``source_id``?"""
    if snapshot is None:
        return False
    target = snapshot.get_object(target_id)
    if target is None:
        return False
    return any(ref.target_id == source_id for ref in _outgoing(target, snapshot))


# --------- Stock React features ---------

def register_react_leak_features(registry: FeatureRegistry,
                                 thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> FeatureRegistry:
    """Register the stock React leak features on ``registry``."""
    react = (Framework.REACT,)

    def detached_dom(obj, snapshot=None, diff=None):
        return obj.type is MemoryObjectType.DOM_NODE and obj.meta("detached") is True

    def zombie_component(obj, snapshot=None, diff=None):
        return obj.type is MemoryObjectType.COMPONENT_INSTANCE and obj.meta("unmounted") is True

    def event_listener(obj, snapshot=None, diff=None):
        return obj.type is MemoryObjectType.EVENT_LISTENER and _owner_unmounted(obj)

    def timer(obj, snapshot=None, diff=None):
        return obj.type is MemoryObjectType.TIMER and _owner_unmounted(obj)

    def closure_cycle(obj, snapshot=None, diff=None):
        if obj.type is not MemoryObjectType.CLOSURE:
            return False
        return any(
            ref.target_id == obj.id or _refers_back(obj.id, ref.target_id, snapshot)
            for ref in _outgoing(obj, snapshot)
        )

    def effect_deps(obj, snapshot=None, diff=None):
        return (obj.type is MemoryObjectType.CLOSURE
                and obj.meta("reactHook") == "useEffect"
                and obj.meta("missingDeps") is True)

    def context_ref(obj, snapshot=None, diff=None):
        return obj.meta("reactContext") is True and any(
            ref.name in ("consumers", "_currentValue") for ref in _outgoing(obj, snapshot)
        )

    def store_ref(obj, snapshot=None, diff=None):
        return obj.meta("reduxStore") is True and any(
            ref.name and any(tag in ref.name for tag in ("Component", "Element", "Instance"))
            for ref in _outgoing(obj, snapshot)
        )

    def promise_chain(obj, snapshot=None, diff=None):
        return (obj.type is MemoryObjectType.PROMISE
                and _number(obj.meta("chainLength")) > thresholds.promise_chain_length)

    def large_cache(obj, snapshot=None, diff=None):
        return (obj.type in (MemoryObjectType.MAP, MemoryObjectType.OBJECT)
                and obj.size > thresholds.large_cache_size
                and _number(obj.meta("cacheSize")) > thresholds.large_cache_entries)

    def growing_collection(obj, snapshot=None, diff=None):
        if obj.type not in (MemoryObjectType.ARRAY, MemoryObjectType.MAP, MemoryObjectType.SET):
            return False
        previous = _number(obj.meta("previousSize"))
        current = _number(obj.meta("size"))
        growth = (current - previous) / previous if previous > 0 else 0.0
        return diff is not None and growth > thresholds.growing_collection_rate

    features = [
        LeakFeature(
            "react-detached-dom", "Detached DOM node",
            "A DOM node was not removed from the document after its component unmounted",
            detached_dom, LeakPatternType.DETACHED_DOM, LeakSeverity.MEDIUM, react,
            "Remove every DOM node the component created when it unmounts, especially nodes "
            "appended to document.body.",
        ),
        LeakFeature(
            "react-zombie-component", "Zombie component instance",
            "A component instance is still in memory after unmounting",
            zombie_component, LeakPatternType.ZOMBIE_COMPONENT, LeakSeverity.HIGH, react,
            "Find where the component is still referenced (globals, closures, event handlers) "
            "and release that reference on unmount.",
        ),
        LeakFeature(
            "react-event-listener", "Listener left after unmount",
            "An event listener was not removed after its component unmounted",
            event_listener, LeakPatternType.EVENT_LISTENER, LeakSeverity.HIGH, react,
            "Remove listeners in the useEffect cleanup or componentWillUnmount, especially "
            "listeners on window or document.",
        ),
        LeakFeature(
            "react-timer", "Timer left after unmount",
            "A timer is still running after its component unmounted",
            timer, LeakPatternType.TIMER_REFERENCE, LeakSeverity.HIGH, react,
            "Clear timers with clearTimeout/clearInterval in the useEffect cleanup or "
            "componentWillUnmount.",
        ),
        LeakFeature(
            "react-closure-cycle", "Closure reference cycle",
            "A closure forms a reference cycle that prevents collection",
            closure_cycle, LeakPatternType.CLOSURE_CYCLE, LeakSeverity.MEDIUM, react,
            "Do not capture component instances or large objects in closures. Keep the latest "
            "value in a useRef when an effect needs it.",
        ),
        LeakFeature(
            "react-useeffect-deps", "Incomplete useEffect dependencies",
            "A useEffect dependency array is missing variables captured by its closure",
            effect_deps, LeakPatternType.CLOSURE_CYCLE, LeakSeverity.MEDIUM, react,
            "List every value the effect reads in its dependency array; the "
            "react-hooks/exhaustive-deps lint rule catches this.",
        ),
        LeakFeature(
            "react-context-ref", "Context retains unmounted consumers",
            "A context keeps references to unmounted components",
            context_ref, LeakPatternType.CONTEXT_REFERENCE, LeakSeverity.MEDIUM, react,
            "Avoid storing component instances or other non-primitive values in context; reset "
            "the value when the consumer unmounts.",
        ),
        LeakFeature(
            "react-redux-ref", "Store holds component references",
            "The global store holds component instances or DOM nodes",
            store_ref, LeakPatternType.STORE_REFERENCE, LeakSeverity.HIGH, react,
            "Keep only serialisable data in store state; never store components, DOM nodes or "
            "class instances.",
        ),
        LeakFeature(
            "react-promise-chain", "Long promise chain",
            "A long promise chain prevents collection",
            promise_chain, LeakPatternType.PROMISE_CHAIN, LeakSeverity.LOW, react,
            "Terminate promise chains with error handling and release resources in finally; "
            "ignore results that settle after unmount.",
        ),
        LeakFeature(
            "react-large-cache", "Unbounded large cache",
            "A component holds a large cache without a size limit",
            large_cache, LeakPatternType.LARGE_CACHE, LeakSeverity.MEDIUM, react,
            "Bound the cache with an LRU policy or use a WeakMap so keys can be collected.",
        ),
        LeakFeature(
            "react-growing-collection", "Growing collection",
            "A collection keeps growing between snapshots with no cleanup",
            growing_collection, LeakPatternType.GROWING_COLLECTION, LeakSeverity.MEDIUM, react,
            "Give the collection a cleanup policy such as a maximum size or expiry; "
            "WeakMap/WeakSet let keys be collected.",
        ),
    ]
    for feature in features:
        registry.register(feature)
    return registry


def create_default_registry(thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> FeatureRegistry:
    return register_react_leak_features(FeatureRegistry(), thresholds)


# --------- Matches and statistics ---------

@dataclass(frozen=True)
class PatternMatch:
    """Winning classification for one object."""
    object_id: str
    features: Tuple[LeakFeature, ...]
    confidence: float
    pattern_type: LeakPatternType
    severity: LeakSeverity
    description: str
    fix_suggestion: str
    id: str = field(default_factory=lambda: f"pattern-{uuid.uuid4().hex}")

    @property
    def feature_ids(self) -> List[str]:
        return [f.id for f in self.features]


@dataclass
class LeakStats:
    """Classifier counters; one instance per classifier."""
    total_detections: int = 0
    total_leaks_found: int = 0
    type_count: Dict[str, int] = field(
        default_factory=lambda: {p.value: 0 for p in LeakPatternType})
    severity_count: Dict[str, int] = field(
        default_factory=lambda: {s.value: 0 for s in LeakSeverity})
    framework_count: Dict[str, int] = field(default_factory=dict)
    feature_match_count: Dict[str, int] = field(default_factory=dict)
    user_feedback_accuracy: float = 0.0
    false_positive_rate: float = 0.0

    def reset(self) -> None:
        fresh = LeakStats()
        self.__dict__.update(fresh.__dict__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_detections': self.total_detections,
            'total_leaks_found': self.total_leaks_found,
            'type_count': dict(self.type_count),
            'severity_count': dict(self.severity_count),
            'framework_count': dict(self.framework_count),
            'feature_match_count': dict(self.feature_match_count),
            'user_feedback_accuracy': self.user_feedback_accuracy,
            'false_positive_rate': self.false_positive_rate,
        }


def _most_common(values: Sequence[LeakPatternType]) -> LeakPatternType:
    """Most frequent value; ties go to the first seen."""
    counts = Counter(values)
    best = values[0]
    for value in values:
        if counts[value] > counts[best]:
            best = value
    return best


class LeakPatternClassifier:
    """
    Votes registered features into a leak classification.

    Holds its own registry and statistics so several classifiers can
    coexist; module level helpers use a shared default instance.
    """

    def __init__(self,
                 registry: Optional[FeatureRegistry] = None,
                 stats: Optional[LeakStats] = None,
                 thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> None:
        self.registry = registry if registry is not None else create_default_registry(thresholds)
        self.stats = stats if stats is not None else LeakStats()
        self.thresholds = thresholds

    def active_features(self, config: Optional[LeakPatternConfig] = None) -> List[LeakFeature]:
        """Features that pass the pattern type, framework and severity filters."""
        config = config or LeakPatternConfig()
        active = []
        for feature in self.registry:
            if (config.enabled_pattern_types is not None
                    and feature.pattern_type not in config.enabled_pattern_types):
                continue
            if not feature.applies_to(config.framework):
                continue
            if feature.severity < config.min_severity:
                continue
            active.append(feature)
        return active

    def identify_leak_pattern(self,
                              obj: MemoryObject,
                              snapshot: Optional[MemorySnapshot] = None,
                              diff: Optional[SnapshotDiff] = None,
                              config: Optional[LeakPatternConfig] = None) -> Optional[PatternMatch]:
        """
        Classify one object.

        confidence = min(matched / max(active * feature_threshold_ratio, 1), 1).
        Returns None when nothing matched or confidence is below
        ``min_confidence``.
        """
        config = config or LeakPatternConfig()
        active = self.active_features(config)

        matched: List[LeakFeature] = []
        for feature in active:
            try:
                hit = bool(feature.detect(obj, snapshot, diff))
            except Exception as e:
                _logger.error(f"Leak feature '{feature.id}' failed on object {obj.id}: {e}")
                continue
            if hit:
                matched.append(feature)
                if config.collect_stats:
                    self.stats.feature_match_count[feature.id] = (
                        self.stats.feature_match_count.get(feature.id, 0) + 1)

        if not matched:
            return None

        confidence = min(len(matched) / max(len(active) * config.feature_threshold_ratio, 1), 1.0)
        if confidence < config.min_confidence:
            _logger.debug(f"Object {obj.id}: confidence {confidence:.2f} below {config.min_confidence}")
            return None

        pattern = _most_common([f.pattern_type for f in matched])
        severity = highest_severity(f.severity for f in matched)
        winning = [f for f in matched if f.pattern_type is pattern]

        match = PatternMatch(
            object_id=obj.id,
            features=tuple(matched),
            confidence=confidence,
            pattern_type=pattern,
            severity=severity,
            description=self._describe(winning, obj),
            fix_suggestion="\n".join(dict.fromkeys(f.fix_suggestion for f in winning)),
        )

        if config.collect_stats:
            self.stats.type_count[pattern.value] = self.stats.type_count.get(pattern.value, 0) + 1
            self.stats.severity_count[severity.value] = self.stats.severity_count.get(severity.value, 0) + 1
            self.stats.total_leaks_found += 1

        return match

    def _describe(self, features: Sequence[LeakFeature], obj: MemoryObject) -> str:
        description = features[0].description
        if obj.component_name:
            description += f". Occurred in component {obj.component_name}"
        if obj.size > self.thresholds.large_leak_size:
            description += f". The leaked object holds {format_bytes(obj.size)}, which is a large leak"
        return description

    def analyze_leak_patterns(self,
                              result: LeakDetectionResult,
                              snapshot: Optional[MemorySnapshot],
                              diff: Optional[SnapshotDiff] = None,
                              config: Optional[LeakPatternConfig] = None) -> LeakDetectionResult:
        """
        Re-classify every leak of a detection result.

        Matched leaks get the classifier's pattern, severity and guidance
        (replacing the first-pass values) plus ``confidence`` and
        ``matched_features`` in details. The leak count never changes.
        """
        config = config or LeakPatternConfig()
        if config.collect_stats:
            self.stats.total_detections += 1

        if not result.leaks:
            return result

        enhanced: List[LeakInfo] = []
        for leak in result.leaks:
            match = self.identify_leak_pattern(leak.object, snapshot, diff, config)
            if match is None:
                enhanced.append(leak)
                continue

            enhanced.append(leak.with_updates(
                pattern=match.pattern_type,
                severity=match.severity,
                description=match.description,
                fix_suggestion=match.fix_suggestion,
                details={
                    **leak.details,
                    'confidence': match.confidence,
                    'matched_features': match.feature_ids,
                },
            ))
            if config.collect_stats and leak.framework is not None:
                key = getattr(leak.framework, 'value', str(leak.framework))
                self.stats.framework_count[key] = self.stats.framework_count.get(key, 0) + 1

        return result.with_leaks(enhanced)

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.to_dict()

    def reset_stats(self) -> None:
        self.stats.reset()

    def register_user_feedback(self, leak_id: str, is_correct: bool, feedback: Optional[str] = None) -> None:
        """Fold one user verdict into the running accuracy and false positive rates."""
        _logger.info(f"User feedback for {leak_id}: {'correct' if is_correct else 'incorrect'} {feedback or ''}")
        n = self.stats.total_leaks_found or 1
        correct = self.stats.user_feedback_accuracy * n
        self.stats.user_feedback_accuracy = (correct + (1 if is_correct else 0)) / (n + 1)
        self.stats.false_positive_rate = (
            self.stats.false_positive_rate * n + (0 if is_correct else 1)) / (n + 1)


# Global instance for convenience
_default_classifier: Optional[LeakPatternClassifier] = None


def get_classifier() -> LeakPatternClassifier:
    """Get the default global classifier instance."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = LeakPatternClassifier()
    return _default_classifier


def reset_classifier() -> None:
    """Drop the global classifier (for testing)."""
    global _default_classifier
    _default_classifier = None


def identify_leak_pattern(obj: MemoryObject,
                          snapshot: Optional[MemorySnapshot] = None,
                          diff: Optional[SnapshotDiff] = None,
                          config: Optional[LeakPatternConfig] = None) -> Optional[PatternMatch]:
    return get_classifier().identify_leak_pattern(obj, snapshot, diff, config)


def analyze_leak_patterns(result: LeakDetectionResult,
                          snapshot: Optional[MemorySnapshot],
                          diff: Optional[SnapshotDiff] = None,
                          config: Optional[LeakPatternConfig] = None) -> LeakDetectionResult:
    return get_classifier().analyze_leak_patterns(result, snapshot, diff, config)


def get_stats() -> Dict[str, Any]:
    return get_classifier().get_stats()


def reset_stats() -> None:
    get_classifier().reset_stats()


def register_user_feedback(leak_id: str, is_correct: bool, feedback: Optional[str] = None) -> None:
    get_classifier().register_user_feedback(leak_id, is_correct, feedback)
