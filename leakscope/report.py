#=============================================================================
# File        : leakscope/report.py
# Project     : LeakScope v1.0
# Component   : Report - Leak and Detection Result Data Structures
# Description : Data structures for detected leaks and detection sessions
#               • LeakSeverity ordering shared by every component
#               • LeakInfo dataclass with validation and serialization
#               • LeakDetectionResult with filtering and summaries
#               • Human readable byte formatting
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, JSON
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: json, time, uuid, dataclasses, typing
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_core_detection.py, tests/test_leak_patterns.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .snapshot import MemoryObject, MemoryReference


# Severity ranking for proper comparison
SEVERITY_RANK = {
    'info': 0,
    'low': 1,
    'medium': 2,
    'high': 3,
    'critical': 4,
}


class LeakSeverity(Enum):
    """Severity levels for detected leaks (critical > high > medium > low > info)."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Get numeric rank for proper severity comparison."""
        return SEVERITY_RANK[self.value]

    def __lt__(self, other: "LeakSeverity") -> bool:
        if not isinstance(other, LeakSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "LeakSeverity") -> bool:
        if not isinstance(other, LeakSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: "LeakSeverity") -> bool:
        if not isinstance(other, LeakSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: "LeakSeverity") -> bool:
        if not isinstance(other, LeakSeverity):
            return NotImplemented
        return self.rank >= other.rank


def highest_severity(severities) -> LeakSeverity:
    """Highest severity of an iterable; INFO when empty."""
    return max(severities, default=LeakSeverity.INFO)


class LeakPatternType(Enum):
    """Categories of memory leak patterns."""
    DETACHED_DOM = "detached-dom"
    ZOMBIE_COMPONENT = "zombie-component"
    EVENT_LISTENER = "dangling-event-listener"
    TIMER_REFERENCE = "timer-reference"
    CLOSURE_CYCLE = "closure-cycle"
    PROMISE_CHAIN = "promise-chain"
    LARGE_CACHE = "large-cache"
    GROWING_COLLECTION = "growing-collection"
    CONTEXT_REFERENCE = "context-reference"
    STORE_REFERENCE = "store-reference"
    OTHER = "other"


def format_bytes(size: float) -> str:
    """Format a byte count for humans (e.g. 1536 -> '1.5 KB')."""
    if size < 0:
        return "-" + format_bytes(-size)
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class LeakInfo:
    """
    Immutable representation of one suspected leaked object.

    Produced by the detection heuristics and possibly rewritten by the
    pattern classifier, which replaces pattern, severity and guidance text.
    """
    object: "MemoryObject"
    pattern: LeakPatternType
    severity: LeakSeverity
    description: str
    size: int = -1
    fix_suggestion: Optional[str] = None
    retention_path: Optional[Tuple["MemoryReference", ...]] = None
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)
    framework: Optional[Any] = None
    component_name: Optional[str] = None
    component_path: Optional[str] = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        """Validate leak data on creation."""
        if self.size < 0:
            object.__setattr__(self, 'size', self.object.size)
        if self.retention_path is not None:
            object.__setattr__(self, 'retention_path', tuple(self.retention_path))
        object.__setattr__(self, 'details', dict(self.details))

    @property
    def confidence(self) -> Optional[float]:
        """Classifier confidence, if the classifier matched this leak."""
        return self.details.get('confidence')

    def with_updates(self, **changes) -> "LeakInfo":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        framework = getattr(self.framework, 'value', self.framework)
        return {
            'id': self.id,
            'object': self.object.to_dict(),
            'pattern': self.pattern.value,
            'severity': self.severity.value,
            'size': self.size,
            'description': self.description,
            'fixSuggestion': self.fix_suggestion,
            'retentionPath': (
                [ref.to_dict() for ref in self.retention_path]
                if self.retention_path is not None else None
            ),
            'details': dict(self.details),
            'framework': framework,
            'componentName': self.component_name,
            'componentPath': self.component_path,
        }


@dataclass(frozen=True)
class LeakDetectionResult:
    """
    Outcome of one detection session.

    ``has_leak`` always mirrors ``len(leaks) > 0``.
    """
    leaks: Tuple[LeakInfo, ...] = ()
    base_snapshot_id: Optional[str] = None
    target_snapshot_id: Optional[str] = None
    diff_id: Optional[str] = None
    memory_growth: int = 0
    duration_ms: float = 0.0
    objects_scanned: int = 0
    id: str = field(default_factory=_new_id)
    timestamp: float = field(default_factory=time.time)
    has_leak: bool = field(init=False, default=False)

    def __post_init__(self):
        object.__setattr__(self, 'leaks', tuple(self.leaks))
        object.__setattr__(self, 'has_leak', len(self.leaks) > 0)
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms cannot be negative, got {self.duration_ms}")

    @property
    def leak_count(self) -> int:
        return len(self.leaks)

    @property
    def total_leaked_bytes(self) -> int:
        return sum(leak.size for leak in self.leaks)

    def with_leaks(self, leaks) -> "LeakDetectionResult":
        """Return a copy carrying a different leak list."""
        return replace(self, leaks=tuple(leaks))

    def filter_by_severity(self, min_severity: LeakSeverity) -> List[LeakInfo]:
        return [leak for leak in self.leaks if leak.severity >= min_severity]

    def filter_by_pattern(self, pattern: LeakPatternType) -> List[LeakInfo]:
        return [leak for leak in self.leaks if leak.pattern is pattern]

    def severity_counts(self) -> Dict[str, int]:
        counts = {severity.value: 0 for severity in LeakSeverity}
        for leak in self.leaks:
            counts[leak.severity.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'hasLeak': self.has_leak,
            'leaks': [leak.to_dict() for leak in self.leaks],
            'baseSnapshotId': self.base_snapshot_id,
            'targetSnapshotId': self.target_snapshot_id,
            'diffId': self.diff_id,
            'memoryGrowth': self.memory_growth,
            'durationMs': self.duration_ms,
            'objectsScanned': self.objects_scanned,
        }

    def to_json(self, indent: int = 2) -> str:
        """Export result as JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def summary(self) -> str:
        """Generate human-readable summary."""
        if not self.has_leak:
            return "No memory leaks detected."

        counts = self.severity_counts()
        lines = [
            f"LeakScope Summary ({self.leak_count} leaks)",
            f" Critical: {counts['critical']}, High: {counts['high']}, Medium: {counts['medium']}",
            f" Total leaked size: {format_bytes(self.total_leaked_bytes)}",
            f" Memory growth: {format_bytes(self.memory_growth)}",
        ]

        ranked = sorted(self.leaks, key=lambda l: (l.severity.rank, l.size), reverse=True)
        lines.append("\nTop 3 leaks:")
        for i, leak in enumerate(ranked[:3], 1):
            where = f" in {leak.component_name}" if leak.component_name else ""
            lines.append(
                f"  {i}. {leak.pattern.value}{where} "
                f"({format_bytes(leak.size)}, {leak.severity.value})"
            )

        return "\n".join(lines)
