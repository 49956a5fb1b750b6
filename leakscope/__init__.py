#=============================================================================
# File        : leakscope/__init__.py
# Project     : LeakScope v1.0
# Component   : Package Initialization
# Description : Snapshot based memory leak detection for frontend runtimes
#               • Snapshot store and deterministic snapshot diffing
#               • Detection sessions with heuristic and feature classification
#               • Retention chain tracing from GC roots
#               • React component lifecycle leak detection
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, asyncio, psutil
# Standards   : PEP 8, Type Hints, Dataclasses
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: typing, asyncio, psutil
# SHA-256     : [Updated by CI/CD]
# Testing     : tests/
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. Released under MIT License.
#=============================================================================

"""
LeakScope - Snapshot Based Memory Leak Detection

Heap snapshots of a frontend runtime (JavaScript engine plus DOM) are
supplied by a provider as plain object graphs. LeakScope diffs them,
labels the objects that look leaked, and explains how each one is
still reachable from a GC root.

Quick Start:
    import asyncio
    import leakscope

    result = asyncio.run(leakscope.detect_memory_leak())
    print(result.summary())
"""

from .core import (
    LeakDetector,
    DetectionPhase,
    detect_memory_leak,
    detect_component_leak,
    get_default_detector,
    reset_global_state
)

from .config import (
    Framework,
    LeakThresholds,
    LeakDetectionConfig,
    ReactLeakDetectionConfig,
    ReferenceChainConfig,
    LeakPatternConfig,
    AnalyzerConfig
)

from .report import (
    LeakSeverity,
    LeakPatternType,
    LeakInfo,
    LeakDetectionResult,
    format_bytes
)

from .snapshot import (
    MemoryObjectType,
    MemoryObject,
    MemoryReference,
    MemorySnapshot,
    ChangedObject,
    SnapshotDiff,
    compare_snapshots
)

from .providers import (
    SnapshotProvider,
    ProcessSnapshotProvider,
    ReplaySnapshotProvider
)

from .store import (
    SnapshotStore,
    get_snapshot_store,
    force_provider
)

from .analyzer import (
    MemoryLeakAnalysisResult,
    analyze_memory_leak,
    export_reference_chains
)

from .frameworks.react import (
    ReactLeakDetector,
    get_framework_leak_type_description
)

__version__ = "1.0.0"
__author__ = "Kyle Clouthier"
__license__ = "MIT"
__description__ = "Snapshot based memory leak detection for frontend applications"

__all__ = [
    # Detection
    "LeakDetector",
    "DetectionPhase",
    "detect_memory_leak",
    "detect_component_leak",
    "get_default_detector",
    "reset_global_state",

    # Configuration
    "Framework",
    "LeakThresholds",
    "LeakDetectionConfig",
    "ReactLeakDetectionConfig",
    "ReferenceChainConfig",
    "LeakPatternConfig",
    "AnalyzerConfig",

    # Reporting
    "LeakSeverity",
    "LeakPatternType",
    "LeakInfo",
    "LeakDetectionResult",
    "format_bytes",

    # Snapshots
    "MemoryObjectType",
    "MemoryObject",
    "MemoryReference",
    "MemorySnapshot",
    "ChangedObject",
    "SnapshotDiff",
    "compare_snapshots",
    "SnapshotProvider",
    "ProcessSnapshotProvider",
    "ReplaySnapshotProvider",
    "SnapshotStore",
    "get_snapshot_store",
    "force_provider",

    # Analysis
    "MemoryLeakAnalysisResult",
    "analyze_memory_leak",
    "export_reference_chains",
    "ReactLeakDetector",
    "get_framework_leak_type_description",

    # Metadata
    "__version__",
    "__author__",
    "__license__"
]
