#=============================================================================
# File        : leakscope/store.py
# Project     : LeakScope v1.0
# Component   : Snapshot Store - Keyed Snapshot Cache
# Description : Keyed store of immutable snapshots with optional retention
#               • create() captures through the configured provider
#               • Write-once keys, read-many access
#               • Optional oldest-first eviction when bounded
#               • diff() soft-fails when a snapshot is missing
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, asyncio, OrderedDict
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: logging, collections, typing, config, snapshot, providers
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_snapshot_store.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .config import DEFAULT_THRESHOLDS, LeakThresholds
from .snapshot import MemorySnapshot, SnapshotDiff, compare_snapshots
from .providers import ProcessSnapshotProvider, SnapshotProvider

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


class SnapshotStore:
    """
    Keyed cache of snapshots.

    Each key is written once by its creator and read many times, so there
    is no locking. Unbounded unless ``max_snapshots`` is given, in which
    case the oldest snapshot is evicted first.
    """

    def __init__(self,
                 provider: Optional[SnapshotProvider] = None,
                 max_snapshots: Optional[int] = None,
                 thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> None:
        if max_snapshots is not None and max_snapshots < 1:
            raise ValueError(f"max_snapshots must be positive, got {max_snapshots}")
        self._provider = provider
        self._max_snapshots = max_snapshots
        self._thresholds = thresholds
        self._snapshots: "OrderedDict[str, MemorySnapshot]" = OrderedDict()
        self._stats = {
            'created': 0,
            'hits': 0,
            'misses': 0,
            'evictions': 0,
            'diffs': 0,
        }

    @property
    def provider(self) -> SnapshotProvider:
        """The capture backend; defaults to the host process provider."""
        if self._provider is None:
            self._provider = ProcessSnapshotProvider()
        return self._provider

    @property
    def thresholds(self) -> LeakThresholds:
        return self._thresholds

    async def create(self, label: Optional[str] = None) -> MemorySnapshot:
        """Capture a snapshot through the provider and store it."""
        snapshot = await self.provider.capture(label)
        self.add(snapshot)
        self._stats['created'] += 1
        _logger.debug(f"Captured snapshot {snapshot.id} ({label}) with {snapshot.object_count} objects")
        return snapshot

    def add(self, snapshot: MemorySnapshot) -> MemorySnapshot:
        """Store an already built snapshot. Keys are write-once."""
        if snapshot.id in self._snapshots:
            raise ValueError(f"Snapshot '{snapshot.id}' is already stored")
        self._snapshots[snapshot.id] = snapshot
        self._evict_overflow()
        return snapshot

    def _evict_overflow(self) -> None:
        if self._max_snapshots is None:
            return
        while len(self._snapshots) > self._max_snapshots:
            evicted_id, _ = self._snapshots.popitem(last=False)
            self._stats['evictions'] += 1
            _logger.debug(f"Evicted snapshot {evicted_id} (retention limit {self._max_snapshots})")

    def get(self, snapshot_id: str) -> Optional[MemorySnapshot]:
        snapshot = self._snapshots.get(snapshot_id)
        self._stats['hits' if snapshot is not None else 'misses'] += 1
        return snapshot

    def delete(self, snapshot_id: str) -> bool:
        return self._snapshots.pop(snapshot_id, None) is not None

    def ids(self) -> List[str]:
        """Stored snapshot ids, oldest first."""
        return list(self._snapshots)

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, snapshot_id: object) -> bool:
        return snapshot_id in self._snapshots

    def diff(self, base_id: str, target_id: str) -> Optional[SnapshotDiff]:
        """
        Compare two stored snapshots.

        Returns None when either snapshot is missing; callers treat that as
        "no comparison available".
        """
        base = self.get(base_id)
        target = self.get(target_id)
        if base is None or target is None:
            _logger.debug(f"Cannot diff {base_id} -> {target_id}: snapshot missing")
            return None
        self._stats['diffs'] += 1
        return compare_snapshots(base, target, self._thresholds)

    def stats(self) -> Dict[str, Any]:
        stats = dict(self._stats)
        stats['stored'] = len(self._snapshots)
        stats['max_snapshots'] = self._max_snapshots
        return stats


# Global instance for convenience
_default_store: Optional[SnapshotStore] = None


def get_snapshot_store() -> SnapshotStore:
    """Get the default global snapshot store instance."""
    global _default_store
    if _default_store is None:
        _default_store = SnapshotStore()
    return _default_store


def force_provider(provider: SnapshotProvider) -> SnapshotStore:
    """Replace the global store with one capturing through ``provider`` (testing hook)."""
    global _default_store
    _default_store = SnapshotStore(provider)
    return _default_store


def reset_snapshot_store() -> None:
    """Drop the global store (for testing)."""
    global _default_store
    _default_store = None
