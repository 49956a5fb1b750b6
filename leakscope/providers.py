#=============================================================================
# File        : leakscope/providers.py
# Project     : LeakScope v1.0
# Component   : Snapshot Providers - Object Graph Capture Backends
# Description : Protocol and stock implementations for snapshot capture
#               • SnapshotProvider protocol consumed by the snapshot store
#               • Process provider recording host memory totals via psutil
#               • Replay provider serving pre-built snapshots in order
#               • Best-effort garbage collection hooks
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, psutil, asyncio
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: os, gc, time, uuid, logging, collections, psutil, snapshot
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_snapshot_store.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import gc
import os
import time
import uuid
import logging
from collections import deque
from dataclasses import replace
from typing import Iterable, Optional, Protocol, runtime_checkable

import psutil

from .snapshot import MemorySnapshot

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


@runtime_checkable
class SnapshotProvider(Protocol):
    """
    Protocol for runtime specific object graph capture.

    Providers must keep object ids stable across captures for the same
    underlying heap entity; diffing relies on it. A provider may also
    expose ``collect_garbage()`` (sync or async) to let the detector
    request a collection before the second snapshot.
    """

    async def capture(self, label: Optional[str] = None) -> MemorySnapshot:
        """Capture the current object graph."""
        ...


class ProcessSnapshotProvider:
    """
    Snapshot provider for the host process.

    Records resident/virtual memory totals via psutil as snapshot metadata.
    It does not walk any heap, so the object graph is always empty; real
    graphs come from runtime specific providers.
    """

    def __init__(self, pid: Optional[int] = None) -> None:
        self._process = psutil.Process(pid if pid is not None else os.getpid())

    def _memory_totals(self) -> dict:
        try:
            info = self._process.memory_info()
        except psutil.Error as e:
            _logger.warning(f"Could not read process memory info: {e}")
            return {'heapUsed': 0, 'heapTotal': 0}
        return {'heapUsed': info.rss, 'heapTotal': info.vms}

    async def capture(self, label: Optional[str] = None) -> MemorySnapshot:
        totals = self._memory_totals()
        return MemorySnapshot(
            id=uuid.uuid4().hex,
            label=label,
            timestamp=time.time(),
            objects=(),
            references=(),
            total_size=totals['heapUsed'],
            metadata={
                **totals,
                'pid': self._process.pid,
                'provider': type(self).__name__,
            },
        )

    def collect_garbage(self) -> int:
        """Run a full collection of the host interpreter."""
        return gc.collect()


class ReplaySnapshotProvider:
    """
    Serves pre-built snapshots in order, one per capture.

    Used to analyse snapshots exported from another runtime and for
    deterministic tests. Labels requested by the caller replace the
    stored label unless ``keep_labels`` is set.
    """

    def __init__(self, snapshots: Iterable[MemorySnapshot] = (), keep_labels: bool = False) -> None:
        self._queue = deque(snapshots)
        self._keep_labels = keep_labels
        self.captured_labels: list = []
        self.gc_requests = 0

    def push(self, snapshot: MemorySnapshot) -> None:
        self._queue.append(snapshot)

    @property
    def remaining(self) -> int:
        return len(self._queue)

    async def capture(self, label: Optional[str] = None) -> MemorySnapshot:
        if not self._queue:
            raise LookupError("ReplaySnapshotProvider has no snapshots left to serve")
        snapshot = self._queue.popleft()
        self.captured_labels.append(label)
        if label is not None and not self._keep_labels:
            snapshot = replace(snapshot, label=label)
        return snapshot

    def collect_garbage(self) -> None:
        self.gc_requests += 1
