#=============================================================================
# File        : leakscope/snapshot.py
# Project     : LeakScope v1.0
# Component   : Snapshot Model & Diff Engine - Object Graph Comparison
# Description : Immutable object graph snapshots and snapshot comparison
#               • MemoryObject / MemoryReference / MemorySnapshot model
#               • Construction-time validation of ids and references
#               • Lazy lookup indexes for graph traversal
#               • Added/removed/changed diff and leak candidate selection
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, functools.cached_property
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: time, uuid, dataclasses, enum, functools, typing, config
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_snapshot_diff.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import DEFAULT_THRESHOLDS, LeakThresholds


DIFF_VERSION = "1.0.0"


class MemoryObjectType(Enum):
    """Kinds of heap objects a snapshot provider can report."""
    GC_ROOT = "gc-root"
    DOM_NODE = "dom-node"
    COMPONENT_INSTANCE = "component-instance"
    EVENT_LISTENER = "event-listener"
    CLOSURE = "closure"
    FUNCTION = "function"
    OBJECT = "object"
    ARRAY = "array"
    MAP = "map"
    SET = "set"
    PROMISE = "promise"
    TIMER = "timer"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "MemoryObjectType":
        """Parse a wire value; anything unrecognised becomes UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class MemoryReference:
    """Directed edge ``source_id -> target_id`` in the object graph."""
    source_id: str
    target_id: str
    name: Optional[str] = None
    type: Optional[str] = None
    weight: Optional[float] = None

    @property
    def key(self) -> Tuple[str, str, Optional[str], Optional[str]]:
        return (self.source_id, self.target_id, self.name, self.type)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryReference":
        return cls(
            source_id=str(data["sourceId"]),
            target_id=str(data["targetId"]),
            name=data.get("name"),
            type=data.get("type"),
            weight=data.get("weight"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"sourceId": self.source_id, "targetId": self.target_id}
        if self.name is not None: data["name"] = self.name
        if self.type is not None: data["type"] = self.type
        if self.weight is not None: data["weight"] = self.weight
        return data


@dataclass(frozen=True)
class MemoryObject:
    """
    One heap object as reported by a snapshot provider.

    ``metadata`` carries framework specific flags (``detached``,
    ``unmounted``, ``reactHook``, ``missingDeps``, ``capturedVariables``,
    ``owner``...). Readers must treat every key as optional.
    """
    id: str
    type: MemoryObjectType = MemoryObjectType.UNKNOWN
    size: int = 0
    retained_count: int = 0
    name: Optional[str] = None
    incoming_references: Tuple[MemoryReference, ...] = ()
    outgoing_references: Tuple[MemoryReference, ...] = ()
    component_name: Optional[str] = None
    component_path: Optional[str] = None
    created_at: Optional[float] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        if not self.id:
            raise ValueError("MemoryObject id cannot be empty")
        if self.size < 0:
            raise ValueError(f"Size cannot be negative, got {self.size} for object {self.id}")
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "type", MemoryObjectType.parse(self.type))
        object.__setattr__(self, "incoming_references", tuple(self.incoming_references))
        object.__setattr__(self, "outgoing_references", tuple(self.outgoing_references))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))

    def meta(self, key: str, default: Any = None) -> Any:
        """Safe metadata read."""
        return self.metadata.get(key, default)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryObject":
        return cls(
            id=str(data["id"]),
            type=MemoryObjectType.parse(data.get("type")),
            size=int(data.get("size") or 0),
            retained_count=int(data.get("retainedCount") or 0),
            name=data.get("name"),
            incoming_references=tuple(
                MemoryReference.from_dict(r) for r in data.get("incomingReferences") or ()
            ),
            outgoing_references=tuple(
                MemoryReference.from_dict(r) for r in data.get("outgoingReferences") or ()
            ),
            component_name=data.get("componentName"),
            component_path=data.get("componentPath"),
            created_at=data.get("createdAt"),
            metadata=data.get("metadata") or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "size": self.size,
            "retainedCount": self.retained_count,
            "metadata": dict(self.metadata),
        }
        if self.name is not None: data["name"] = self.name
        if self.incoming_references:
            data["incomingReferences"] = [r.to_dict() for r in self.incoming_references]
        if self.outgoing_references:
            data["outgoingReferences"] = [r.to_dict() for r in self.outgoing_references]
        if self.component_name is not None: data["componentName"] = self.component_name
        if self.component_path is not None: data["componentPath"] = self.component_path
        if self.created_at is not None: data["createdAt"] = self.created_at
        return data


@dataclass(frozen=True)
class MemorySnapshot:
    """
    Immutable object graph captured at one point in time.

    Construction validates that object ids are unique and that every
    reference (top-level or embedded in an object) resolves to an object of
    this snapshot. ``total_size`` defaults to the sum of object sizes.
    """
    id: str
    objects: Tuple[MemoryObject, ...] = ()
    references: Tuple[MemoryReference, ...] = ()
    label: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    total_size: Optional[int] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "objects", tuple(self.objects))
        object.__setattr__(self, "references", tuple(self.references))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))
        if self.total_size is None:
            object.__setattr__(self, "total_size", sum(o.size for o in self.objects))

        seen = set()
        for obj in self.objects:
            if obj.id in seen:
                raise ValueError(f"Duplicate object id '{obj.id}' in snapshot {self.id}")
            seen.add(obj.id)

        for ref in self.all_references:
            if ref.source_id not in seen or ref.target_id not in seen:
                raise ValueError(
                    f"Unresolved reference {ref.source_id} -> {ref.target_id} in snapshot {self.id}"
                )

    # --------- Lookup indexes (built lazily, never mutated) ---------

    @cached_property
    def _objects_by_id(self) -> Dict[str, MemoryObject]:
        return {obj.id: obj for obj in self.objects}

    @cached_property
    def all_references(self) -> Tuple[MemoryReference, ...]:
        """Top-level and embedded references, de-duplicated, first seen wins."""
        unique: Dict[Tuple, MemoryReference] = {}
        for ref in self.references:
            unique.setdefault(ref.key, ref)
        for obj in self.objects:
            for ref in obj.outgoing_references + obj.incoming_references:
                unique.setdefault(ref.key, ref)
        return tuple(unique.values())

    @cached_property
    def _incoming_index(self) -> Dict[str, List[MemoryReference]]:
        index: Dict[str, List[MemoryReference]] = {}
        for ref in self.all_references:
            index.setdefault(ref.target_id, []).append(ref)
        return index

    @cached_property
    def _outgoing_index(self) -> Dict[str, List[MemoryReference]]:
        index: Dict[str, List[MemoryReference]] = {}
        for ref in self.all_references:
            index.setdefault(ref.source_id, []).append(ref)
        return index

    def get_object(self, object_id: str) -> Optional[MemoryObject]:
        return self._objects_by_id.get(object_id)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._objects_by_id

    def incoming(self, object_id: str) -> List[MemoryReference]:
        return list(self._incoming_index.get(object_id, ()))

    def outgoing(self, object_id: str) -> List[MemoryReference]:
        return list(self._outgoing_index.get(object_id, ()))

    @property
    def object_count(self) -> int:
        return len(self.objects)

    @property
    def reference_count(self) -> int:
        return len(self.all_references)

    # --------- Serialization ---------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemorySnapshot":
        """Load a snapshot from its camelCase wire form."""
        return cls(
            id=str(data["id"]),
            label=data.get("label"),
            timestamp=float(data.get("timestamp") or time.time()),
            objects=tuple(MemoryObject.from_dict(o) for o in data.get("objects") or ()),
            references=tuple(MemoryReference.from_dict(r) for r in data.get("references") or ()),
            total_size=data.get("totalSize"),
            metadata=data.get("metadata") or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "timestamp": self.timestamp,
            "objects": [o.to_dict() for o in self.objects],
            "references": [r.to_dict() for r in self.references],
            "totalSize": self.total_size,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ChangedObject:
    """Same object id present in both snapshots with a different size or retain count."""
    before: MemoryObject
    after: MemoryObject
    size_delta: int
    change_rate: float

    @classmethod
    def between(cls, before: MemoryObject, after: MemoryObject) -> "ChangedObject":
        delta = after.size - before.size
        return cls(
            before=before,
            after=after,
            size_delta=delta,
            change_rate=abs(delta) / max(before.size, 1),
        )


@dataclass(frozen=True)
class SnapshotDiff:
    """Result of comparing a base snapshot against a later target snapshot."""
    base_snapshot_id: str
    target_snapshot_id: str
    added: Tuple[MemoryObject, ...] = ()
    removed: Tuple[MemoryObject, ...] = ()
    changed: Tuple[ChangedObject, ...] = ()
    leak_candidates: Tuple[MemoryObject, ...] = ()
    total_size_delta: int = 0
    total_objects_delta: int = 0
    total_references_delta: int = 0
    diff_version: str = DIFF_VERSION
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    @cached_property
    def _changed_by_id(self) -> Dict[str, ChangedObject]:
        return {change.after.id: change for change in self.changed}

    def change_for(self, object_id: str) -> Optional[ChangedObject]:
        """The changed entry for an object id, if it changed."""
        return self._changed_by_id.get(object_id)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "diffVersion": self.diff_version,
            "baseSnapshotId": self.base_snapshot_id,
            "targetSnapshotId": self.target_snapshot_id,
            "added": [o.to_dict() for o in self.added],
            "removed": [o.to_dict() for o in self.removed],
            "changed": [
                {
                    "before": c.before.to_dict(),
                    "after": c.after.to_dict(),
                    "sizeDelta": c.size_delta,
                    "changeRate": c.change_rate,
                }
                for c in self.changed
            ],
            "leakCandidates": [o.id for o in self.leak_candidates],
            "totalSizeDelta": self.total_size_delta,
            "totalObjectsDelta": self.total_objects_delta,
            "totalReferencesDelta": self.total_references_delta,
        }


def identify_leak_candidates(added: Iterable[MemoryObject],
                             changed: Iterable[ChangedObject],
                             thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> Tuple[MemoryObject, ...]:
    """
    Coarse first-pass filter; over-inclusive on purpose.

    Union (first seen order, de-duplicated by id) of:
      - added objects larger than ``added_min_size`` that are still retained
      - changed objects that grew by more than ``changed_min_delta`` bytes
        and more than ``changed_min_rate``
      - added component instances that are still retained
    """
    added = list(added)
    candidates: Dict[str, MemoryObject] = {}

    for obj in added:
        if obj.size > thresholds.added_min_size and obj.retained_count > 0:
            candidates.setdefault(obj.id, obj)

    for change in changed:
        if (change.size_delta > thresholds.changed_min_delta
                and change.change_rate > thresholds.changed_min_rate):
            candidates.setdefault(change.after.id, change.after)

    for obj in added:
        if obj.type is MemoryObjectType.COMPONENT_INSTANCE and obj.retained_count > 0:
            candidates.setdefault(obj.id, obj)

    return tuple(candidates.values())


def compare_snapshots(base: MemorySnapshot,
                      target: MemorySnapshot,
                      thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> SnapshotDiff:
    """
    Diff two snapshots by object id.

    Object identity across snapshots is trusted: the same logical heap
    object must carry the same id in both. Output lists are ordered by
    object id so the diff does not depend on input ordering.
    """
    base_index = base._objects_by_id
    target_index = target._objects_by_id

    added: List[MemoryObject] = []
    changed: List[ChangedObject] = []
    for obj_id in sorted(target_index):
        after = target_index[obj_id]
        before = base_index.get(obj_id)
        if before is None:
            added.append(after)
        elif before.size != after.size or before.retained_count != after.retained_count:
            changed.append(ChangedObject.between(before, after))

    removed = [base_index[obj_id] for obj_id in sorted(base_index) if obj_id not in target_index]

    return SnapshotDiff(
        base_snapshot_id=base.id,
        target_snapshot_id=target.id,
        added=tuple(added),
        removed=tuple(removed),
        changed=tuple(changed),
        leak_candidates=identify_leak_candidates(added, changed, thresholds),
        total_size_delta=target.total_size - base.total_size,
        total_objects_delta=target.object_count - base.object_count,
        total_references_delta=target.reference_count - base.reference_count,
    )
