#=============================================================================
# File        : leakscope/detectors/chains.py
# Project     : LeakScope v1.0
# Component   : Reference Chain Tracer - Retention Path Reconstruction
# Description : Explains why a leaked object is still alive
#               • Bounded backward search from the object to GC roots
#               • Path simplification with skipped-run markers
#               • Chain typing, key nodes and abstract path rendering
#               • Templated explanation and fix text per chain type
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, collections.deque
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: logging, collections, dataclasses, enum, typing, config,
#               snapshot
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_reference_chains.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import DEFAULT_THRESHOLDS, LeakThresholds, ReferenceChainConfig
from ..snapshot import MemoryObject, MemoryObjectType, MemoryReference, MemorySnapshot

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


SKIPPED_REFERENCE_TYPE = "skipped"

_KEY_TYPES = (
    MemoryObjectType.DOM_NODE,
    MemoryObjectType.COMPONENT_INSTANCE,
    MemoryObjectType.EVENT_LISTENER,
    MemoryObjectType.TIMER,
    MemoryObjectType.CLOSURE,
)

_STORE_TAGS = ("store", "Store", "context", "Context")


class ReferenceChainType(Enum):
    """What kind of objects dominate a retention path."""
    DOM_CHAIN = "dom-chain"
    EVENT_CHAIN = "event-chain"
    CLOSURE_CHAIN = "closure-chain"
    COMPONENT_CHAIN = "component-chain"
    TIMER_CHAIN = "timer-chain"
    STORE_CHAIN = "store-chain"
    MIXED_CHAIN = "mixed-chain"


@dataclass(frozen=True)
class ReferenceChainInfo:
    """One retention path from a GC root to a leaked object, with annotations."""
    id: str
    type: ReferenceChainType
    path: Tuple[MemoryReference, ...]
    objects: Tuple[MemoryObject, ...]
    root: MemoryObject
    leak_object: MemoryObject
    key_nodes: Optional[Tuple[MemoryObject, ...]] = None
    explanation: Optional[str] = None
    abstract_path: Optional[str] = None
    fix_suggestion: Optional[str] = None

    @property
    def length(self) -> int:
        return len(self.path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'length': self.length,
            'path': [ref.to_dict() for ref in self.path],
            'objects': [obj.id for obj in self.objects],
            'root': self.root.id,
            'leakObject': self.leak_object.id,
            'keyNodes': [obj.id for obj in self.key_nodes] if self.key_nodes is not None else None,
            'explanation': self.explanation,
            'abstractPath': self.abstract_path,
            'fixSuggestion': self.fix_suggestion,
        }


def _has_store_tag(name: Optional[str]) -> bool:
    return bool(name) and any(tag in name for tag in _STORE_TAGS)


def find_retention_paths(object_id: str,
                         snapshot: MemorySnapshot,
                         max_paths: int = 10,
                         max_path_length: int = 50) -> List[List[MemoryReference]]:
    """
    Backward breadth-first search from ``object_id`` to GC roots.

    Each path is returned root first and ends at ``object_id``. Every
    non-root object is expanded at most once, so the search is linear in
    the graph size and terminates on cycles; breadth-first order means the
    first route found to any object is a shortest one. The search stops as
    soon as ``max_paths`` paths are found and never expands past
    ``max_path_length`` hops.
    """
    target = snapshot.get_object(object_id)
    if target is None or target.type is MemoryObjectType.GC_ROOT:
        return []

    paths: List[List[MemoryReference]] = []
    visited = {object_id}
    # (object id, references from that object down to the target)
    queue = deque([(object_id, ())])

    while queue:
        node_id, suffix = queue.popleft()
        if len(suffix) >= max_path_length:
            continue
        for ref in snapshot.incoming(node_id):
            source = snapshot.get_object(ref.source_id)
            if source is None:
                continue
            path = (ref,) + suffix
            if source.type is MemoryObjectType.GC_ROOT:
                paths.append(list(path))
                if len(paths) >= max_paths:
                    return paths
                continue
            if source.id in visited:
                continue
            visited.add(source.id)
            queue.append((source.id, path))

    return paths


def simplify_reference_path(path: Sequence[MemoryReference],
                            snapshot: MemorySnapshot,
                            thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> List[MemoryReference]:
    """
    Collapse uninteresting hops of a long path.

    First and last references always stay; intermediates stay when their
    target is a key type, the reference is named, or the target is large.
    Runs of dropped references become one synthetic ``skipped`` reference.
    """
    path = list(path)
    if len(path) <= thresholds.simplify_min_hops:
        return path

    keep = {0, len(path) - 1}
    for i in range(1, len(path) - 1):
        ref = path[i]
        target = snapshot.get_object(ref.target_id)
        if target is None:
            continue
        if target.type in _KEY_TYPES or ref.name or target.size > thresholds.key_node_size:
            keep.add(i)

    indices = sorted(keep)
    for start, end in zip(indices, indices[1:]):
        if end - start > thresholds.simplify_max_gap:
            keep.add((start + end) // 2)

    simplified: List[MemoryReference] = []
    last = -1
    for index in sorted(keep):
        if last >= 0 and index - last > 1:
            skipped = index - last - 1
            simplified.append(MemoryReference(
                source_id=path[last].target_id,
                target_id=path[index].source_id,
                name=f"[... skipped {skipped} references]",
                type=SKIPPED_REFERENCE_TYPE,
            ))
        simplified.append(path[index])
        last = index
    return simplified


def objects_from_path(path: Sequence[MemoryReference], snapshot: MemorySnapshot) -> List[MemoryObject]:
    """Resolve the root (first source) then every reference target, in order."""
    if not path:
        return []
    ids = [path[0].source_id] + [ref.target_id for ref in path]
    return [obj for obj in (snapshot.get_object(i) for i in ids) if obj is not None]


def determine_chain_type(objects: Sequence[MemoryObject],
                         path: Sequence[MemoryReference] = ()) -> ReferenceChainType:
    """First matching rule wins; see ReferenceChainType for the vocabulary."""
    counts: Dict[MemoryObjectType, int] = {}
    for obj in objects:
        counts[obj.type] = counts.get(obj.type, 0) + 1
    third = len(objects) / 3

    dom = counts.get(MemoryObjectType.DOM_NODE, 0)
    if dom > 0 and dom >= third:
        return ReferenceChainType.DOM_CHAIN
    if counts.get(MemoryObjectType.EVENT_LISTENER, 0) > 0:
        return ReferenceChainType.EVENT_CHAIN
    closures = counts.get(MemoryObjectType.CLOSURE, 0)
    if closures > 0 and closures >= third:
        return ReferenceChainType.CLOSURE_CHAIN
    if counts.get(MemoryObjectType.COMPONENT_INSTANCE, 0) > 0:
        return ReferenceChainType.COMPONENT_CHAIN
    if counts.get(MemoryObjectType.TIMER, 0) > 0:
        return ReferenceChainType.TIMER_CHAIN
    if any(_has_store_tag(obj.name) for obj in objects) or any(
            ref.type != SKIPPED_REFERENCE_TYPE and _has_store_tag(ref.name) for ref in path):
        return ReferenceChainType.STORE_CHAIN
    return ReferenceChainType.MIXED_CHAIN


_KEY_NODE_FILTERS = {
    ReferenceChainType.DOM_CHAIN: lambda o: o.type is MemoryObjectType.DOM_NODE,
    ReferenceChainType.EVENT_CHAIN: lambda o: o.type in (MemoryObjectType.EVENT_LISTENER, MemoryObjectType.DOM_NODE),
    ReferenceChainType.CLOSURE_CHAIN: lambda o: o.type in (MemoryObjectType.CLOSURE, MemoryObjectType.FUNCTION),
    ReferenceChainType.COMPONENT_CHAIN: lambda o: o.type is MemoryObjectType.COMPONENT_INSTANCE,
    ReferenceChainType.TIMER_CHAIN: lambda o: o.type in (MemoryObjectType.TIMER, MemoryObjectType.CLOSURE),
    ReferenceChainType.STORE_CHAIN: lambda o: _has_store_tag(o.name),
}


def identify_key_nodes(objects: Sequence[MemoryObject],
                       chain_type: ReferenceChainType,
                       thresholds: LeakThresholds = DEFAULT_THRESHOLDS) -> List[MemoryObject]:
    keep = _KEY_NODE_FILTERS.get(
        chain_type, lambda o: o.size > thresholds.key_node_size or bool(o.name))
    key_nodes = [obj for obj in objects if keep(obj)]
    if not key_nodes and len(objects) >= 2:
        key_nodes = [objects[0], objects[-1]]
    return key_nodes


def generate_path_explanation(path: Sequence[MemoryReference],
                              objects: Sequence[MemoryObject],
                              chain_type: ReferenceChainType) -> str:
    if not path or not objects:
        return "No retention path explanation available."

    root = objects[0].name or "the root object"
    leak = objects[-1].name or "the leaked object"

    if chain_type is ReferenceChainType.DOM_CHAIN:
        return (f"{objects[0].name or 'A DOM root'} reaches {objects[-1].name or 'the target DOM node'} "
                f"through DOM references. The node is probably kept outside the document after "
                f"its component unmounted.")
    if chain_type is ReferenceChainType.EVENT_CHAIN:
        return (f"{root} reaches {leak} through an event listener. This usually means a listener "
                f"was not removed when its component unmounted.")
    if chain_type is ReferenceChainType.CLOSURE_CHAIN:
        return (f"{root} reaches {leak} through closures. A function probably captured variables "
                f"that should not live this long.")
    if chain_type is ReferenceChainType.COMPONENT_CHAIN:
        components = " -> ".join(
            obj.component_name or "unnamed component"
            for obj in objects if obj.type is MemoryObjectType.COMPONENT_INSTANCE)
        return (f"{root} reaches {leak} through the component chain {components}. References "
                f"between components were probably not cleaned up.")
    if chain_type is ReferenceChainType.TIMER_CHAIN:
        return (f"{root} reaches {leak} through a timer. This usually means a timer was not "
                f"cleared when its component unmounted.")
    if chain_type is ReferenceChainType.STORE_CHAIN:
        return (f"{root} reaches {leak} through a store or context. Global state probably keeps "
                f"a component instance or DOM node.")
    return f"{root} reaches {leak} in {len(path)} references."


def _abstract_label(obj: MemoryObject) -> str:
    t = obj.type
    if t is MemoryObjectType.DOM_NODE:
        return obj.name or "DOMNode"
    if t is MemoryObjectType.COMPONENT_INSTANCE:
        return obj.component_name or "Component"
    if t is MemoryObjectType.EVENT_LISTENER:
        return f"EventListener({obj.name or 'unknown'})"
    if t is MemoryObjectType.TIMER:
        return f"Timer({'interval' if obj.meta('interval') else 'timeout'})"
    if t is MemoryObjectType.CLOSURE:
        return f"Closure({obj.name or 'anonymous'})"
    if t is MemoryObjectType.FUNCTION:
        return f"Function({obj.name or 'anonymous'})"
    if t is MemoryObjectType.ARRAY:
        return f"Array[{obj.meta('length') or '?'}]"
    if t is MemoryObjectType.MAP:
        return f"Map({obj.meta('size') or '?'})"
    if t is MemoryObjectType.SET:
        return f"Set({obj.meta('size') or '?'})"
    return obj.name or t.value


def generate_abstract_path(path: Sequence[MemoryReference], objects: Sequence[MemoryObject]) -> str:
    """Compact path such as ``window.listeners(EventListener(onResize))``."""
    if not path or not objects:
        return ""
    segments = [_abstract_label(objects[0])]
    for i, ref in enumerate(path):
        segments.append(f".{ref.name}" if ref.name else f".[{i}]")
        if i + 1 < len(objects):
            segments.append(f"({_abstract_label(objects[i + 1])})")
    return "".join(segments)


_CHAIN_FIXES = {
    ReferenceChainType.DOM_CHAIN:
        "Remove or detach every DOM node the component created when it unmounts, and check for "
        "elements appended to document.body that are never removed.",
    ReferenceChainType.EVENT_CHAIN:
        "Remove listeners in the unmount path (componentWillUnmount or the useEffect cleanup), "
        "especially listeners attached to window or document.",
    ReferenceChainType.COMPONENT_CHAIN:
        "Do not keep child component instances in parent state. Communicate through context or "
        "a state library instead of holding instances directly.",
    ReferenceChainType.TIMER_CHAIN:
        "Clear every timer with clearTimeout/clearInterval when the component unmounts; "
        "intervals keep firing until cleared.",
    ReferenceChainType.STORE_CHAIN:
        "Keep non-serialisable data such as component instances and DOM nodes out of global "
        "stores and contexts, and select only the data consumers need.",
}


def generate_fix_suggestion(chain_type: ReferenceChainType, objects: Sequence[MemoryObject]) -> str:
    if chain_type in _CHAIN_FIXES:
        return _CHAIN_FIXES[chain_type]

    if chain_type is ReferenceChainType.CLOSURE_CHAIN:
        in_effect = any(
            obj.type is MemoryObjectType.CLOSURE and "useEffect" in str(obj.meta("reactHook") or "")
            for obj in objects)
        if in_effect:
            return ("Check the dependency arrays of useEffect, useMemo and useCallback. Every "
                    "captured value must be listed, or kept in a useRef when it is mutable.")
        return ("Check whether closures capture large objects or component instances; release "
                "them or hold them weakly when no longer needed.")

    types = {obj.type for obj in objects}
    if MemoryObjectType.TIMER in types:
        return "Clear every timer that was created."
    if MemoryObjectType.EVENT_LISTENER in types:
        return "Remove every event listener that was added."
    if MemoryObjectType.CLOSURE in types:
        return "Review variables captured by closures and avoid holding unneeded objects."
    return ("Find long-lived references to resources that are no longer needed and release them "
            "so the garbage collector can reclaim them.")


def trace_reference_chains(object_id: str,
                           snapshot: MemorySnapshot,
                           config: Optional[ReferenceChainConfig] = None) -> List[ReferenceChainInfo]:
    """
    Reconstruct and annotate the retention paths of one object.

    Every returned chain starts at a GC root and ends at ``object_id``.
    An object with no route to a root yields an empty list.
    """
    config = config or ReferenceChainConfig()
    thresholds = config.thresholds

    paths = find_retention_paths(object_id, snapshot, config.max_paths, config.max_path_length)
    paths = [p for p in paths if len(p) <= config.max_path_length][:config.max_paths]
    if not paths:
        _logger.debug(f"No retention path from a GC root to {object_id}")
        return []

    if config.simplify_paths:
        paths = [simplify_reference_path(p, snapshot, thresholds) for p in paths]

    chains: List[ReferenceChainInfo] = []
    for index, path in enumerate(paths):
        objects = objects_from_path(path, snapshot)
        chain_type = determine_chain_type(objects, path)
        chains.append(ReferenceChainInfo(
            id=f"chain-{index}-{object_id}",
            type=chain_type,
            path=tuple(path),
            objects=tuple(objects),
            root=objects[0],
            leak_object=objects[-1],
            key_nodes=(tuple(identify_key_nodes(objects, chain_type, thresholds))
                       if config.identify_key_nodes else None),
            explanation=generate_path_explanation(path, objects, chain_type),
            abstract_path=(generate_abstract_path(path, objects)
                           if config.generate_abstract_path else None),
            fix_suggestion=(generate_fix_suggestion(chain_type, objects)
                            if config.generate_fix_suggestions else None),
        ))
    return chains


def generate_reference_chain_visualization(chains: Sequence[ReferenceChainInfo]) -> List[Dict[str, Any]]:
    """Project chains into plain node/link dictionaries for a graph renderer."""
    graphs = []
    for chain in chains:
        key_ids = {obj.id for obj in chain.key_nodes or ()}
        graphs.append({
            'id': chain.id,
            'type': chain.type.value,
            'nodes': [
                {
                    'id': obj.id,
                    'type': obj.type.value,
                    'name': obj.name or obj.type.value,
                    'size': obj.size,
                    'isKeyNode': obj.id in key_ids,
                }
                for obj in chain.objects
            ],
            'links': [
                {'source': ref.source_id, 'target': ref.target_id, 'name': ref.name, 'type': ref.type}
                for ref in chain.path
            ],
            'explanation': chain.explanation,
            'abstractPath': chain.abstract_path,
            'fixSuggestion': chain.fix_suggestion,
        })
    return graphs
