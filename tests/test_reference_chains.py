#=============================================================================
# File        : tests/test_reference_chains.py
# Project     : LeakScope v1.0
# Component   : Reference Chain Test Suite
# Description : Retention path tracing and chain annotation
#               • Bounded search and simplification
#               • Chain types, abstract paths and visualization
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-08-19
#=============================================================================

"""
Tests for retention path tracing and chain annotation.
"""

import pytest

from leakscope.config import LeakThresholds, ReferenceChainConfig
from leakscope.detectors.chains import (
    ReferenceChainType,
    determine_chain_type,
    find_retention_paths,
    generate_abstract_path,
    generate_reference_chain_visualization,
    identify_key_nodes,
    simplify_reference_path,
    trace_reference_chains,
)
from leakscope.snapshot import MemoryObjectType

from builders import linear_chain, obj, ref, root, snap


def assert_rooted_and_connected(paths, snapshot, object_id):
    for path in paths:
        assert snapshot.get_object(path[0].source_id).type is MemoryObjectType.GC_ROOT
        assert path[-1].target_id == object_id
        for earlier, later in zip(path, path[1:]):
            assert earlier.target_id == later.source_id


class TestRetentionPaths:
    """Backward search from a leaked object to GC roots."""

    def test_unreachable_object_has_no_chains(self):
        s = snap("s", root(), obj("orphan", size=100))
        assert trace_reference_chains("orphan", s) == []

    def test_gc_root_and_unknown_ids_have_no_paths(self):
        s = snap("s", root(), obj("a"), references=[ref("root", "a")])
        assert find_retention_paths("root", s) == []
        assert find_retention_paths("missing", s) == []

    def test_diamond_yields_one_path_per_route(self):
        s = snap("s", root(), obj("a"), obj("b"), obj("c"), obj("leak"), references=[
            ref("root", "a"), ref("root", "b"), ref("a", "c"), ref("b", "c"), ref("c", "leak"),
        ])

        paths = find_retention_paths("leak", s)

        assert len(paths) == 2
        assert_rooted_and_connected(paths, s, "leak")
        assert sorted(p[0].target_id for p in paths) == ["a", "b"]

    def test_cycles_terminate(self):
        s = snap("s", root(), obj("a"), obj("b"), obj("leak"), references=[
            ref("root", "a"), ref("a", "b"), ref("b", "a"), ref("b", "leak"),
        ])

        paths = find_retention_paths("leak", s)

        assert [[r.target_id for r in p] for p in paths] == [["a", "b", "leak"]]

    def test_search_stops_at_max_paths(self):
        roots = [root(f"r{i}", name=f"root{i}") for i in range(5)]
        s = snap("s", *roots, obj("leak"), references=[ref(f"r{i}", "leak") for i in range(5)])

        assert len(find_retention_paths("leak", s, max_paths=2)) == 2
        assert len(trace_reference_chains("leak", s, ReferenceChainConfig(max_paths=3))) == 3

    def test_paths_never_exceed_max_length(self):
        s, _ = linear_chain("s", hops=4)

        assert find_retention_paths("leak", s, max_path_length=3) == []
        paths = find_retention_paths("leak", s, max_path_length=4)
        assert len(paths) == 1 and len(paths[0]) == 4

    def test_every_traced_chain_starts_at_a_root_and_ends_at_the_object(self):
        s = snap("s", root("r1"), root("r2", name="document"), obj("mid"), obj("x"), obj("leak"),
                 references=[ref("r1", "mid"), ref("r2", "x"), ref("x", "mid"), ref("mid", "leak"),
                             ref("x", "leak")])

        chains = trace_reference_chains("leak", s, ReferenceChainConfig(simplify_paths=False))

        assert chains
        assert_rooted_and_connected([c.path for c in chains], s, "leak")
        for chain in chains:
            assert chain.root.type is MemoryObjectType.GC_ROOT
            assert chain.leak_object.id == "leak"


class TestSimplification:
    """Collapsing uninteresting hops."""

    def test_short_paths_are_unchanged(self):
        s, path = linear_chain("s", hops=3)
        assert simplify_reference_path(path, s) == path

    def test_anonymous_run_collapses_into_one_marker(self):
        s, path = linear_chain("s", hops=6)

        simplified = simplify_reference_path(path, s)

        assert len(simplified) == 3
        assert simplified[0] == path[0]
        assert simplified[-1] == path[-1]
        marker = simplified[1]
        assert marker.type == "skipped"
        assert marker.name == "[... skipped 4 references]"
        assert marker.source_id == "n1"
        assert marker.target_id == "n5"

    def test_named_and_key_type_hops_are_kept(self):
        objects = [root(), obj("n1"), obj("n2", type=MemoryObjectType.CLOSURE), obj("n3"),
                   obj("n4"), obj("leak")]
        path = [ref("root", "n1"), ref("n1", "n2"), ref("n2", "n3", name="captured"),
                ref("n3", "n4"), ref("n4", "leak")]
        s = snap("s", *objects, references=path)

        simplified = simplify_reference_path(path, s)

        assert simplified[:3] == path[:3]
        assert simplified[3].type == "skipped"
        assert simplified[4] == path[4]

    def test_long_gaps_get_a_midpoint(self):
        s, path = linear_chain("s", hops=14)

        simplified = simplify_reference_path(path, s, LeakThresholds())

        assert [r.type for r in simplified] == [None, "skipped", None, "skipped", None]
        assert simplified[2] == path[6]
        assert simplified[1].name == "[... skipped 5 references]"
        assert simplified[3].name == "[... skipped 6 references]"


class TestChainAnnotation:
    """Chain typing, key nodes, explanations and abstract paths."""

    @pytest.mark.parametrize("types, names, expected", [
        ([MemoryObjectType.DOM_NODE, MemoryObjectType.DOM_NODE], [], ReferenceChainType.DOM_CHAIN),
        ([MemoryObjectType.EVENT_LISTENER, MemoryObjectType.OBJECT], [], ReferenceChainType.EVENT_CHAIN),
        ([MemoryObjectType.CLOSURE, MemoryObjectType.OBJECT], [], ReferenceChainType.CLOSURE_CHAIN),
        ([MemoryObjectType.OBJECT, MemoryObjectType.OBJECT, MemoryObjectType.OBJECT,
          MemoryObjectType.COMPONENT_INSTANCE], [], ReferenceChainType.COMPONENT_CHAIN),
        ([MemoryObjectType.TIMER, MemoryObjectType.OBJECT], [], ReferenceChainType.TIMER_CHAIN),
        ([MemoryObjectType.OBJECT, MemoryObjectType.OBJECT], ["ReduxStore"], ReferenceChainType.STORE_CHAIN),
        ([MemoryObjectType.OBJECT, MemoryObjectType.OBJECT], [], ReferenceChainType.MIXED_CHAIN),
    ])
    def test_chain_type_rules(self, types, names, expected):
        objects = [root()] + [obj(f"o{i}", type=t) for i, t in enumerate(types)]
        if names:
            objects[1] = obj("o0", type=types[0], name=names[0])
        assert determine_chain_type(objects) is expected

    def test_dom_rule_beats_event_rule(self):
        objects = [root(), obj("d", type=MemoryObjectType.DOM_NODE),
                   obj("l", type=MemoryObjectType.EVENT_LISTENER)]
        assert determine_chain_type(objects) is ReferenceChainType.DOM_CHAIN

    def test_store_rule_reads_reference_names(self):
        objects = [root(), obj("a"), obj("b")]
        path = [ref("root", "a", "appContext"), ref("a", "b")]
        assert determine_chain_type(objects, path) is ReferenceChainType.STORE_CHAIN

    def test_key_nodes_fall_back_to_root_and_leak(self):
        objects = [root(name=None), obj("a", size=10), obj("leak", size=10)]
        key_nodes = identify_key_nodes(objects, ReferenceChainType.DOM_CHAIN)
        assert [o.id for o in key_nodes] == ["root", "leak"]

    def test_event_chain_annotations(self):
        listener = obj("l1", type=MemoryObjectType.EVENT_LISTENER, name="onResize", size=200)
        s = snap("s", root(), listener, references=[ref("root", "l1", "listeners")])

        chains = trace_reference_chains("l1", s)

        assert len(chains) == 1
        chain = chains[0]
        assert chain.id == "chain-0-l1"
        assert chain.type is ReferenceChainType.EVENT_CHAIN
        assert chain.length == 1
        assert [o.id for o in chain.key_nodes] == ["l1"]
        assert chain.abstract_path == "window.listeners(EventListener(onResize))"
        assert "event listener" in chain.explanation
        assert "listeners" in chain.fix_suggestion

    def test_chain_ids_stay_distinct_for_ids_sharing_a_prefix(self):
        s = snap("s", root(),
                 obj("component-alpha", type=MemoryObjectType.COMPONENT_INSTANCE),
                 obj("component-beta", type=MemoryObjectType.COMPONENT_INSTANCE),
                 references=[ref("root", "component-alpha", "a"), ref("root", "component-beta", "b")])

        ids = [chain.id
               for object_id in ("component-alpha", "component-beta")
               for chain in trace_reference_chains(object_id, s)]

        assert ids == ["chain-0-component-alpha", "chain-0-component-beta"]

    def test_abstract_path_uses_index_for_unnamed_references(self):
        objects = [root(), obj("arr", type=MemoryObjectType.ARRAY, metadata={"length": 3}),
                   obj("fn", type=MemoryObjectType.CLOSURE)]
        path = [ref("root", "arr", "items"), ref("arr", "fn")]
        assert generate_abstract_path(path, objects) == "window.items(Array[3]).[1](Closure(anonymous))"

    def test_optional_annotations_can_be_disabled(self):
        s = snap("s", root(), obj("a"), references=[ref("root", "a")])
        config = ReferenceChainConfig(identify_key_nodes=False, generate_abstract_path=False,
                                      generate_fix_suggestions=False)

        chain = trace_reference_chains("a", s, config)[0]

        assert chain.key_nodes is None
        assert chain.abstract_path is None
        assert chain.fix_suggestion is None
        assert chain.explanation

    def test_simplified_chain_objects_follow_the_marker(self):
        s, _ = linear_chain("s", hops=6, leak_type=MemoryObjectType.DOM_NODE)

        chain = trace_reference_chains("leak", s)[0]

        assert [o.id for o in chain.objects] == ["root", "n1", "n5", "leak"]
        assert chain.path[1].type == "skipped"

    def test_visualization_projects_nodes_and_links(self):
        listener = obj("l1", type=MemoryObjectType.EVENT_LISTENER, name="onResize")
        s = snap("s", root(), listener, references=[ref("root", "l1", "listeners")])

        graphs = generate_reference_chain_visualization(trace_reference_chains("l1", s))

        assert len(graphs) == 1
        graph = graphs[0]
        assert [n["id"] for n in graph["nodes"]] == ["root", "l1"]
        assert [n["isKeyNode"] for n in graph["nodes"]] == [False, True]
        assert graph["links"] == [{"source": "root", "target": "l1", "name": "listeners", "type": None}]
        assert graph["type"] == "event-chain"
