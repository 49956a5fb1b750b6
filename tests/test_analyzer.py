#=============================================================================
# File        : tests/test_analyzer.py
# Project     : LeakScope v1.0
# Component   : Analyzer Test Suite
# Description : End to end analysis and reference chain export
#               • Framework dispatch and chain tracing
#               • Report sink hand-off and JSON export
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-08-19
#=============================================================================

"""
Tests for end to end analysis and chain export.
"""

import asyncio
import json

from leakscope.analyzer import analyze_memory_leak, export_reference_chains
from leakscope.config import AnalyzerConfig, Framework, LeakDetectionConfig, ReactLeakDetectionConfig
from leakscope.detectors.chains import ReferenceChainType
from leakscope.frameworks.react import FrameworkLeakType, ReactLeakDetectionResult, get_react_detector
from leakscope.providers import ReplaySnapshotProvider
from leakscope.snapshot import MemoryObjectType
from leakscope.store import force_provider

from builders import obj, ref, root, snap

VUE = AnalyzerConfig(framework=Framework.VUE, leak_detection=LeakDetectionConfig(scan_interval_s=0))


def modal_snapshots():
    """Analysis snapshot, before snapshot, and an after snapshot with a retained modal."""
    analysis = snap("analysis", root())
    before = snap("before", root())
    after = snap(
        "after",
        root(),
        obj("app", name="App", size=500),
        obj("modal", type=MemoryObjectType.DOM_NODE, name="div#modal", size=60000,
            metadata={"detached": True}),
        references=[ref("root", "app", "app"), ref("app", "modal", "modal")],
    )
    return analysis, before, after


class TestAnalyzeMemoryLeak:
    """analyze_memory_leak composition."""

    def test_chains_are_traced_for_every_leak(self, replay):
        harness = replay(*modal_snapshots())
        received = []

        def sink(result, chains):
            received.append((result, list(chains)))
            return "leak-report.html"

        analysis = asyncio.run(analyze_memory_leak(VUE, detector=harness.detector, report_sink=sink))

        assert analysis.has_leak
        assert analysis.snapshot.id == "analysis"
        assert len(analysis.reference_chains) == 1
        chain = analysis.reference_chains[0]
        assert chain.type is ReferenceChainType.DOM_CHAIN
        assert chain.root.id == "root"
        assert chain.leak_object.id == "modal"

        leak = analysis.leak_detection_result.leaks[0]
        assert leak.retention_path == chain.path
        assert analysis.report == "leak-report.html"
        assert received[0][0] is analysis.leak_detection_result
        assert harness.provider.captured_labels[0].startswith("leak-analysis-global-")

    def test_no_report_when_disabled(self, replay):
        harness = replay(*modal_snapshots())
        calls = []

        analysis = asyncio.run(analyze_memory_leak(
            VUE.merge(generate_report=False), detector=harness.detector,
            report_sink=lambda result, chains: calls.append(result)))

        assert analysis.reference_chains
        assert analysis.report is None
        assert calls == []

    def test_without_auto_snapshot(self, replay):
        _, before, after = modal_snapshots()
        harness = replay(before, after)

        analysis = asyncio.run(analyze_memory_leak(VUE.merge(auto_snapshot=False), detector=harness.detector))

        assert analysis.snapshot is None
        assert analysis.has_leak
        assert len(analysis.reference_chains) == 1

    def test_clean_run_has_no_chains(self, replay):
        harness = replay(snap("a", root()), snap("b", root()), snap("c", root()))

        analysis = asyncio.run(analyze_memory_leak(VUE, detector=harness.detector))

        assert not analysis.has_leak
        assert analysis.reference_chains == ()
        assert analysis.to_dict()["referenceChains"] == []

    def test_react_component_goes_through_the_lifecycle_detector(self, replay):
        after = snap("after", root(),
                     obj("inst", type=MemoryObjectType.COMPONENT_INSTANCE, size=800,
                         component_name="Counter"),
                     references=[ref("root", "inst", "fiber")])
        harness = replay(snap("analysis", root()), snap("before", root()), after)
        config = AnalyzerConfig(framework=Framework.REACT, component_name="Counter",
                                leak_detection=ReactLeakDetectionConfig(scan_interval_s=0))

        analysis = asyncio.run(analyze_memory_leak(config, detector=harness.detector))

        assert isinstance(analysis.leak_detection_result, ReactLeakDetectionResult)
        assert [l.object.id for l in analysis.leak_detection_result.leaks] == ["inst"]
        assert analysis.reference_chains[0].type is ReferenceChainType.COMPONENT_CHAIN
        assert harness.provider.captured_labels[1] == "component-Counter-before"
        assert harness.provider.gc_requests == 1

    def test_default_run_sees_lifecycles_on_the_shared_react_detector(self):
        after = snap("after", root(),
                     obj("inst", type=MemoryObjectType.COMPONENT_INSTANCE, size=800,
                         component_name="Widget", metadata={"stateUpdateAfterUnmount": True}),
                     references=[ref("root", "inst", "fiber")])
        force_provider(ReplaySnapshotProvider(
            [snap("mount", root()), snap("analysis", root()), snap("before", root()), after]))
        react = get_react_detector()

        async def lifecycle():
            await react.register_component_mount("w1", "Widget")
            react.register_hook_call("w1", "useEffect", has_cleanup=False, deps=["count"])
            config = AnalyzerConfig(component_name="Widget",
                                    leak_detection=ReactLeakDetectionConfig(scan_interval_s=0))
            return await analyze_memory_leak(config)

        analysis = asyncio.run(lifecycle())

        result = analysis.leak_detection_result
        assert isinstance(result, ReactLeakDetectionResult)
        assert [l.object.id for l in result.leaks] == ["inst"]
        assert result.mount_time is not None
        assert result.mount_time == react.get_lifecycle("w1").mount_time
        assert FrameworkLeakType.STATE_UPDATE_AFTER_UNMOUNT in result.framework_leak_types
        assert analysis.snapshot.id == "analysis"


class TestExport:
    """JSON export of reference chains."""

    def test_export_reference_chains(self, replay):
        harness = replay(*modal_snapshots())
        analysis = asyncio.run(analyze_memory_leak(VUE, detector=harness.detector))

        exported = json.loads(export_reference_chains(analysis.reference_chains))

        assert len(exported) == 1
        entry = exported[0]
        assert entry["type"] == "dom-chain"
        assert entry["length"] == 2
        assert entry["rootObject"] == {"id": "root", "type": "gc-root", "name": "window", "size": 0}
        assert entry["leakObject"]["id"] == "modal"
        assert entry["explanation"]
        assert entry["fixSuggestion"]

    def test_export_of_nothing(self):
        assert json.loads(export_reference_chains([])) == []
