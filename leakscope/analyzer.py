#=============================================================================
# File        : leakscope/analyzer.py
# Project     : LeakScope v1.0
# Component   : Analyzer - End to End Leak Analysis
# Description : Top level composition of the detection components
#               • Optional analysis snapshot
#               • Framework dispatch (React lifecycle aware or generic)
#               • Retention chain tracing for every confirmed leak
#               • Report sink hand-off and JSON chain export
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, asyncio, JSON
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: json, logging, time, dataclasses, typing, config, core,
#               report, snapshot, detectors, frameworks
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_analyzer.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import AnalyzerConfig, Framework, ReactLeakDetectionConfig
from .core import LeakDetector
from .report import LeakDetectionResult
from .snapshot import MemorySnapshot
from .detectors.chains import ReferenceChainInfo, trace_reference_chains
from .frameworks.react import ReactLeakDetector, get_react_detector

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


ReportSink = Callable[[LeakDetectionResult, Sequence[ReferenceChainInfo]], Any]


@dataclass(frozen=True)
class MemoryLeakAnalysisResult:
    """Detection result, the chains traced for its leaks, and whatever the report sink returned."""
    leak_detection_result: LeakDetectionResult
    reference_chains: Tuple[ReferenceChainInfo, ...] = ()
    snapshot: Optional[MemorySnapshot] = None
    report: Any = None

    @property
    def has_leak(self) -> bool:
        return self.leak_detection_result.has_leak

    def to_dict(self) -> Dict[str, Any]:
        return {
            'leakDetectionResult': self.leak_detection_result.to_dict(),
            'referenceChains': [chain.to_dict() for chain in self.reference_chains],
            'snapshotId': self.snapshot.id if self.snapshot is not None else None,
            'report': self.report,
        }


async def _detect(config: AnalyzerConfig,
                  detector: LeakDetector,
                  react_detector: Optional[ReactLeakDetector]) -> LeakDetectionResult:
    detection_config = config.detection_config()

    if config.framework is Framework.REACT and config.component_name:
        if react_detector is None:
            react_config = (detection_config if isinstance(detection_config, ReactLeakDetectionConfig)
                            else ReactLeakDetectionConfig())
            react_detector = ReactLeakDetector(detector, react_config, config.leak_pattern)
        return await react_detector.detect_react_component_leak(
            config.component_name, config.component_path,
            detection_config if isinstance(detection_config, ReactLeakDetectionConfig) else None,
            config.leak_pattern)

    if config.component_name:
        return await detector.detect_component_leak(
            config.component_name, config.component_path, detection_config, config.leak_pattern)
    return await detector.detect_memory_leak(detection_config, config.leak_pattern)


async def analyze_memory_leak(config: Optional[AnalyzerConfig] = None,
                              detector: Optional[LeakDetector] = None,
                              react_detector: Optional[ReactLeakDetector] = None,
                              report_sink: Optional[ReportSink] = None) -> MemoryLeakAnalysisResult:
    """
    Detect leaks and trace how each one is retained.

    React with a component name goes through the lifecycle aware
    detector; everything else uses component or whole heap detection.
    Chains are traced on the session's after snapshot, falling back to
    the analysis snapshot.
    """
    config = config or AnalyzerConfig()
    if detector is None:
        # Without an explicit detector, lifecycle records come from the shared React detector
        if react_detector is None:
            react_detector = get_react_detector()
        detector = react_detector.detector

    snapshot: Optional[MemorySnapshot] = None
    if config.auto_snapshot:
        scope = config.component_name or "global"
        snapshot = await detector.store.create(f"leak-analysis-{scope}-{int(time.time() * 1000)}")

    result = await _detect(config, detector, react_detector)

    graph = None
    if result.target_snapshot_id is not None:
        graph = detector.store.get(result.target_snapshot_id)
    if graph is None:
        graph = snapshot

    chains: List[ReferenceChainInfo] = []
    if result.has_leak and graph is not None:
        leaks = []
        for leak in result.leaks:
            if leak.object.id not in graph:
                leaks.append(leak)
                continue
            leak_chains = trace_reference_chains(leak.object.id, graph, config.reference_chain)
            chains.extend(leak_chains)
            if leak_chains:
                leak = leak.with_updates(retention_path=leak_chains[0].path)
            leaks.append(leak)
        result = result.with_leaks(leaks)

    report = None
    if config.generate_report and chains and report_sink is not None:
        report = report_sink(result, chains)
    elif config.generate_report and chains:
        _logger.debug(f"{len(chains)} reference chain(s) traced; no report sink configured")

    return MemoryLeakAnalysisResult(
        leak_detection_result=result,
        reference_chains=tuple(chains),
        snapshot=snapshot,
        report=report,
    )


def export_reference_chains(chains: Sequence[ReferenceChainInfo], indent: int = 2) -> str:
    """Compact JSON export of chains: ids, type, length, root/leak summaries, guidance."""
    def _brief(obj):
        return {'id': obj.id, 'type': obj.type.value, 'name': obj.name, 'size': obj.size}

    return json.dumps([
        {
            'id': chain.id,
            'type': chain.type.value,
            'length': chain.length,
            'rootObject': _brief(chain.root),
            'leakObject': _brief(chain.leak_object),
            'explanation': chain.explanation,
            'fixSuggestion': chain.fix_suggestion,
        }
        for chain in chains
    ], indent=indent)
