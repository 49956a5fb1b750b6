#=============================================================================
# File        : leakscope/detectors/__init__.py
# Project     : LeakScope v1.0
# Component   : Detectors Package - Leak Classification and Tracing Exports
# Description : Package initialization for leak analysis detectors
#               • First-pass heuristic pattern and severity labelling
#               • Feature based leak pattern classification with stats
#               • Retention path tracing from GC roots
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Graph Search, Feature Matching
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: heuristics, patterns, chains
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_leak_patterns.py, tests/test_reference_chains.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from .heuristics import (
    determine_leak_pattern,
    generate_leak_guidance,
    determine_framework,
    extract_component_info,
    build_leak_info
)

from .patterns import (
    LeakFeature,
    FeatureRegistry,
    PatternMatch,
    LeakStats,
    LeakPatternClassifier,
    register_react_leak_features,
    create_default_registry,
    get_classifier,
    reset_classifier,
    identify_leak_pattern,
    analyze_leak_patterns,
    get_stats as get_pattern_stats,
    reset_stats as reset_pattern_stats,
    register_user_feedback
)

from .chains import (
    ReferenceChainType,
    ReferenceChainInfo,
    find_retention_paths,
    simplify_reference_path,
    determine_chain_type,
    identify_key_nodes,
    generate_path_explanation,
    generate_abstract_path,
    generate_fix_suggestion,
    trace_reference_chains,
    generate_reference_chain_visualization
)

__all__ = [
    # Heuristic exports
    "determine_leak_pattern",
    "generate_leak_guidance",
    "determine_framework",
    "extract_component_info",
    "build_leak_info",

    # Pattern classifier exports
    "LeakFeature",
    "FeatureRegistry",
    "PatternMatch",
    "LeakStats",
    "LeakPatternClassifier",
    "register_react_leak_features",
    "create_default_registry",
    "get_classifier",
    "reset_classifier",
    "identify_leak_pattern",
    "analyze_leak_patterns",
    "get_pattern_stats",
    "reset_pattern_stats",
    "register_user_feedback",

    # Reference chain exports
    "ReferenceChainType",
    "ReferenceChainInfo",
    "find_retention_paths",
    "simplify_reference_path",
    "determine_chain_type",
    "identify_key_nodes",
    "generate_path_explanation",
    "generate_abstract_path",
    "generate_fix_suggestion",
    "trace_reference_chains",
    "generate_reference_chain_visualization"
]
