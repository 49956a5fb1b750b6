#=============================================================================
# File        : leakscope/frameworks/__init__.py
# Project     : LeakScope v1.0
# Component   : Frameworks Package - Framework Aware Detection Exports
# Description : Package initialization for framework lifecycle integrations
#               • React mount/unmount tracking and hook diagnostics
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2025-08-19
# Modified    : 2025-09-02 (Reworked for snapshot based leak detection)
# Dependencies: react
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_react_lifecycle.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from .react import (
    FrameworkLeakType,
    HookCall,
    HookLeak,
    ComponentLifecycle,
    ReactLeakDetectionResult,
    ReactLeakDetector,
    analyze_framework_leak_types,
    analyze_hook_leaks,
    get_framework_leak_type_description,
    get_react_detector,
    reset_react_detector,
)

__all__ = [
    "FrameworkLeakType",
    "HookCall",
    "HookLeak",
    "ComponentLifecycle",
    "ReactLeakDetectionResult",
    "ReactLeakDetector",
    "analyze_framework_leak_types",
    "analyze_hook_leaks",
    "get_framework_leak_type_description",
    "get_react_detector",
    "reset_react_detector",
]
