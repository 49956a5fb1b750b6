#=============================================================================
# File        : tests/conftest.py
# Project     : LeakScope v1.0
# Component   : Test Support - Shared Fixtures
# Description : Global state isolation and replay driven detectors
#               • Autouse reset of global store, classifier and detectors
#               • Replay harness with a recording sleep
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-08-19
#=============================================================================

"""
Shared fixtures for the LeakScope test suite.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from leakscope.core import LeakDetector, reset_global_state
from leakscope.detectors.patterns import LeakPatternClassifier
from leakscope.frameworks.react import reset_react_detector
from leakscope.providers import ReplaySnapshotProvider
from leakscope.store import SnapshotStore


@pytest.fixture(autouse=True)
def clean_global_state():
    """Every test starts with fresh global store, classifier and detectors."""
    reset_global_state()
    reset_react_detector()
    yield
    reset_global_state()
    reset_react_detector()


class ReplayHarness:
    """Detector wired to a replay provider, with a recording no-op sleep."""

    def __init__(self, snapshots, classifier=None, max_snapshots=None):
        self.provider = ReplaySnapshotProvider(snapshots)
        self.store = SnapshotStore(self.provider, max_snapshots=max_snapshots)
        self.classifier = classifier or LeakPatternClassifier()
        self.sleeps = []
        self.detector = LeakDetector(store=self.store, classifier=self.classifier, sleep=self._sleep)

    async def _sleep(self, seconds):
        self.sleeps.append(seconds)


@pytest.fixture
def replay():
    """Factory: replay(*snapshots, classifier=None, max_snapshots=None) -> ReplayHarness."""
    def build(*snapshots, classifier=None, max_snapshots=None):
        return ReplayHarness(snapshots, classifier=classifier, max_snapshots=max_snapshots)
    return build
