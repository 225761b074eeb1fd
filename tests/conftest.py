"""Shared pytest configuration and fixtures for the tracker map test suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fakes import FakeScheduler, FakeTrackerClient  # noqa: E402
from tracker_map.tracking.playback import PlaybackEngine  # noqa: E402
from tracker_map.tracking.registry import TrackerRegistry  # noqa: E402
from tracker_map.tracking.surface import LoggingControlPanel, LoggingMapSurface  # noqa: E402
from tracker_map.tracking.visibility import VisibilityController  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def surface() -> LoggingMapSurface:
    return LoggingMapSurface()


@pytest.fixture
def panel() -> LoggingControlPanel:
    return LoggingControlPanel()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def fake_client() -> FakeTrackerClient:
    return FakeTrackerClient()


@pytest.fixture
def registry(surface) -> TrackerRegistry:
    return TrackerRegistry(surface)


@pytest.fixture
def visibility(registry, surface, panel) -> VisibilityController:
    return VisibilityController(registry, surface, panel)


@pytest.fixture
def engine(registry, visibility, surface, panel, scheduler) -> PlaybackEngine:
    return PlaybackEngine(registry, visibility, surface, panel, scheduler=scheduler)
