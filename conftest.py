"""
Pytest configuration and shared fixtures for the CSF assessment tracker.
"""
from datetime import datetime, timezone

import pytest
from hypothesis import settings, Verbosity

# Configure Hypothesis settings for all property-based tests
settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    suppress_health_check=[],
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    suppress_health_check=[],
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    suppress_health_check=[],
    verbosity=Verbosity.verbose,
)

settings.load_profile("default")

# Mid-May, so the current quarter is Q2.
FIXED_NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock pinned to FIXED_NOW."""
    return fixed_clock


@pytest.fixture
def directory():
    from csf_tracker.identity import UserDirectory
    return UserDirectory(clock=fixed_clock)


@pytest.fixture
def resolver(directory):
    from csf_tracker.identity import IdentityResolver
    return IdentityResolver(directory)


@pytest.fixture
def controls(resolver):
    from csf_tracker.stores import ControlsStore
    return ControlsStore(resolver, clock=fixed_clock)


@pytest.fixture
def requirements():
    from csf_tracker.stores import RequirementsStore
    return RequirementsStore(clock=fixed_clock)


@pytest.fixture
def assessments(resolver):
    from csf_tracker.stores import AssessmentsStore
    return AssessmentsStore(resolver, clock=fixed_clock)


@pytest.fixture
def artifacts():
    from csf_tracker.stores import ArtifactsStore
    return ArtifactsStore(clock=fixed_clock)


@pytest.fixture
def findings(resolver):
    from csf_tracker.stores import FindingsStore
    return FindingsStore(resolver, clock=fixed_clock)


@pytest.fixture
def tracker_config(tmp_path):
    from csf_tracker.core.config import TrackerConfig
    return TrackerConfig(data_dir=tmp_path / "data", seed_defaults=False)


@pytest.fixture
def workspace(tracker_config):
    """Freshly loaded workspace over an empty data directory."""
    from csf_tracker.workspace import Workspace
    ws = Workspace(tracker_config, clock=fixed_clock)
    ws.load()
    return ws
