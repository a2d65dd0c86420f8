"""
Pytest Fixtures for POWERWATCH Testing.

Provides shared fixtures for unit tests.
"""

import pytest

from powerwatch.config import SupervisorConfig
from services.state.snapshot_store import SnapshotStore
from tests.fixtures.mock_controller import MockController
from tests.fixtures.snapshots import NOW, UNIT


@pytest.fixture
def status_path(tmp_path):
    """Path to a not-yet-created status file."""
    return tmp_path / "server-lifecycle-status.json"


@pytest.fixture
def store(status_path) -> SnapshotStore:
    return SnapshotStore(status_path)


@pytest.fixture
def fixed_clock():
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def fast_config() -> SupervisorConfig:
    """Grace of 5 units, polling every half unit, no settle delay."""
    return SupervisorConfig(
        turn_off_grace_sec=5 * UNIT,
        poll_interval_sec=UNIT / 2,
        settle_delay_sec=0.0,
    )


@pytest.fixture
def mock_controller() -> MockController:
    return MockController()
