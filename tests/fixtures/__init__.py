"""
POWERWATCH Test Fixtures Package.

Mock implementations for testing the supervisor without an iDRAC.

Available fixtures:
- MockController: Scripted management controller that records every call
- seed_prior: Persist a prior snapshot aged in test time units

Usage:
    from tests.fixtures import MockController

    controller = MockController(powered_on=True, supply=[False, True])
"""

from tests.fixtures.mock_controller import MockController
from tests.fixtures.snapshots import NOW, UNIT, seed_prior

__all__ = [
    "MockController",
    "NOW",
    "UNIT",
    "seed_prior",
]
