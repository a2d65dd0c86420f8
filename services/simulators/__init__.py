"""
POWERWATCH Simulators Package

In-process stand-ins for hardware, for running the supervisor without an
iDRAC. Simulators implement the same interfaces as the real clients and
support fault injection for error testing.
"""

from .controller_simulator import ControllerSimulator, FaultConfig

__all__ = [
    "ControllerSimulator",
    "FaultConfig",
]
