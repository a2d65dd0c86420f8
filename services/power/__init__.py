"""
POWERWATCH Power Service

Power-loss supervisor: regime classification and the shutdown escalation loop.
"""

from .supervisor import (
    CycleOutcome,
    CycleResult,
    PowerEvent,
    PowerSupervisor,
    shutdown_deadline,
)

__all__ = [
    "CycleOutcome",
    "CycleResult",
    "PowerEvent",
    "PowerSupervisor",
    "shutdown_deadline",
]
