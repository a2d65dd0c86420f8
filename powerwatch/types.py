"""
POWERWATCH Shared Type Definitions

Data structures shared between the supervisor, the snapshot store and the
management controller facade.

Usage:
    from powerwatch.types import ServerSnapshot, Regime
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Regime
# =============================================================================

class Regime(Enum):
    """Classification of (power-on state, power-supply presence)."""
    ON_SUPPLY = "on_supply"            # Running with facility power
    ON_NO_SUPPLY = "on_no_supply"      # Running on UPS - escalate
    OFF_NO_SUPPLY = "off_no_supply"    # Off and still unpowered
    OFF_SUPPLY = "off_supply"          # Off but power is back - power on

    @classmethod
    def classify(cls, powered_on: bool, has_power_supply: bool) -> "Regime":
        """Map the boolean pair onto exactly one regime."""
        if powered_on:
            return cls.ON_SUPPLY if has_power_supply else cls.ON_NO_SUPPLY
        return cls.OFF_SUPPLY if has_power_supply else cls.OFF_NO_SUPPLY


# =============================================================================
# Server Snapshot
# =============================================================================

@dataclass(frozen=True)
class ServerSnapshot:
    """One observation of server power state.

    Attributes:
        powered_on: Server reports PowerState "On"
        has_power_supply: PSU line input voltage above the no-voltage threshold
        observed_at: When the observation was taken (timezone-aware UTC)

    Raises:
        ValueError: observed_at is naive

    Persisted as ``{"on": ..., "hasPowerSupply": ..., "lastUpdate": ...}``.
    """
    powered_on: bool
    has_power_supply: bool
    observed_at: datetime

    def __post_init__(self):
        if self.observed_at.tzinfo is None:
            raise ValueError("observed_at must be timezone-aware")

    @property
    def regime(self) -> Regime:
        return Regime.classify(self.powered_on, self.has_power_supply)

    def restamped(self, when: datetime) -> "ServerSnapshot":
        """Copy of this snapshot with a different observation time."""
        return ServerSnapshot(
            powered_on=self.powered_on,
            has_power_supply=self.has_power_supply,
            observed_at=when,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted record layout."""
        return {
            "on": self.powered_on,
            "hasPowerSupply": self.has_power_supply,
            "lastUpdate": self.observed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerSnapshot":
        """Build a snapshot from the persisted record layout.

        Raises:
            KeyError: A field is missing
            TypeError: A field has the wrong type
            ValueError: lastUpdate is not an ISO-8601 timestamp
        """
        on = data["on"]
        has_supply = data["hasPowerSupply"]
        last_update = data["lastUpdate"]
        if not isinstance(on, bool) or not isinstance(has_supply, bool):
            raise TypeError("on and hasPowerSupply must be booleans")
        if not isinstance(last_update, str):
            raise TypeError("lastUpdate must be an ISO-8601 string")

        observed_at = datetime.fromisoformat(last_update)
        if observed_at.tzinfo is None:
            observed_at = observed_at.replace(tzinfo=timezone.utc)
        return cls(powered_on=on, has_power_supply=has_supply, observed_at=observed_at)

    def __str__(self) -> str:
        return (f"on={self.powered_on} supply={self.has_power_supply} "
                f"at={self.observed_at.isoformat()}")
