"""
POWERWATCH - Server Power-Loss Supervisor

Watches a server's facility power through its iDRAC and reacts to outages:
shuts the server down when an outage outlasts the grace period and powers it
back on once power returns.

Architecture:
    - services.redfish: management controller facade (Redfish over HTTPS)
    - services.cache: bounded LRU cache for controller queries
    - services.state: status file holding the last observed snapshot
    - services.power: regime classification and shutdown escalation loop
"""

__version__ = "0.1.0"

# Version tuple for programmatic comparison
VERSION_INFO = (0, 1, 0)

# Core exceptions (import base class for convenience)
from powerwatch.exceptions import PowerwatchError

# Core types
from powerwatch.types import (
    Regime,
    ServerSnapshot,
)
