"""
POWERWATCH Services Package

This package contains the POWERWATCH service modules organized by function.

Core Services
=============

Controller Access
-----------------
- services.redfish: Dell iDRAC Redfish client (power state, PSU voltage, reset actions)
- services.cache: Bounded LRU cache for controller queries

Supervision
-----------
- services.power: Power-loss supervisor and shutdown escalation loop
- services.state: Persisted server snapshot (status file)

Simulation
----------
- services.simulators: Controller simulator for running without hardware
"""

__version__ = "0.1.0"
