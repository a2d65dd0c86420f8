"""
POWERWATCH Controller Simulator

Simulates an iDRAC for running the supervisor without hardware.

Features:
- Power state that follows PowerOff/PowerOn commands
- Scripted supply presence: one value consumed per supply query, the last
  value repeating once the script runs out
- Optional fault injection on supply queries
- Command log for inspection
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from powerwatch.exceptions import TransportError
from services.redfish.redfish_client import CommandAck, PowerController

logger = logging.getLogger("powerwatch.services.simulator")


@dataclass
class FaultConfig:
    """Configuration for fault injection."""
    enabled: bool = False
    probability: float = 0.0  # 0.0 to 1.0
    message: str = ""         # Custom error message


class ControllerSimulator(PowerController):
    """
    Simulated management controller.

    Usage:
        sim = ControllerSimulator(powered_on=True, supply_script=[False, False, True])
        await sim.has_power_supply()  # False
    """

    def __init__(self,
                 powered_on: bool = True,
                 supply_script: Optional[Sequence[bool]] = None,
                 response_delay_sec: float = 0.0,
                 fault_config: Optional[FaultConfig] = None):
        """
        Initialize simulator.

        Args:
            powered_on: Initial power state
            supply_script: Supply presence per query (default: always present)
            response_delay_sec: Simulated latency per call
            fault_config: Fault injection settings for supply queries
        """
        self.powered_on = powered_on
        self._supply_script: List[bool] = list(supply_script) if supply_script else [True]
        self._supply_index = 0
        self.response_delay_sec = response_delay_sec
        self.fault_config = fault_config or FaultConfig()
        self.faults_injected = 0
        self._command_log: List[Dict[str, Any]] = []

    async def _delay(self):
        if self.response_delay_sec > 0:
            await asyncio.sleep(self.response_delay_sec)

    def _log_command(self, command: str, response: str):
        self._command_log.append({
            "timestamp": datetime.now().isoformat(),
            "command": command,
            "response": response,
        })

    def get_command_log(self) -> List[Dict[str, Any]]:
        return list(self._command_log)

    async def is_powered_on(self) -> bool:
        await self._delay()
        self._log_command("is_powered_on", str(self.powered_on))
        return self.powered_on

    async def has_power_supply(self) -> bool:
        await self._delay()
        if self.fault_config.enabled and random.random() < self.fault_config.probability:
            self.faults_injected += 1
            message = self.fault_config.message or "Simulated transport fault"
            self._log_command("has_power_supply", f"fault: {message}")
            raise TransportError(message, host="simulator")

        index = min(self._supply_index, len(self._supply_script) - 1)
        self._supply_index += 1
        present = self._supply_script[index]
        self._log_command("has_power_supply", str(present))
        return present

    async def power_off(self) -> CommandAck:
        await self._delay()
        logger.warning("[SIMULATION] Powering off server")
        self.powered_on = False
        self._log_command("power_off", "204")
        return CommandAck(reset_type="GracefulShutdown", status=204)

    async def power_on(self) -> CommandAck:
        await self._delay()
        logger.warning("[SIMULATION] Powering on server")
        self.powered_on = True
        self._log_command("power_on", "204")
        return CommandAck(reset_type="On", status=204)
