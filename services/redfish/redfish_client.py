"""
POWERWATCH Redfish Client
Dell iDRAC management controller over HTTPS

Resources used:
- Chassis:  PowerState ("On"/"Off")
- PSU:      LineInputVoltage (null when the PSU has no input)
- Systems:  Actions/ComputerSystem.Reset with ResetType On / GracefulShutdown

Untyped Redfish payloads are decoded here; callers only ever see bool,
float and CommandAck values.

The query cache only serves inventory lookups (describe()). Power state and
line voltage are always fetched fresh and written through, so a describe()
after a decision cycle reuses the chassis payload the cycle just fetched.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import aiohttp

from powerwatch.config import ControllerConfig
from powerwatch.exceptions import ProtocolError, TransportError
from services.cache.query_cache import BoundedQueryCache

logger = logging.getLogger("powerwatch.services.redfish")

RESET_ACTION = "/Actions/ComputerSystem.Reset"
COMMAND_OK_STATUSES = (200, 202, 204)


@dataclass(frozen=True)
class CommandAck:
    """Acknowledgement of a power command."""
    reset_type: str
    status: int
    body: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ServerDescription:
    """Inventory details, for logging only."""
    manufacturer: str = ""
    model: str = ""
    service_tag: str = ""
    power_state: str = ""

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.model} (tag {self.service_tag or 'unknown'})".strip()


class PowerController(ABC):
    """
    Interface to a server's out-of-band power control.

    Every method may raise TransportError or ProtocolError.
    """

    @abstractmethod
    async def is_powered_on(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def has_power_supply(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def power_off(self) -> CommandAck:
        raise NotImplementedError

    @abstractmethod
    async def power_on(self) -> CommandAck:
        raise NotImplementedError


class RedfishClient(PowerController):
    """
    Async Redfish client for a single iDRAC.

    State queries (power state, line voltage) always go to the controller
    and write their fresh payload through into the cache. Inventory lookups
    via describe() read from the cache first.

    Usage:
        async with RedfishClient(config.controller, cache=BoundedQueryCache(20)) as client:
            if await client.is_powered_on():
                ...
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        cache: Optional[BoundedQueryCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize client.

        Args:
            config: Controller connection settings
            cache: Query cache owned by this client
            session: Optional pre-built session (closed by its owner)
        """
        self.config = config or ControllerConfig()
        self._cache = cache
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return f"https://{self.config.host}"

    @property
    def cache(self) -> Optional[BoundedQueryCache]:
        return self._cache

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.config.username, self.config.password),
                connector=aiohttp.TCPConnector(ssl=None if self.config.verify_tls else False),
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={"Accept": "application/json"},
            )
        return self._session

    async def close(self):
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "RedfishClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        ok_statuses: Tuple[int, ...] = (200,),
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Send one request and decode the JSON body.

        Returns:
            (status, body) where body is {} for empty responses

        Raises:
            TransportError: Connection, TLS or timeout failure
            ProtocolError: Unexpected status or non-object JSON body
        """
        url = f"{self.base_url}{path}"
        try:
            session = await self._get_session()
            async with session.request(method, url, json=payload) as response:
                status = response.status
                text = await response.text()
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Timed out after {self.config.timeout}s", self.config.host, path
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Request failed: {e}", self.config.host, path) from e

        if status not in ok_statuses:
            raise ProtocolError(
                f"{method} returned unexpected status", self.config.host, path, status=status
            )

        if not text.strip():
            return status, {}
        try:
            body = json.loads(text)
        except ValueError as e:
            raise ProtocolError(
                f"Failed JSON decoding body: {e}", self.config.host, path, status=status
            ) from e
        if not isinstance(body, dict):
            raise ProtocolError(
                "Expected a JSON object", self.config.host, path, status=status
            )
        return status, body

    async def fetch(self, path: str, use_cache: bool = False) -> Dict[str, Any]:
        """
        GET a resource.

        Args:
            path: Resource path, e.g. "/redfish/v1/Chassis/System.Embedded.1"
            use_cache: Serve from the cache when present

        Returns:
            Decoded JSON object
        """
        if use_cache and self._cache is not None:
            body, found = self._cache.get(path)
            if found:
                logger.debug(f"Cache hit for {path}")
                return body

        _, body = await self._request("GET", path)
        if self._cache is not None:
            self._cache.put(path, body)
        return body

    async def _reset(self, reset_type: str) -> CommandAck:
        path = f"{self.config.system_path}{RESET_ACTION}"
        payload = {"Action": "Reset", "ResetType": reset_type}
        status, body = await self._request(
            "POST", path, payload=payload, ok_statuses=COMMAND_OK_STATUSES
        )
        ack = CommandAck(reset_type=reset_type, status=status, body=body)
        logger.info(f"Received response from {reset_type} command: status={status}")
        return ack

    # =========================================================================
    # POWER CONTROLLER
    # =========================================================================

    async def is_powered_on(self) -> bool:
        logger.info("Fetching server power state")
        body = await self.fetch(self.config.chassis_path)
        power_state = body.get("PowerState")
        if not isinstance(power_state, str):
            raise ProtocolError(
                "PowerState missing from chassis resource",
                self.config.host,
                self.config.chassis_path,
            )
        return power_state == "On"

    async def line_input_voltage(self) -> float:
        """
        Read the PSU line input voltage.

        Returns:
            Voltage in volts; 0.0 when the PSU reports no reading
        """
        logger.info("Fetching power supply line input voltage")
        body = await self.fetch(self.config.power_supply_path)
        voltage = body.get("LineInputVoltage")
        if voltage is None:
            return 0.0
        if isinstance(voltage, bool) or not isinstance(voltage, (int, float)):
            raise ProtocolError(
                f"LineInputVoltage is not numeric: {voltage!r}",
                self.config.host,
                self.config.power_supply_path,
            )
        return float(voltage)

    async def has_power_supply(self) -> bool:
        voltage = await self.line_input_voltage()
        present = voltage > self.config.no_voltage_threshold
        logger.debug(
            f"Line input voltage {voltage:.1f}V "
            f"({'above' if present else 'at or below'} {self.config.no_voltage_threshold:.0f}V)"
        )
        return present

    async def power_off(self) -> CommandAck:
        logger.warning(f"Powering off server ({self.config.shutdown_reset_type})")
        return await self._reset(self.config.shutdown_reset_type)

    async def power_on(self) -> CommandAck:
        logger.warning("Powering on server")
        return await self._reset("On")

    # =========================================================================
    # INVENTORY
    # =========================================================================

    async def describe(self) -> ServerDescription:
        """Manufacturer, model and service tag; served from the cache when possible."""
        system = await self.fetch(self.config.system_path, use_cache=True)
        chassis = await self.fetch(self.config.chassis_path, use_cache=True)
        tag = system.get("SKU") or chassis.get("SKU") or system.get("SerialNumber") or ""
        return ServerDescription(
            manufacturer=str(system.get("Manufacturer") or chassis.get("Manufacturer") or ""),
            model=str(system.get("Model") or chassis.get("Model") or ""),
            service_tag=str(tag),
            power_state=str(chassis.get("PowerState") or ""),
        )
