"""
POWERWATCH Power-Loss Supervisor
Decides, once per run, whether a server should be left alone, shut down
during a sustained outage, or powered back on.

Regimes (power state x supply presence):
- On  + supply:    nothing to do
- On  + no supply: escalation loop - poll for restoration, power off at deadline
- Off + no supply: stay off while unpowered
- Off + supply:    power on

The shutdown deadline is the grace period minus the time since the last
persisted observation, so running the supervisor only every few minutes
never restarts the grace period from zero.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Tuple

from powerwatch.config import SupervisorConfig
from powerwatch.exceptions import ControllerError, PowerCommandError
from powerwatch.types import Regime, ServerSnapshot, utc_now
from services.redfish.redfish_client import PowerController
from services.state.snapshot_store import SnapshotStore

logger = logging.getLogger("powerwatch.services.power")


class CycleOutcome(Enum):
    """How a decision cycle ended."""
    STABLE = "stable"             # On with supply, nothing done
    STAYED_OFF = "stayed_off"     # Off without supply, nothing done
    RESTORED = "restored"         # Supply came back before the deadline
    SHUT_DOWN = "shut_down"       # Deadline elapsed, PowerOff issued
    POWERED_ON = "powered_on"     # Supply present while off, PowerOn issued


@dataclass
class PowerEvent:
    """Power event record."""
    timestamp: datetime
    event_type: str
    description: str


@dataclass
class CycleResult:
    """Result of one decision cycle."""
    regime: Regime
    outcome: CycleOutcome
    snapshot: ServerSnapshot            # What was persisted
    prior: ServerSnapshot               # What was read at start
    polls: int = 0                      # Escalation loop poll ticks serviced
    events: List[PowerEvent] = field(default_factory=list)

    @property
    def commands_issued(self) -> List[str]:
        return [e.event_type for e in self.events if e.event_type in ("POWER_OFF", "POWER_ON")]


def shutdown_deadline(grace: timedelta, anchor: datetime, now: datetime) -> timedelta:
    """
    Time left before a forced shutdown.

    Args:
        grace: Configured turn-off grace period
        anchor: Last known update before the outage was observed
        now: Current time

    Returns:
        Remaining time; zero or negative means shut down immediately
    """
    return grace - (now - anchor)


class PowerSupervisor:
    """
    Power-loss state machine for one server.

    Usage:
        supervisor = PowerSupervisor(client, SnapshotStore(path), config.supervisor)
        result = await supervisor.run_cycle()
        print(result.outcome)
    """

    def __init__(self,
                 controller: PowerController,
                 store: SnapshotStore,
                 config: Optional[SupervisorConfig] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize supervisor.

        Args:
            controller: Management controller facade
            store: Status file store
            config: Timing configuration
            clock: Source of wall-clock time (timezone-aware)
        """
        self.config = config or SupervisorConfig()
        self._controller = controller
        self._store = store
        self._clock = clock
        self._events: List[PowerEvent] = []
        self._polls = 0

    @property
    def grace_period(self) -> timedelta:
        return timedelta(seconds=self.config.turn_off_grace_sec)

    @property
    def event_log(self) -> List[PowerEvent]:
        return self._events.copy()

    # =========================================================================
    # DECISION CYCLE
    # =========================================================================

    async def observe(self) -> ServerSnapshot:
        """
        Query the controller for a fresh snapshot.

        Raises:
            ControllerError: Any query failure; the regime is then unknown
        """
        powered_on = await self._controller.is_powered_on()
        has_supply = await self._controller.has_power_supply()
        return ServerSnapshot(
            powered_on=powered_on,
            has_power_supply=has_supply,
            observed_at=self._clock(),
        )

    async def run_cycle(self) -> CycleResult:
        """
        Run one full decision cycle and persist its final snapshot.

        Nothing is written if the cycle fails before its final snapshot
        exists.

        Raises:
            StateStoreError: Status file unreadable or unwritable
            ControllerError: Initial observation failed
            PowerCommandError: PowerOff/PowerOn failed
        """
        self._events = []
        self._polls = 0

        self._store.initialize(self._clock())
        prior = self._store.read()
        logger.info(f"Last saved state: {prior}")

        current = await self.observe()
        regime = current.regime
        logger.info(f"Current state: {current} ({regime.value})")

        if regime is Regime.ON_SUPPLY:
            logger.info("Server is on and there is power")
            outcome, final = CycleOutcome.STABLE, current

        elif regime is Regime.ON_NO_SUPPLY:
            outcome, final = await self._handle_power_on_no_supply(prior)

        elif regime is Regime.OFF_NO_SUPPLY:
            logger.info("Server is off but there is still no power, not turning on")
            outcome, final = CycleOutcome.STAYED_OFF, current

        else:
            outcome, final = await self._handle_power_off_with_supply()

        final = self._stamp(final, prior)
        self._store.write(final)

        return CycleResult(
            regime=regime,
            outcome=outcome,
            snapshot=final,
            prior=prior,
            polls=self._polls,
            events=self.event_log,
        )

    def _stamp(self, snapshot: ServerSnapshot, prior: ServerSnapshot) -> ServerSnapshot:
        """Stamp the persisted snapshot with now, never earlier than the prior one."""
        return snapshot.restamped(max(self._clock(), snapshot.observed_at, prior.observed_at))

    # =========================================================================
    # ESCALATION LOOP
    # =========================================================================

    def _grace_anchor(self, prior: ServerSnapshot) -> datetime:
        if self.config.grace_anchor == "state_file":
            return self._store.last_modified()
        return prior.observed_at

    async def _handle_power_on_no_supply(
        self, prior: ServerSnapshot
    ) -> Tuple[CycleOutcome, ServerSnapshot]:
        """
        Wait for supply to return, powering off when the deadline elapses.

        Poll ticks run on a fixed schedule and race a single deadline timer.
        A failed poll is logged and the loop waits for the next tick; the
        only exits are restoration and the deadline. On restoration the power
        state is read again; a failure there is fatal like any re-observation.
        """
        deadline = shutdown_deadline(self.grace_period, self._grace_anchor(prior), self._clock())
        remaining = max(0.0, deadline.total_seconds())
        poll = self.config.poll_interval_sec

        self._log_event("POWER_LOST", f"No power supply while on, {remaining:.0f}s until power off")
        logger.warning(
            f"No power supply detected! Waiting {remaining / 60:.1f} minutes "
            f"before turning off server"
        )

        loop = asyncio.get_running_loop()
        start = loop.time()
        deadline_timer = asyncio.ensure_future(asyncio.sleep(remaining))
        tick = 0
        try:
            while True:
                # Skip ticks already missed by a slow poll, keep the grid
                tick = max(tick + 1, int((loop.time() - start) // poll) + 1)
                wait = max(0.0, start + tick * poll - loop.time())
                tick_timer = asyncio.ensure_future(asyncio.sleep(wait))
                logger.info(f"Rechecking power supply in {wait:.0f} seconds...")

                done, _ = await asyncio.wait(
                    {tick_timer, deadline_timer},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if tick_timer in done:
                    if await self._poll_supply():
                        return CycleOutcome.RESTORED, ServerSnapshot(
                            powered_on=await self._controller.is_powered_on(),
                            has_power_supply=True,
                            observed_at=self._clock(),
                        )
                else:
                    tick_timer.cancel()

                if deadline_timer.done():
                    return await self._power_off(remaining)
        finally:
            deadline_timer.cancel()

    async def _poll_supply(self) -> bool:
        """One poll step; failures count as 'not restored' and never raise."""
        self._polls += 1
        try:
            present = await self._controller.has_power_supply()
        except ControllerError as e:
            logger.error(f"Failed to fetch power supply reading: {e}")
            self._log_event("POLL_FAILED", str(e))
            return False

        if present:
            logger.info("Power is restored")
            self._log_event("POWER_RESTORED", "Power supply restored before deadline")
        else:
            logger.info("Power supply still absent")
        return present

    # =========================================================================
    # POWER COMMANDS
    # =========================================================================

    async def _power_off(self, waited_sec: float) -> Tuple[CycleOutcome, ServerSnapshot]:
        logger.warning(f"Timeout of {waited_sec:.0f} seconds elapsed, powering off server")
        try:
            ack = await self._controller.power_off()
        except ControllerError as e:
            raise PowerCommandError("Failed to turn off server", command="power_off") from e
        self._log_event("POWER_OFF", f"Power off issued ({ack.reset_type}, status {ack.status})")
        return CycleOutcome.SHUT_DOWN, await self._settle_and_observe()

    async def _handle_power_off_with_supply(self) -> Tuple[CycleOutcome, ServerSnapshot]:
        logger.info("Power restored! Turning on server")
        try:
            ack = await self._controller.power_on()
        except ControllerError as e:
            raise PowerCommandError("Failed to turn on server", command="power_on") from e
        self._log_event("POWER_ON", f"Power on issued (status {ack.status})")
        return CycleOutcome.POWERED_ON, await self._settle_and_observe()

    async def _settle_and_observe(self) -> ServerSnapshot:
        """Give the controller time to apply a command, then re-observe."""
        delay = self.config.settle_delay_sec
        if delay > 0:
            logger.info(f"Sleeping {delay:.0f} seconds to ensure all changes have been propagated")
            await asyncio.sleep(delay)
        return await self.observe()

    # =========================================================================
    # EVENT LOGGING
    # =========================================================================

    def _log_event(self, event_type: str, description: str):
        self._events.append(PowerEvent(
            timestamp=self._clock(),
            event_type=event_type,
            description=description,
        ))
