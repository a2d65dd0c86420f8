"""
POWERWATCH Application Entry Point

Runs one power-loss decision cycle against a server's iDRAC. Meant to be
invoked periodically (cron, systemd timer); the run lock keeps overlapping
invocations from racing each other.

Usage:
    powerwatch                              # Run with auto-discovered config
    powerwatch --config /etc/powerwatch/config.yaml
    powerwatch --host idrac.lab --user root --password calvin
    powerwatch --observe                    # Print current state, take no action
    powerwatch --dry-run                    # Validate config without running

Entry Points:
    - CLI: `powerwatch` command (via pyproject.toml)
    - Direct: `python -m powerwatch.main`
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import TYPE_CHECKING, Optional

from powerwatch import __version__
from powerwatch.config import PowerwatchConfig, load_config
from powerwatch.exceptions import (
    ConfigurationError,
    ControllerError,
    PowerwatchError,
    RunLockError,
)
from powerwatch.logging_config import get_logger, setup_logging
from powerwatch.run_lock import RunLock
from services.cache.query_cache import BoundedQueryCache
from services.power.supervisor import CycleResult, PowerSupervisor
from services.redfish.redfish_client import PowerController, RedfishClient
from services.simulators.controller_simulator import ControllerSimulator
from services.state.snapshot_store import SnapshotStore

if TYPE_CHECKING:
    from types import FrameType

__all__ = ["main", "async_main", "create_parser", "apply_cli_overrides"]

# Module logger
logger = get_logger(__name__)


# =============================================================================
# Argument Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="powerwatch",
        description="Shut a server down during sustained power loss and power it back on when power returns",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Configuration
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file (default: auto-discover)",
    )

    # Logging
    parser.add_argument(
        "-l",
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (overrides config file)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        metavar="PATH",
        help="Path to log file (default: stdout only)",
    )

    # Controller and state (override config file)
    parser.add_argument("--host", type=str, help="iDRAC host")
    parser.add_argument("--user", type=str, help="iDRAC user")
    parser.add_argument("--password", type=str, help="iDRAC password")
    parser.add_argument("--status-file", type=str, metavar="PATH", help="Status file")
    parser.add_argument(
        "--run-lock",
        type=str,
        metavar="PATH",
        help="Run lock to ensure at most 1 instance is running",
    )

    # Operation modes
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit without contacting the controller",
    )
    parser.add_argument(
        "--observe",
        action="store_true",
        help="Print the current server state and exit without acting",
    )
    parser.add_argument(
        "--simulator",
        action="store_true",
        help="Use the in-process controller simulator instead of the iDRAC",
    )

    return parser


def apply_cli_overrides(config: PowerwatchConfig, args: argparse.Namespace) -> PowerwatchConfig:
    """Return a copy of config with command-line values applied."""
    controller = {}
    state = {}
    if args.host:
        controller["host"] = args.host
    if args.user:
        controller["username"] = args.user
    if args.password:
        controller["password"] = args.password
    if args.status_file:
        state["status_file"] = args.status_file
    if args.run_lock:
        state["run_lock"] = args.run_lock

    update = {}
    if controller:
        update["controller"] = config.controller.model_copy(update=controller)
    if state:
        update["state"] = config.state.model_copy(update=state)
    if args.log_level:
        update["log_level"] = args.log_level
    if args.log_file:
        update["log_file"] = args.log_file
    return config.model_copy(update=update)


# =============================================================================
# Signal Handlers
# =============================================================================


def _handle_sigterm(signum: int, frame: FrameType | None) -> None:
    """Turn SIGTERM into KeyboardInterrupt so the run lock is released."""
    logger.warning(f"Received {signal.Signals(signum).name} - aborting cycle")
    raise KeyboardInterrupt


# =============================================================================
# Main Entry Points
# =============================================================================


def build_controller(
    config: PowerwatchConfig, simulator: bool = False
) -> PowerController:
    """Create the controller facade, with its own query cache."""
    if simulator:
        logger.info("Simulator mode enabled")
        return ControllerSimulator()
    return RedfishClient(config.controller, cache=BoundedQueryCache(config.cache.capacity))


async def _log_inventory(controller: PowerController) -> None:
    """Log manufacturer and model; lookup failures never affect the cycle."""
    if not isinstance(controller, RedfishClient):
        return
    try:
        description = await controller.describe()
    except ControllerError as e:
        logger.warning(f"Could not read server inventory: {e}")
        return
    logger.info(f"Managing {description}")


async def async_main(
    args: argparse.Namespace,
    config: PowerwatchConfig,
    controller: Optional[PowerController] = None,
) -> int:
    """Run one decision cycle (or an observation) under the run lock.

    Args:
        args: Parsed command-line arguments
        config: Validated configuration
        controller: Optional pre-built controller (tests, embedding)

    Returns:
        Exit code (0 for success)
    """
    controller = controller or build_controller(config, simulator=args.simulator)
    store = SnapshotStore(config.state.status_file)
    supervisor = PowerSupervisor(controller, store, config.supervisor)

    try:
        with RunLock(config.state.run_lock):
            if args.observe:
                snapshot = await supervisor.observe()
                print(f"Server: {snapshot}")
                print(f"Regime: {snapshot.regime.value}")
            else:
                result: CycleResult = await supervisor.run_cycle()
                logger.info(
                    f"Cycle finished: {result.regime.value} -> {result.outcome.value}, "
                    f"saved {result.snapshot}"
                )

            await _log_inventory(controller)
            return 0
    finally:
        if isinstance(controller, RedfishClient):
            await controller.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the POWERWATCH application.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Basic setup before config is loaded
    setup_logging(log_level=args.log_level or "INFO")

    try:
        config = apply_cli_overrides(load_config(args.config), args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(log_level=config.log_level, log_file=config.log_file)
    logger.info(f"POWERWATCH v{__version__} starting...")

    if args.dry_run:
        logger.info("Dry run mode - configuration valid, exiting")
        print("Configuration is valid")
        return 0

    original_sigterm = signal.signal(signal.SIGTERM, _handle_sigterm)
    try:
        return asyncio.run(async_main(args, config))
    except RunLockError as e:
        logger.warning(str(e))
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130  # Standard exit code for SIGINT
    except PowerwatchError as e:
        logger.error(f"Run failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        signal.signal(signal.SIGTERM, original_sigterm)


if __name__ == "__main__":
    sys.exit(main())
