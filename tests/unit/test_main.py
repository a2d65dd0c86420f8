"""
POWERWATCH Unit Tests - Application Entry Point

Unit tests for powerwatch/main.py: argument parsing, command-line
overrides and exit codes. Controller access goes through the simulator.

Run:
    pytest tests/unit/test_main.py -v
"""

import json
import logging
import signal
from unittest.mock import patch

import pytest
import yaml

from powerwatch.config import PowerwatchConfig
from powerwatch.exceptions import ProtocolError
from powerwatch.main import (
    _handle_sigterm,
    apply_cli_overrides,
    async_main,
    build_controller,
    create_parser,
    main,
)
from services.redfish.redfish_client import RedfishClient
from services.simulators.controller_simulator import ControllerSimulator


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """No config auto-discovery and no POWERWATCH_* variables."""
    import os
    for name in list(os.environ):
        if name.startswith("POWERWATCH_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("powerwatch.config.get_config_paths", lambda: [])
    yield
    root_logger = logging.getLogger("powerwatch")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture
def paths(tmp_path):
    return {
        "status": tmp_path / "status.json",
        "lock": tmp_path / "run.lock",
    }


def cli(paths, *extra):
    return ["--status-file", str(paths["status"]), "--run-lock", str(paths["lock"]), *extra]


def fast_config(paths) -> PowerwatchConfig:
    config = PowerwatchConfig()
    return config.model_copy(update={
        "state": config.state.model_copy(update={
            "status_file": str(paths["status"]),
            "run_lock": str(paths["lock"]),
        }),
        "supervisor": config.supervisor.model_copy(update={"settle_delay_sec": 0.0}),
    })


# =============================================================================
# Parser and overrides
# =============================================================================

class TestParser:
    """Tests for create_parser()."""

    def test_defaults(self):
        args = create_parser().parse_args([])
        assert args.config is None
        assert args.log_level is None
        assert args.dry_run is False
        assert args.observe is False
        assert args.simulator is False

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--log-level", "LOUD"])

    def test_overrides_applied(self):
        args = create_parser().parse_args([
            "--host", "idrac.lab", "--user", "admin", "--password", "pw",
            "--status-file", "/var/lib/powerwatch/status.json",
            "--run-lock", "/run/powerwatch.lock",
            "--log-level", "DEBUG",
        ])
        config = apply_cli_overrides(PowerwatchConfig(), args)

        assert config.controller.host == "idrac.lab"
        assert config.controller.username == "admin"
        assert config.controller.password == "pw"
        assert config.state.status_file == "/var/lib/powerwatch/status.json"
        assert config.state.run_lock == "/run/powerwatch.lock"
        assert config.log_level == "DEBUG"

    def test_no_overrides_keeps_config(self):
        config = PowerwatchConfig()
        assert apply_cli_overrides(config, create_parser().parse_args([])) == config


class TestBuildController:
    def test_simulator(self):
        assert isinstance(build_controller(PowerwatchConfig(), simulator=True), ControllerSimulator)

    def test_redfish_client_gets_cache(self):
        config = PowerwatchConfig()
        client = build_controller(config)
        assert isinstance(client, RedfishClient)
        assert client.cache.capacity == config.cache.capacity


# =============================================================================
# async_main
# =============================================================================

class TestAsyncMain:
    """Tests for one cycle under the run lock."""

    @pytest.mark.asyncio
    async def test_cycle_writes_status_and_releases_lock(self, paths):
        args = create_parser().parse_args([])
        controller = ControllerSimulator(powered_on=False, supply_script=[True])

        code = await async_main(args, fast_config(paths), controller=controller)

        assert code == 0
        data = json.loads(paths["status"].read_text())
        assert data["on"] is True
        assert data["hasPowerSupply"] is True
        assert [c["command"] for c in controller.get_command_log()].count("power_on") == 1
        assert not paths["lock"].exists()

    @pytest.mark.asyncio
    async def test_observe_takes_no_action(self, paths, capsys):
        args = create_parser().parse_args(["--observe"])
        controller = ControllerSimulator(powered_on=True, supply_script=[False])

        code = await async_main(args, fast_config(paths), controller=controller)

        assert code == 0
        out = capsys.readouterr().out
        assert "on_no_supply" in out
        assert not paths["status"].exists()
        commands = [c["command"] for c in controller.get_command_log()]
        assert "power_off" not in commands

    @pytest.mark.asyncio
    async def test_inventory_failure_does_not_block_cycle(self, paths):
        """describe() is only logged; its failure never stops the decision."""

        class NoSystemsResource(RedfishClient):
            async def describe(self):
                raise ProtocolError("GET returned unexpected status", status=404)

            async def is_powered_on(self):
                return True

            async def has_power_supply(self):
                return True

        args = create_parser().parse_args([])
        code = await async_main(args, fast_config(paths), controller=NoSystemsResource())

        assert code == 0
        data = json.loads(paths["status"].read_text())
        assert data["on"] is True
        assert data["hasPowerSupply"] is True
        assert not paths["lock"].exists()


# =============================================================================
# main() exit codes
# =============================================================================

class TestMain:
    """Tests for main() exit codes."""

    def test_dry_run(self, paths, capsys):
        assert main(cli(paths, "--dry-run")) == 0
        assert "Configuration is valid" in capsys.readouterr().out
        assert not paths["status"].exists()

    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "absent.yaml"), "--dry-run"]) == 1

    def test_config_file_values_used(self, tmp_path):
        config_path = tmp_path / "powerwatch.yaml"
        config_path.write_text(yaml.safe_dump({"supervisor": {"poll_interval_sec": 5}}))
        assert main(["--config", str(config_path), "--dry-run"]) == 0

    def test_simulator_cycle(self, paths):
        assert main(cli(paths, "--simulator")) == 0
        data = json.loads(paths["status"].read_text())
        assert data["on"] is True
        assert not paths["lock"].exists()

    def test_lock_held_exits_zero_without_running(self, paths):
        paths["lock"].write_text("4242\n")

        assert main(cli(paths, "--simulator")) == 0

        assert not paths["status"].exists()
        assert paths["lock"].read_text() == "4242\n"

    def test_corrupt_status_file_is_failure(self, paths):
        paths["status"].write_text("{broken")
        assert main(cli(paths, "--simulator")) == 1
        assert not paths["lock"].exists()

    def test_sigterm_handler_restored(self, paths):
        before = signal.getsignal(signal.SIGTERM)
        main(cli(paths, "--simulator"))
        assert signal.getsignal(signal.SIGTERM) == before

    def test_unexpected_error_is_failure(self, paths):
        with patch("powerwatch.main.PowerSupervisor.run_cycle", side_effect=RuntimeError("boom")):
            assert main(cli(paths, "--simulator")) == 1


class TestSignals:
    def test_sigterm_becomes_keyboard_interrupt(self):
        with pytest.raises(KeyboardInterrupt):
            _handle_sigterm(signal.SIGTERM, None)
