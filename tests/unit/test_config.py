"""
Unit tests for POWERWATCH configuration system.

Tests configuration loading, validation, and environment variable overrides.
"""

from pathlib import Path

import pytest
import yaml

from powerwatch.config import (
    CacheConfig,
    ControllerConfig,
    PowerwatchConfig,
    StateConfig,
    SupervisorConfig,
    get_config_paths,
    load_config,
)
from powerwatch.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any POWERWATCH_* variables from the environment."""
    import os
    for name in list(os.environ):
        if name.startswith("POWERWATCH_"):
            monkeypatch.delenv(name)
    return monkeypatch


class TestControllerConfig:
    """Tests for ControllerConfig."""

    def test_default_values(self) -> None:
        """Test ControllerConfig matches a factory-default iDRAC."""
        config = ControllerConfig()
        assert config.host == "idrac"
        assert config.username == "root"
        assert config.password == "calvin"
        assert config.verify_tls is False
        assert config.no_voltage_threshold == 100.0
        assert config.shutdown_reset_type == "GracefulShutdown"

    def test_timeout_range(self) -> None:
        ControllerConfig(timeout=0.5)
        ControllerConfig(timeout=300.0)
        with pytest.raises(ValueError):
            ControllerConfig(timeout=0.0)
        with pytest.raises(ValueError):
            ControllerConfig(timeout=301.0)

    def test_reset_type_choices(self) -> None:
        assert ControllerConfig(shutdown_reset_type="ForceOff").shutdown_reset_type == "ForceOff"
        with pytest.raises(ValueError):
            ControllerConfig(shutdown_reset_type="PushPowerButton")


class TestSupervisorConfig:
    """Tests for SupervisorConfig."""

    def test_default_values(self) -> None:
        config = SupervisorConfig()
        assert config.turn_off_grace_sec == 1200.0
        assert config.poll_interval_sec == 60.0
        assert config.settle_delay_sec == 60.0
        assert config.grace_anchor == "snapshot"

    def test_poll_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SupervisorConfig(poll_interval_sec=0)

    def test_grace_may_be_zero(self) -> None:
        assert SupervisorConfig(turn_off_grace_sec=0).turn_off_grace_sec == 0

    def test_negative_grace_rejected(self) -> None:
        with pytest.raises(ValueError):
            SupervisorConfig(turn_off_grace_sec=-1)

    def test_grace_anchor_choices(self) -> None:
        SupervisorConfig(grace_anchor="state_file")
        with pytest.raises(ValueError):
            SupervisorConfig(grace_anchor="boot_time")


class TestStateAndCacheConfig:
    """Tests for StateConfig and CacheConfig."""

    def test_state_defaults(self) -> None:
        config = StateConfig()
        assert config.status_file == "/tmp/server-lifecycle-status.json"
        assert config.run_lock == "/tmp/server-lifecycle.lock"

    def test_cache_capacity(self) -> None:
        assert CacheConfig().capacity == 20
        with pytest.raises(ValueError):
            CacheConfig(capacity=0)


class TestLoadConfig:
    """Tests for load_config()."""

    def test_explicit_file(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "controller": {"host": "idrac.lab.local", "password": "secret"},
            "supervisor": {"turn_off_grace_sec": 600},
            "log_level": "DEBUG",
        }))

        config = load_config(path)

        assert config.controller.host == "idrac.lab.local"
        assert config.controller.password == "secret"
        assert config.controller.username == "root"
        assert config.supervisor.turn_off_grace_sec == 600
        assert config.log_level == "DEBUG"

    def test_missing_explicit_file(self, tmp_path, clean_env) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path / "absent.yaml")
        assert "not found" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("controller: [unclosed")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "Invalid YAML" in str(exc_info.value)

    def test_non_mapping_yaml(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_empty_file_gives_defaults(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == PowerwatchConfig()

    def test_validation_failure(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"cache": {"capacity": 0}}))
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "validation failed" in str(exc_info.value)
        assert exc_info.value.config_file == str(path)

    def test_no_file_found_gives_defaults(self, tmp_path, clean_env) -> None:
        clean_env.setattr(
            "powerwatch.config.get_config_paths", lambda: [tmp_path / "nope.yaml"]
        )
        assert load_config() == PowerwatchConfig()


class TestEnvironmentOverrides:
    """Tests for POWERWATCH_* environment variables."""

    def test_section_override(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"controller": {"host": "from-file"}}))
        clean_env.setenv("POWERWATCH_CONTROLLER_HOST", "from-env")
        clean_env.setenv("POWERWATCH_SUPERVISOR_POLL_INTERVAL_SEC", "15")
        clean_env.setenv("POWERWATCH_CONTROLLER_VERIFY_TLS", "true")

        config = load_config(path)

        assert config.controller.host == "from-env"
        assert config.supervisor.poll_interval_sec == 15.0
        assert config.controller.verify_tls is True

    def test_top_level_override(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        clean_env.setenv("POWERWATCH_LOG_LEVEL", "WARNING")
        assert load_config(path).log_level == "WARNING"

    def test_invalid_env_value(self, tmp_path, clean_env) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        clean_env.setenv("POWERWATCH_CACHE_CAPACITY", "lots")
        with pytest.raises(ConfigurationError):
            load_config(path)


class TestConfigPaths:
    """Tests for get_config_paths()."""

    def test_search_order(self) -> None:
        paths = get_config_paths()
        assert paths[0] == Path("./powerwatch.yaml")
        assert paths[-1] == Path("/etc/powerwatch/config.yaml")
        assert all(isinstance(p, Path) for p in paths)
