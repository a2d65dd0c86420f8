"""
POWERWATCH Configuration

Pydantic models for every configurable value, loaded from YAML with
environment variable overrides.

Resolution order (later wins):
    1. Model defaults
    2. YAML file (explicit path, or first of get_config_paths() that exists)
    3. Environment variables POWERWATCH_<SECTION>_<FIELD>
       e.g. POWERWATCH_CONTROLLER_HOST=idrac.lab.local

Usage:
    from powerwatch.config import load_config

    config = load_config("/etc/powerwatch/config.yaml")
    print(config.supervisor.turn_off_grace_sec)
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from powerwatch.exceptions import ConfigurationError

ENV_PREFIX = "POWERWATCH_"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ControllerConfig(BaseModel):
    """Management controller (iDRAC Redfish) connection."""
    host: str = "idrac"
    username: str = "root"
    password: str = "calvin"
    verify_tls: bool = False                # iDRAC ships a self-signed cert
    timeout: float = Field(default=10.0, gt=0.0, le=300.0)

    system_path: str = "/redfish/v1/Systems/System.Embedded.1"
    chassis_path: str = "/redfish/v1/Chassis/System.Embedded.1"
    power_supply_path: str = "/redfish/v1/Chassis/System.Embedded.1/Power/PowerSupplies/PSU.Slot.2"

    # Below or at this line input voltage the PSU is considered unpowered
    no_voltage_threshold: float = Field(default=100.0, ge=0.0)
    shutdown_reset_type: Literal["GracefulShutdown", "ForceOff"] = "GracefulShutdown"


class SupervisorConfig(BaseModel):
    """Power-loss supervisor timing."""
    turn_off_grace_sec: float = Field(default=1200.0, ge=0.0)   # 20 minutes
    poll_interval_sec: float = Field(default=60.0, gt=0.0)
    settle_delay_sec: float = Field(default=60.0, ge=0.0)       # After a power command
    grace_anchor: Literal["snapshot", "state_file"] = "snapshot"


class StateConfig(BaseModel):
    """On-disk state."""
    status_file: str = "/tmp/server-lifecycle-status.json"
    run_lock: str = "/tmp/server-lifecycle.lock"


class CacheConfig(BaseModel):
    """Controller query cache."""
    capacity: int = Field(default=20, ge=1)


class PowerwatchConfig(BaseModel):
    """Master configuration."""
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    log_level: LogLevel = "INFO"
    log_file: Optional[str] = None


SECTIONS = ("controller", "supervisor", "state", "cache")


def get_config_paths() -> list[Path]:
    """Candidate configuration files, in search order."""
    return [
        Path("./powerwatch.yaml"),
        Path.home() / ".powerwatch" / "config.yaml",
        Path("/etc/powerwatch/config.yaml"),
    ]


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", config_file=str(path)) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file: {e}", config_file=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping", config_file=str(path))
    return data


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Merge POWERWATCH_* environment variables into the raw config dict.

    Values stay strings; pydantic coerces them to the field types.
    """
    for section in SECTIONS:
        model = PowerwatchConfig.model_fields[section].annotation
        for field_name in model.model_fields:
            env_name = f"{ENV_PREFIX}{section.upper()}_{field_name.upper()}"
            if env_name in os.environ:
                section_data = data.setdefault(section, {})
                if not isinstance(section_data, dict):
                    raise ConfigurationError(
                        f"Section '{section}' must be a mapping", config_key=section
                    )
                section_data[field_name] = os.environ[env_name]

    for field_name in ("log_level", "log_file"):
        env_name = f"{ENV_PREFIX}{field_name.upper()}"
        if env_name in os.environ:
            data[field_name] = os.environ[env_name]
    return data


def load_config(path: Optional[str | Path] = None) -> PowerwatchConfig:
    """Load configuration from file and environment.

    Args:
        path: Explicit config file. If None, the first existing file from
              get_config_paths() is used; if none exists, defaults apply.

    Returns:
        Validated PowerwatchConfig

    Raises:
        ConfigurationError: File not found, invalid YAML, or validation failed
    """
    data: dict[str, Any] = {}
    config_file: Optional[Path] = None

    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigurationError(
                f"Config file not found: {config_file}", config_file=str(config_file)
            )
    else:
        config_file = next((p for p in get_config_paths() if p.exists()), None)

    if config_file is not None:
        data = _read_yaml(config_file)

    data = _apply_env_overrides(data)

    try:
        return PowerwatchConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            config_file=str(config_file) if config_file else None,
        ) from e
