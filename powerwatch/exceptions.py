"""
POWERWATCH Custom Exceptions

Provides the domain-specific exception hierarchy for the POWERWATCH server
power supervisor. Low-level failures (aiohttp, OSError, JSON decoding) are
translated into these classes at the module that owns them, so callers can
tell a flaky network apart from a corrupt status file.

Exception Hierarchy:
    PowerwatchError (base)
    ├── ConfigurationError
    ├── ControllerError
    │   ├── TransportError
    │   └── ProtocolError
    ├── StateStoreError
    │   ├── SnapshotNotFoundError
    │   ├── SnapshotCorruptError
    │   └── SnapshotWriteError
    ├── RunLockError
    └── PowerCommandError
"""

from typing import Any, Optional


class PowerwatchError(Exception):
    """Base exception for all POWERWATCH errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional error context
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(PowerwatchError):
    """Error in configuration file or settings.

    Raised when configuration validation fails, a configuration file is
    missing or unreadable, or a component is constructed with an invalid
    value (e.g. a zero-capacity cache).
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_file:
            details["config_file"] = config_file
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


# =============================================================================
# Management Controller Errors
# =============================================================================

class ControllerError(PowerwatchError):
    """Base class for failures talking to the management controller."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs
        if host:
            details["host"] = host
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.host = host
        self.path = path


class TransportError(ControllerError):
    """Network, TLS or timeout failure reaching the controller."""
    pass


class ProtocolError(ControllerError):
    """Controller answered, but with a non-success status or bad payload.

    Raised for unexpected HTTP status codes, bodies that are not JSON
    objects, and resources missing a field we need to decode.
    """

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        path: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        if status is not None:
            super().__init__(message, host, path, status=status)
        else:
            super().__init__(message, host, path)
        self.status = status


# =============================================================================
# State Store Errors
# =============================================================================

class StateStoreError(PowerwatchError):
    """Base class for status file errors."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class SnapshotNotFoundError(StateStoreError):
    """Status file does not exist."""
    pass


class SnapshotCorruptError(StateStoreError):
    """Status file exists but cannot be decoded into a snapshot."""
    pass


class SnapshotWriteError(StateStoreError):
    """Status file could not be written."""
    pass


# =============================================================================
# Run Lock / Command Errors
# =============================================================================

class RunLockError(PowerwatchError):
    """Another instance holds the run lock (or the lock file is unusable)."""

    def __init__(self, message: str, lock_file: Optional[str] = None) -> None:
        details = {}
        if lock_file:
            details["lock_file"] = lock_file
        super().__init__(message, details)
        self.lock_file = lock_file


class PowerCommandError(PowerwatchError):
    """A PowerOff/PowerOn command failed.

    Never recovered locally: issuing the command is the whole purpose of the
    cycle that raised it. The underlying ControllerError is chained as
    ``__cause__``.
    """

    def __init__(self, message: str, command: Optional[str] = None) -> None:
        details = {}
        if command:
            details["command"] = command
        super().__init__(message, details)
        self.command = command
