"""
POWERWATCH Run Lock

Ensures at most one instance of the supervisor runs at a time. The lock is
a file created exclusively (O_CREAT | O_EXCL) holding the owner's PID; it is
removed when the holder exits, on every exit path.

Usage:
    with RunLock("/tmp/server-lifecycle.lock"):
        ...  # exclusive

A lock left behind by a crashed run must be removed by hand.
"""

import os
from pathlib import Path
from typing import Optional, Union

from powerwatch.exceptions import RunLockError
from powerwatch.logging_config import get_logger

logger = get_logger(__name__)


class RunLock:
    """Exclusive, file-based single-run guard."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Take the lock or fail immediately.

        Raises:
            RunLockError: Another instance holds the lock, or the lock file
                cannot be created
        """
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as e:
            raise RunLockError(
                "Could not obtain lock file, perhaps another instance is running. "
                "Wait until it completes or manually remove the lock file",
                lock_file=str(self.path),
            ) from e
        except OSError as e:
            raise RunLockError(
                f"Failed to create lock file: {e}", lock_file=str(self.path)
            ) from e

        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()}\n")
        self._held = True
        logger.info("No other running instance found, starting lifecycle checks")

    def release(self) -> None:
        """Remove the lock file if this instance holds it."""
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Lock file {self.path} was already removed")
        self._held = False

    def owner_pid(self) -> Optional[int]:
        """PID recorded in the lock file, if any."""
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
