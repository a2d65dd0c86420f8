"""
POWERWATCH Snapshot Store

Reads and writes the status file holding the last observed server snapshot:

    {"on": true, "hasPowerSupply": true, "lastUpdate": "2026-10-18T07:12:03.512204+00:00"}

The file is single-writer (guarded by the run lock). Writes replace the
whole file; nothing is merged.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from powerwatch.exceptions import (
    SnapshotCorruptError,
    SnapshotNotFoundError,
    SnapshotWriteError,
)
from powerwatch.types import ServerSnapshot, utc_now

logger = logging.getLogger("powerwatch.services.state")

PathLike = Union[str, Path]


def initialize_snapshot(path: PathLike, now: Optional[datetime] = None) -> bool:
    """
    Create an empty status record if none exists.

    The empty record is powered off, without supply, stamped ``now``.

    Returns:
        True if the file was created, False if it already existed

    Raises:
        SnapshotWriteError: If the file could not be created
    """
    path = Path(path)
    if path.exists():
        logger.info(f"State file {path} already exists, not overwriting")
        return False

    snapshot = ServerSnapshot(
        powered_on=False,
        has_power_supply=False,
        observed_at=now or utc_now(),
    )
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "x") as f:
            json.dump(snapshot.to_dict(), f)
    except FileExistsError:
        # Created between the existence check and the open
        return False
    except OSError as e:
        raise SnapshotWriteError(f"Failed to create state file: {e}", str(path)) from e

    logger.info(f"Created state file {path}: {snapshot}")
    return True


def read_snapshot(path: PathLike) -> ServerSnapshot:
    """
    Read the last persisted snapshot.

    Raises:
        SnapshotNotFoundError: File does not exist
        SnapshotCorruptError: File cannot be decoded
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise SnapshotNotFoundError("State file not found", str(path)) from e
    except ValueError as e:
        raise SnapshotCorruptError(f"State file is not valid JSON: {e}", str(path)) from e
    except OSError as e:
        raise SnapshotCorruptError(f"Cannot read state file: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise SnapshotCorruptError("State file must hold a JSON object", str(path))
    try:
        return ServerSnapshot.from_dict(data)
    except KeyError as e:
        raise SnapshotCorruptError(f"State file missing field {e}", str(path)) from e
    except (TypeError, ValueError) as e:
        raise SnapshotCorruptError(f"State file has invalid field: {e}", str(path)) from e


def write_snapshot(path: PathLike, snapshot: ServerSnapshot) -> None:
    """
    Persist a snapshot, replacing the file contents entirely.

    Writes to a temporary file in the same directory and renames it over
    the target, so a reader never sees a half-written record.

    Raises:
        SnapshotWriteError: On any filesystem failure
    """
    path = Path(path)
    logger.info(f"Serializing state {snapshot} to file {path}")
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent or ".")
        with os.fdopen(fd, "w") as f:
            json.dump(snapshot.to_dict(), f)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise SnapshotWriteError(f"Failed to write state file: {e}", str(path)) from e


def last_modified(path: PathLike) -> datetime:
    """
    Modification time of the status file, as UTC.

    Raises:
        SnapshotNotFoundError: File does not exist
    """
    try:
        mtime = os.stat(path).st_mtime
    except FileNotFoundError as e:
        raise SnapshotNotFoundError("State file not found", str(path)) from e
    return datetime.fromtimestamp(mtime, tz=timezone.utc)


class SnapshotStore:
    """Snapshot store bound to one status file."""

    def __init__(self, path: PathLike):
        self.path = Path(path)

    def initialize(self, now: Optional[datetime] = None) -> bool:
        return initialize_snapshot(self.path, now)

    def read(self) -> ServerSnapshot:
        return read_snapshot(self.path)

    def write(self, snapshot: ServerSnapshot) -> None:
        write_snapshot(self.path, snapshot)

    def last_modified(self) -> datetime:
        return last_modified(self.path)
