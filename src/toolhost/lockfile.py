"""Singleton coordination through a ``{pid, port}`` lock file.

A lock record is *live* only while a process with its pid exists in the OS
process table.  A record whose process is gone is stale: it is reported as
"not running" but left on disk until an explicit stop removes it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

import psutil
from pydantic import BaseModel, Field, ValidationError

from toolhost.errors import LockFileError, LockNotFoundError, LockParseError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = "toolhost.lock"


def default_lock_path() -> Path:
    """Return the well-known lock path in the OS temp directory."""
    return Path(tempfile.gettempdir()) / LOCK_FILE_NAME


class LockRecord(BaseModel):
    """The persisted ``{pid, port}`` pair."""

    pid: int = Field(..., ge=0, description="Process id of the server.")
    port: int = Field(..., ge=0, le=65535, description="Loopback TCP port.")


def process_is_alive(pid: int) -> bool:
    """Check the OS process table for *pid*."""
    if pid <= 0:
        return False
    return psutil.pid_exists(pid)


class LockFileManager:
    """Reads, writes, and validates the lock file at *path*."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or default_lock_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: LockRecord) -> None:
        """Persist *record*.

        Raises:
            LockFileError: On permission or disk failure.
        """
        try:
            tmp = self._write_temp(record)
            os.replace(tmp, self._path)
        except OSError as exc:
            raise LockFileError(f"Cannot write lock file {self._path}: {exc}") from exc
        logger.debug("Lock file written to %s: %s", self._path, record)

    def acquire(self, record: LockRecord) -> LockRecord | None:
        """Claim the lock for *record* unless a live server already holds it.

        A stale or unreadable file is replaced.  The record is published with
        an atomic hard link, so of two concurrent claimants only one wins.

        Returns:
            ``None`` on success, else the live holder's record.

        Raises:
            LockFileError: On permission or disk failure.
        """
        holder = self.server_is_running()
        if holder is not None:
            return holder
        if self._path.exists():
            logger.info("Replacing stale lock file %s", self._path)
            self.remove()

        try:
            tmp = self._write_temp(record)
        except OSError as exc:
            raise LockFileError(f"Cannot write lock file {self._path}: {exc}") from exc
        try:
            os.link(tmp, self._path)
        except FileExistsError:
            # Lost the race; the winner's file is complete because it was linked.
            return self.server_is_running() or self.read()
        except OSError as exc:
            raise LockFileError(f"Cannot write lock file {self._path}: {exc}") from exc
        finally:
            tmp.unlink(missing_ok=True)

        logger.debug("Lock file acquired at %s: %s", self._path, record)
        return None

    def _write_temp(self, record: LockRecord) -> Path:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(record.model_dump(), fh, indent=2)
        return Path(name)

    def read(self) -> LockRecord:
        """Load the record from disk.

        Raises:
            LockNotFoundError: If the file does not exist.
            LockParseError: If the file does not hold a valid record.
            LockFileError: On any other read failure.
        """
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise LockNotFoundError(f"Lock file not found: {self._path}") from exc
        except OSError as exc:
            raise LockFileError(f"Cannot read lock file {self._path}: {exc}") from exc

        try:
            return LockRecord.model_validate_json(content)
        except ValidationError as exc:
            raise LockParseError(f"Malformed lock file {self._path}: {exc}") from exc

    def server_is_running(self) -> LockRecord | None:
        """Return the record if its process is alive, else ``None``.

        Absent, malformed, and stale files all mean "not running".  The file
        is never deleted here.
        """
        try:
            record = self.read()
        except LockNotFoundError:
            return None
        except LockFileError as exc:
            logger.debug("Ignoring unreadable lock file: %s", exc)
            return None

        if not process_is_alive(record.pid):
            logger.debug("Stale lock file %s (PID %d not running)", self._path, record.pid)
            return None
        return record

    def is_stale(self) -> bool:
        """Return ``True`` if a readable record exists whose process is dead."""
        try:
            record = self.read()
        except LockFileError:
            return False
        return not process_is_alive(record.pid)

    def remove(self) -> bool:
        """Delete the lock file; a missing file is not an error.

        Returns:
            Whether a file was actually removed.
        """
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise LockFileError(f"Cannot remove lock file {self._path}: {exc}") from exc
        logger.debug("Lock file %s removed", self._path)
        return True
