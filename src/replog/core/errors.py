"""Custom exception hierarchy for replication log rotation."""

from __future__ import annotations

from typing import Any


class ReplogError(Exception):
    """Base exception for all replog errors."""


# --- Configuration ---
class ConfigError(ReplogError):
    """Invalid or missing configuration."""


# --- Rotation ---
class RotationError(ReplogError):
    """A rotation attempt failed at a specific step."""

    def __init__(
        self,
        message: str,
        *,
        step: Any = None,
        path: str | None = None,
    ) -> None:
        self.step = step
        self.path = path
        super().__init__(message)


class FatalRotationError(RotationError):
    """Deployment or permission problem; retrying will not help."""


class DirectoryNotWritableError(FatalRotationError):
    """A log file's containing directory is not writable."""


class SameFileError(FatalRotationError):
    """Source and destination resolve to the same file."""


class TemporaryRotationError(RotationError):
    """Transient failure; the caller should retry on its next tick."""


class LockAcquireError(TemporaryRotationError):
    """The file could not be opened and locked."""


class LockContentionError(LockAcquireError):
    """Another holder owns the exclusive lock."""


class LockReleaseError(TemporaryRotationError):
    """Unlocking or closing a locked file failed (possible stuck lock)."""


class CopyError(TemporaryRotationError):
    """Reading the live log or appending to the working copy failed."""
