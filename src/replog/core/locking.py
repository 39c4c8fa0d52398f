"""Exclusive advisory whole-file locks scoped to an open handle.

Locks are taken with ``fcntl.flock`` on the data file itself, so they
belong to the open file description: closing the handle (or the process
dying) drops the lock.  Producers appending through
:func:`replog.core.file_io.safe_append_line` and the rotator contend for
the same lock.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO

from .errors import LockAcquireError, LockContentionError, LockReleaseError

logger = logging.getLogger(__name__)

READ = "rb"
APPEND = "ab"

_CONTENTION_ERRNOS = frozenset({errno.EAGAIN, errno.EWOULDBLOCK, errno.EACCES})


@dataclass
class LockedFile:
    """An open binary file holding an exclusive lock."""

    path: str
    mode: str
    file: IO[bytes]

    def fileno(self) -> int:
        return self.file.fileno()

    @property
    def closed(self) -> bool:
        return self.file.closed


class FileLocker:
    """Open files under an exclusive ``flock``.

    Args:
        timeout: ``None`` blocks until the lock is free, ``0`` fails
            immediately on contention, a positive value polls until the
            deadline passes.
        poll_interval: Seconds between non-blocking attempts.
    """

    def __init__(
        self,
        timeout: float | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be >= 0 or None, got {timeout}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
        self._timeout = timeout
        self._poll_interval = poll_interval

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def acquire(self, path: str | os.PathLike[str], mode: str) -> LockedFile:
        """Open ``path`` in ``mode`` and take an exclusive lock on it.

        Raises:
            LockAcquireError: The file could not be opened or locked.
            LockContentionError: Another holder kept the lock past the
                timeout.
        """
        if mode not in (READ, APPEND):
            raise ValueError(f"Unsupported lock mode {mode!r}")
        path = os.fspath(path)

        try:
            f = open(path, mode)
        except OSError as exc:
            raise LockAcquireError(
                f"Can't open {path!r} ({mode}): {exc.strerror or exc}",
                path=path,
            ) from exc

        try:
            self._lock(f, path)
        except BaseException:
            f.close()
            raise

        logger.debug("Locked %s (%s)", path, mode)
        return LockedFile(path=path, mode=mode, file=f)

    def release(self, locked: LockedFile) -> None:
        """Flush, unlock and close.

        Every stage is attempted even if an earlier one fails.  The first
        failure is raised as :class:`LockReleaseError`.
        """
        if locked.closed:
            return

        errors: list[BaseException] = []
        try:
            locked.file.flush()
        except OSError as exc:
            errors.append(exc)
        try:
            fcntl.flock(locked.fileno(), fcntl.LOCK_UN)
        except (OSError, ValueError) as exc:
            errors.append(exc)
        try:
            locked.file.close()
        except OSError as exc:
            errors.append(exc)

        if errors:
            raise LockReleaseError(
                f"Error closing {locked.path!r}: {errors[0]}",
                path=locked.path,
            ) from errors[0]
        logger.debug("Unlocked %s", locked.path)

    @contextmanager
    def locked(
        self, path: str | os.PathLike[str], mode: str
    ) -> Iterator[LockedFile]:
        """Context manager around :meth:`acquire` / :meth:`release`."""
        handle = self.acquire(path, mode)
        try:
            yield handle
        finally:
            self.release(handle)

    def _lock(self, f: IO[bytes], path: str) -> None:
        if self._timeout is None:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            except OSError as exc:
                raise LockAcquireError(
                    f"Can't lock {path!r}: {exc.strerror or exc}", path=path
                ) from exc
            return

        deadline = time.monotonic() + self._timeout
        while True:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except OSError as exc:
                if exc.errno not in _CONTENTION_ERRNOS:
                    raise LockAcquireError(
                        f"Can't lock {path!r}: {exc.strerror or exc}",
                        path=path,
                    ) from exc
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise LockContentionError(
                        f"{path!r} is locked by another holder",
                        path=path,
                    ) from exc
                time.sleep(min(self._poll_interval, remaining))
