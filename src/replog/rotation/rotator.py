"""Copy-and-rotate of a live replication log.

The live log is drained into a private working copy under exclusive locks
on both files, then truncated in place.  The ordering is what makes the
operation crash tolerant:

1. both parent directories are checked for writability, and source and
   dest for being distinct files (fatal if not);
2. the source is locked before the destination, always;
3. every byte is appended to the destination and fsynced;
4. only then is the source truncated (skipped in one-shot mode);
5. locks are released source first, on every exit path.

A crash between 3 and 4 leaves the records in both files.  Downstream
replay is idempotent, so duplication is tolerated; omission is not.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import IO, Protocol

from replog.core.enums import Outcome, RotationStep
from replog.core.errors import (
    CopyError,
    FatalRotationError,
    LockAcquireError,
    LockReleaseError,
    RotationError,
    TemporaryRotationError,
)
from replog.core.locking import APPEND, READ, FileLocker, LockedFile

from .preflight import ensure_distinct, ensure_writable_parent

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class Locker(Protocol):
    """Locking open primitive used by :func:`rotate`."""

    def acquire(self, path: str, mode: str) -> LockedFile: ...

    def release(self, locked: LockedFile) -> None: ...


@dataclass(frozen=True)
class RotationResult:
    """Outcome of one rotation attempt.

    ``failed_step`` and ``error`` describe the earliest failure.  Lock
    release failures are also collected in ``release_errors`` even when an
    earlier step already decided the outcome.
    """

    outcome: Outcome
    source: str
    dest: str
    failed_step: RotationStep | None = None
    error: RotationError | None = None
    bytes_copied: int = 0
    truncated: bool = False
    release_errors: tuple[LockReleaseError, ...] = ()

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def raise_for_outcome(self) -> None:
        """Raise the recorded error unless the rotation succeeded."""
        if self.ok:
            return
        if self.error is not None:
            raise self.error
        cls = (
            FatalRotationError
            if self.outcome is Outcome.FATAL_FAILURE
            else TemporaryRotationError
        )
        raise cls(
            f"Rotation of {self.source!r} failed", step=self.failed_step
        )


def rotate(
    source: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    one_shot: bool = False,
    *,
    locker: Locker | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RotationResult:
    """Drain ``source`` into ``dest`` and, unless ``one_shot``, empty it.

    Filesystem failures never raise; they are classified into the returned
    :class:`RotationResult`:

    * ``FATAL_FAILURE``: a parent directory is not writable, or source and
      dest are the same file.  No file was opened.
    * ``TEMPORARY_FAILURE``: a lock could not be taken, or the copy,
      truncate or a lock release failed.  Retry on the next tick.
    * ``SUCCESS``: every step, lock release included, completed.

    Args:
        source: Live log path.  Must exist to be drained.
        dest: Working copy path; created if absent, only ever appended to.
        one_shot: Leave the source untouched after copying.
        locker: Locking open primitive, a blocking :class:`FileLocker` by
            default.
        chunk_size: Bytes read per iteration of the copy loop.
    """
    source = os.fspath(source)
    dest = os.fspath(dest)
    if not source or not dest:
        raise ValueError("source and dest must be non-empty paths")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    locker = locker or FileLocker()

    logger.debug('copy replog "%s" to "%s" (one_shot=%s)', source, dest, one_shot)

    try:
        ensure_writable_parent(source)
        ensure_writable_parent(dest)
        ensure_distinct(source, dest)
    except FatalRotationError as exc:
        return RotationResult(
            Outcome.FATAL_FAILURE, source, dest,
            failed_step=RotationStep.PREFLIGHT, error=exc,
        )

    try:
        src = _acquire(locker, source, READ, RotationStep.LOCK_SOURCE)
    except TemporaryRotationError as exc:
        logger.warning("Can't lock replog %s for read: %s", source, exc)
        return RotationResult(
            Outcome.TEMPORARY_FAILURE, source, dest,
            failed_step=RotationStep.LOCK_SOURCE, error=exc,
        )

    try:
        dst = _acquire(locker, dest, APPEND, RotationStep.LOCK_DEST)
    except TemporaryRotationError as exc:
        logger.warning("Can't lock replog %s for write: %s", dest, exc)
        release_errors = _release(locker, ((RotationStep.RELEASE_SOURCE, src),))
        return RotationResult(
            Outcome.TEMPORARY_FAILURE, source, dest,
            failed_step=RotationStep.LOCK_DEST, error=exc,
            release_errors=release_errors,
        )

    failure: TemporaryRotationError | None = None
    copied = 0
    truncated = False
    try:
        try:
            copied = _copy_stream(src.file, dst.file, chunk_size)
        except OSError as exc:
            failure = CopyError(
                f"Copy of {source!r} to {dest!r} failed: {exc}",
                step=RotationStep.COPY,
                path=source,
            )
            failure.__cause__ = exc
            logger.error("Error copying %s to %s: %s", source, dest, exc)
        else:
            if not one_shot:
                failure = _truncate(src)
                truncated = failure is None
    finally:
        release_errors = _release(
            locker,
            (
                (RotationStep.RELEASE_SOURCE, src),
                (RotationStep.RELEASE_DEST, dst),
            ),
        )

    if failure is None and release_errors:
        failure = release_errors[0]

    if failure is not None:
        return RotationResult(
            Outcome.TEMPORARY_FAILURE, source, dest,
            failed_step=failure.step, error=failure,
            bytes_copied=copied, truncated=truncated,
            release_errors=release_errors,
        )

    logger.info(
        "Rotated %s to %s (%d bytes, truncated=%s)",
        source, dest, copied, truncated,
    )
    return RotationResult(
        Outcome.SUCCESS, source, dest,
        bytes_copied=copied, truncated=truncated,
    )


def _acquire(
    locker: Locker, path: str, mode: str, step: RotationStep
) -> LockedFile:
    try:
        handle = locker.acquire(path, mode)
    except TemporaryRotationError as exc:
        exc.step = step
        raise
    except OSError as exc:
        raise LockAcquireError(
            f"Can't lock {path!r}: {exc}", step=step, path=path
        ) from exc
    return handle


def _copy_stream(src: IO[bytes], dst: IO[bytes], chunk_size: int) -> int:
    """Append all of ``src`` to ``dst``; return the byte count.

    Reads continue until an empty read signals EOF, so short reads are
    simply followed by another read.  Each chunk is fully written and
    flushed before the next read.
    """
    total = 0
    while True:
        chunk = src.read(chunk_size)
        if not chunk:
            break
        view = memoryview(chunk)
        while view:
            written = dst.write(view)
            view = view[written:]
        dst.flush()
        total += len(chunk)
    os.fsync(dst.fileno())
    return total


def _truncate(src: LockedFile) -> TemporaryRotationError | None:
    """Empty the locked source in place.

    Truncation goes through the path, so the inode behind the path is
    compared with the locked handle first; a replaced file is left alone.
    """
    try:
        if os.stat(src.path).st_ino != os.fstat(src.fileno()).st_ino:
            error = TemporaryRotationError(
                f"{src.path!r} was replaced during rotation; not truncating",
                step=RotationStep.TRUNCATE,
                path=src.path,
            )
            logger.error("%s", error)
            return error
        os.truncate(src.path, 0)
    except OSError as exc:
        error = TemporaryRotationError(
            f"Truncate of {src.path!r} failed: {exc}",
            step=RotationStep.TRUNCATE,
            path=src.path,
        )
        error.__cause__ = exc
        logger.error("Error truncating %s: %s", src.path, exc)
        return error
    return None


def _release(
    locker: Locker, handles: tuple[tuple[RotationStep, LockedFile], ...]
) -> tuple[LockReleaseError, ...]:
    """Release each handle in order, attempting all of them."""
    errors: list[LockReleaseError] = []
    for step, handle in handles:
        try:
            locker.release(handle)
        except LockReleaseError as exc:
            exc.step = step
            errors.append(exc)
        except OSError as exc:
            wrapped = LockReleaseError(
                f"Error closing {handle.path!r}: {exc}",
                step=step,
                path=handle.path,
            )
            wrapped.__cause__ = exc
            errors.append(wrapped)
        else:
            continue
        logger.error(
            "Error closing %s; lock may be stuck and block further "
            "rotations: %s",
            handle.path, errors[-1],
        )
    return tuple(errors)
