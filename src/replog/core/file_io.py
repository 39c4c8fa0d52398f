"""Producer-side append to a live replication log.

Records are appended under the same exclusive ``flock`` the rotator takes,
so an append never lands between the rotator's copy and its truncate.
"""

from __future__ import annotations

import os
from pathlib import Path

from .locking import APPEND, FileLocker


def safe_append_line(
    path: str | os.PathLike[str],
    line: str,
    *,
    locker: FileLocker | None = None,
) -> None:
    """Append a single record to a log file with locking and fsync.

    * The record is written as UTF-8 with one trailing newline; it must not
      itself contain a newline, since records are newline-delimited.
    * ``os.fsync`` ensures the data hits disk before the lock is released.
    * Parent directories are created if missing.
    """
    if "\n" in line:
        raise ValueError("Record must not contain a newline")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    locker = locker or FileLocker()
    with locker.locked(path, APPEND) as handle:
        handle.file.write(line.encode("utf-8") + b"\n")
        handle.file.flush()
        os.fsync(handle.fileno())
