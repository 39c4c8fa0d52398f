"""Shared fixtures for the replog test suite."""

from __future__ import annotations

import fcntl
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest

from replog.core.locking import FileLocker


# ---------------------------------------------------------------------------
# Log files
# ---------------------------------------------------------------------------

@pytest.fixture
def live_log(tmp_path: Path) -> Path:
    """Path of the producer's live log (not created)."""
    return tmp_path / "replog"


@pytest.fixture
def working_copy(tmp_path: Path) -> Path:
    """Path of the consumer's working copy (directory created, file not)."""
    path = tmp_path / "work" / "replog.slurp"
    path.parent.mkdir()
    return path


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------

@pytest.fixture
def fast_locker() -> FileLocker:
    """Locker that fails immediately on contention."""
    return FileLocker(timeout=0)


@pytest.fixture
def hold_lock() -> Callable[[Path], object]:
    """Hold an exclusive flock on a path through a separate open file.

    flock locks belong to the open file description, so this conflicts
    with the code under test even inside the same process.
    """

    @contextmanager
    def _hold(path: Path) -> Iterator[None]:
        fd = os.open(path, os.O_RDONLY | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    return _hold


def is_unlocked(path: Path) -> bool:
    """True if nobody holds an exclusive flock on ``path``."""
    fd = os.open(path, os.O_RDONLY)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)
        return True
    finally:
        os.close(fd)


@pytest.fixture
def unlocked() -> Callable[[Path], bool]:
    return is_unlocked


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Undo setup_logging() changes to the root logger and structlog."""
    import structlog

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
