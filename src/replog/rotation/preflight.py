"""Directory-writability preflight for rotation."""

from __future__ import annotations

import logging
import os

from replog.core.enums import RotationStep
from replog.core.errors import DirectoryNotWritableError, SameFileError

logger = logging.getLogger(__name__)


def parent_directory(path: str | os.PathLike[str]) -> str:
    """Return the directory containing ``path``.

    Everything before the last separator, or ``"."`` when the path has no
    separator.  A file directly under the root yields ``"/"``.
    """
    text = os.fspath(path)
    head, sep, _ = text.rpartition(os.sep)
    if not sep:
        return "."
    return head or os.sep


def ensure_writable_parent(path: str | os.PathLike[str]) -> str:
    """Check that the process can write to the directory holding ``path``.

    Returns the directory checked.

    Raises:
        DirectoryNotWritableError: The directory is missing or not writable.
    """
    directory = parent_directory(path)
    if not os.access(directory, os.W_OK):
        logger.error(
            "Directory %s is not writable (pid %d)", directory, os.getpid()
        )
        raise DirectoryNotWritableError(
            f"Directory {directory!r} is not writable",
            step=RotationStep.PREFLIGHT,
            path=directory,
        )
    return directory


def ensure_distinct(
    source: str | os.PathLike[str], dest: str | os.PathLike[str]
) -> None:
    """Check that ``source`` and ``dest`` are not the same file.

    Existing files are compared by device and inode, so hard links and
    symlinks are caught; otherwise the resolved paths are compared.

    Raises:
        SameFileError: Both paths name one file.
    """
    try:
        same = os.path.samefile(source, dest)
    except OSError:
        same = os.path.realpath(source) == os.path.realpath(dest)
    if same:
        logger.error("Replog %s and working copy %s are the same file", source, dest)
        raise SameFileError(
            f"{os.fspath(source)!r} and {os.fspath(dest)!r} are the same file",
            step=RotationStep.PREFLIGHT,
            path=os.fspath(dest),
        )
