"""Emptiness probe for the live log."""

from __future__ import annotations

import os


def is_nonempty(path: str | os.PathLike[str]) -> bool:
    """Return True if ``path`` exists and has a nonzero size.

    Advisory only: a missing file or any stat error reads as empty, and
    the rotator re-validates on actual access.
    """
    try:
        return os.stat(path).st_size > 0
    except (OSError, ValueError):
        return False
