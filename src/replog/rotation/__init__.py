"""Replication log rotation: preflight, emptiness probe and copy-and-rotate."""

from __future__ import annotations

from .preflight import ensure_distinct, ensure_writable_parent, parent_directory
from .probe import is_nonempty
from .rotator import DEFAULT_CHUNK_SIZE, RotationResult, rotate

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "RotationResult",
    "ensure_distinct",
    "ensure_writable_parent",
    "is_nonempty",
    "parent_directory",
    "rotate",
]
