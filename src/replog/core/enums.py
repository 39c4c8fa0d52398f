"""Enumerations used across replog."""

from enum import Enum


class Outcome(str, Enum):
    SUCCESS = "success"
    TEMPORARY_FAILURE = "temporary_failure"
    FATAL_FAILURE = "fatal_failure"


class RotationStep(str, Enum):
    """Steps of a rotation attempt, in execution order."""

    PREFLIGHT = "preflight"
    LOCK_SOURCE = "lock_source"
    LOCK_DEST = "lock_dest"
    COPY = "copy"
    TRUNCATE = "truncate"
    RELEASE_SOURCE = "release_source"
    RELEASE_DEST = "release_dest"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"
