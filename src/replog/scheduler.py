"""Periodic drain loop.

Each tick probes the live log and, when it holds data, rotates it into the
working copy and hands the working copy to the consumer callback.

* A fatal rotation failure halts the loop; it needs an operator.
* A temporary failure is logged and retried on the next tick.
* In one-shot mode the loop ends after the first successful drain, since
  the live log is preserved and draining it again would only duplicate.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from .core.config import Settings
from .core.enums import Outcome
from .core.locking import FileLocker
from .observability.logger import new_trace_id
from .rotation.probe import is_nonempty
from .rotation.rotator import DEFAULT_CHUNK_SIZE, Locker, RotationResult, rotate

logger = logging.getLogger(__name__)

DrainCallback = Callable[[Path], None]


class DrainScheduler:
    """Single-threaded probe-then-rotate loop over one source/dest pair."""

    def __init__(
        self,
        source: str | os.PathLike[str],
        dest: str | os.PathLike[str],
        *,
        one_shot: bool = False,
        interval_seconds: float = 3.0,
        on_drained: DrainCallback | None = None,
        locker: Locker | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(
                f"interval_seconds must be > 0, got {interval_seconds}"
            )
        self._source = Path(source)
        self._dest = Path(dest)
        self._one_shot = one_shot
        self._interval = interval_seconds
        self._on_drained = on_drained
        self._locker = locker or FileLocker()
        self._chunk_size = chunk_size
        self._stop = threading.Event()

        self.ticks = 0
        self.successes = 0
        self.temporary_failures = 0
        self.last_result: RotationResult | None = None
        self.halted = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        on_drained: DrainCallback | None = None,
    ) -> DrainScheduler:
        return cls(
            settings.replog_path,
            settings.working_path,
            one_shot=settings.one_shot,
            interval_seconds=settings.rotation.interval_seconds,
            on_drained=on_drained,
            locker=settings.build_locker(),
            chunk_size=settings.rotation.chunk_size,
        )

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask the loop to return; wakes it if it is sleeping."""
        self._stop.set()

    def run_once(self) -> RotationResult | None:
        """Run one tick.  Returns None when there was nothing to drain."""
        new_trace_id()
        self.ticks += 1

        if not is_nonempty(self._source):
            logger.debug("Replog %s is empty", self._source)
            return None

        result = rotate(
            self._source,
            self._dest,
            self._one_shot,
            locker=self._locker,
            chunk_size=self._chunk_size,
        )
        self.last_result = result

        if result.outcome is Outcome.FATAL_FAILURE:
            logger.critical(
                "Fatal error rotating %s: %s; halting until fixed",
                self._source, result.error,
            )
            self.halted = True
            self._stop.set()
        elif result.outcome is Outcome.TEMPORARY_FAILURE:
            self.temporary_failures += 1
            logger.warning(
                "Rotation of %s failed at %s, will retry: %s",
                self._source, result.failed_step, result.error,
            )
        else:
            self.successes += 1
            if self._on_drained is not None:
                self._on_drained(self._dest)
            if self._one_shot:
                logger.info("One-shot drain of %s complete", self._source)
                self._stop.set()

        return result

    def run_forever(self, max_ticks: int | None = None) -> None:
        """Tick until stopped, halted, or ``max_ticks`` ticks have run."""
        logger.info(
            "Draining %s into %s every %.1fs (one_shot=%s)",
            self._source, self._dest, self._interval, self._one_shot,
        )
        ran = 0
        while not self._stop.is_set():
            self.run_once()
            ran += 1
            if max_ticks is not None and ran >= max_ticks:
                break
            if self._stop.wait(self._interval):
                break
        logger.info(
            "Drain loop stopped after %d ticks (%d drained, %d retried)",
            self.ticks, self.successes, self.temporary_failures,
        )
