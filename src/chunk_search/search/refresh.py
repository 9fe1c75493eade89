"""
Debounced reader refresh.

Searches and listings signal that the index may have changed. After a quiet
period the first signal schedules one refresh ``interval`` seconds later;
further signals are ignored while that refresh is pending and for
``interval`` seconds after it ran.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import duckdb

from ..config import DEFAULT_REFRESH_INTERVAL
from ..storage import EngineIOError, IndexEngine, IndexReader

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"


class RefreshCoordinator:
    """Owns the active reader and swaps it for newer snapshots."""

    def __init__(
        self,
        engine: IndexEngine,
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._engine = engine
        self._interval = interval
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._reader: IndexReader | None = engine.open_reader()
        self._last_refresh: float | None = None
        self._pending_timer: Any | None = None
        self._refresh_count = 0

    @property
    def state(self) -> RefreshState:
        with self._lock:
            if self._pending_timer is None:
                return RefreshState.IDLE
            return RefreshState.PENDING

    @property
    def last_refresh(self) -> float | None:
        with self._lock:
            return self._last_refresh

    @property
    def refresh_count(self) -> int:
        with self._lock:
            return self._refresh_count

    @property
    def generation(self) -> int:
        with self.acquire() as reader:
            return reader.generation

    @contextmanager
    def acquire(self) -> Iterator[IndexReader]:
        """Lease the active reader; it stays open until the lease ends."""
        with self._lock:
            reader = self._reader
            if reader is None:
                raise EngineIOError("Refresh coordinator is closed.")
            reader.inc_ref()
        try:
            yield reader
        finally:
            reader.dec_ref()

    def signal_change(self) -> bool:
        """Schedule a refresh unless one is pending or one ran recently."""
        with self._lock:
            if self._reader is None or self._pending_timer is not None:
                return False
            now = self._clock()
            if self._last_refresh is not None and now - self._last_refresh < self._interval:
                return False

            timer = self._timer_factory(self._interval, self._run_refresh)
            timer.daemon = True
            self._pending_timer = timer
        timer.start()
        logger.debug("Index refresh scheduled in %.1fs", self._interval)
        return True

    def refresh_now(self) -> bool:
        """Swap in a newer reader if one exists. Return True on swap."""
        with self.acquire() as current:
            new_reader = self._engine.reopen_if_changed(current)

        with self._lock:
            self._last_refresh = self._clock()
            if new_reader is None:
                return False
            old_reader = self._reader
            if old_reader is not None:
                self._reader = new_reader
                self._refresh_count += 1

        if old_reader is None:
            # Closed while the new snapshot was loading.
            new_reader.dec_ref()
            return False
        old_reader.dec_ref()
        logger.info("Index refreshed to generation %d", new_reader.generation)
        return True

    def close(self) -> None:
        with self._lock:
            timer, self._pending_timer = self._pending_timer, None
            reader, self._reader = self._reader, None
        if timer is not None:
            timer.cancel()
        if reader is not None:
            reader.dec_ref()

    def _run_refresh(self) -> None:
        try:
            self.refresh_now()
        except (EngineIOError, duckdb.Error):
            logger.exception("Error refreshing index; keeping the current reader")
        finally:
            with self._lock:
                self._pending_timer = None
