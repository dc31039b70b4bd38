"""Periodic persistence of the tracked position.

The logger wakes on a fixed schedule, drains the PositionTracker and
appends at most one record per tick, however many fixes arrived in
between. Ticks are anchored to the start time so slow ticks never push
later ones back.
"""

from __future__ import annotations

import datetime as dt
import math
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Callable, Iterator, Optional

from ...core.logging_utils import get_module_logger
from ..constants import DEFAULT_LOG_INITIAL_DELAY_S, DEFAULT_LOG_PERIOD_S, DEFAULT_TRACK_ID
from ..errors import SessionStateError
from ..position_tracker import PositionTracker
from .records import LoggedRecord
from .sinks import RecordSink

logger = get_module_logger(__name__)


class LoggerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class FixedRateSchedule:
    """Tick k is due at ``initial_delay_s + k * period_s`` after the start."""

    def __init__(
        self,
        initial_delay_s: float = DEFAULT_LOG_INITIAL_DELAY_S,
        period_s: float = DEFAULT_LOG_PERIOD_S,
    ):
        if initial_delay_s < 0:
            raise ValueError("initial_delay_s must be >= 0")
        if period_s <= 0:
            raise ValueError("period_s must be > 0")
        self.initial_delay_s = initial_delay_s
        self.period_s = period_s

    def offset(self, index: int) -> float:
        return self.initial_delay_s + index * self.period_s

    def deadline(self, index: int, start: float) -> float:
        return start + self.offset(index)

    def next_index(self, elapsed: float) -> int:
        """First tick index whose offset is at or after ``elapsed``."""
        if elapsed <= self.initial_delay_s:
            return 0
        return math.ceil((elapsed - self.initial_delay_s) / self.period_s)

    def offsets_within(self, duration: float) -> Iterator[float]:
        """Offsets of every tick that falls before ``duration``."""
        index = 0
        while self.offset(index) < duration:
            yield self.offset(index)
            index += 1


class RateLimitedLogger:
    """Drains the tracker on a timer thread and appends records to a sink.

    Example:
        rate_logger = RateLimitedLogger(tracker, sink, initial_delay_s=1.0, period_s=10.0)
        rate_logger.start()
        ...
        rate_logger.stop()
    """

    def __init__(
        self,
        tracker: PositionTracker,
        sink: RecordSink,
        *,
        initial_delay_s: float = DEFAULT_LOG_INITIAL_DELAY_S,
        period_s: float = DEFAULT_LOG_PERIOD_S,
        track_id: str = DEFAULT_TRACK_ID,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._tracker = tracker
        self._sink = sink
        self._schedule = FixedRateSchedule(initial_delay_s, period_s)
        self._track_id = track_id
        self._clock = clock

        self._state = LoggerState.IDLE
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.ticks = 0
        self.records_logged = 0
        self._append_failures = 0
        # Append callbacks run on the sink thread
        self._failures_lock = threading.Lock()

    @property
    def state(self) -> LoggerState:
        return self._state

    @property
    def schedule(self) -> FixedRateSchedule:
        return self._schedule

    @property
    def append_failures(self) -> int:
        with self._failures_lock:
            return self._append_failures

    def start(self) -> None:
        """Begin ticking. Only valid once, from IDLE."""
        with self._state_lock:
            if self._state is not LoggerState.IDLE:
                raise SessionStateError(f"Cannot start logger in state {self._state.value}")
            self._state = LoggerState.RUNNING

        self._thread = threading.Thread(target=self._run, name="GPSLoggingTimer", daemon=True)
        self._thread.start()
        logger.info(
            "Logging started: first tick after %.1fs, then every %.1fs",
            self._schedule.initial_delay_s,
            self._schedule.period_s,
        )

    def stop(self) -> None:
        """Cancel future ticks. A tick already running is allowed to finish."""
        with self._state_lock:
            if self._state is LoggerState.STOPPED:
                return
            was_running = self._state is LoggerState.RUNNING
            self._state = LoggerState.STOPPED
        self._cancel_event.set()
        if was_running:
            logger.info("Logging stopped after %d ticks (%d records)", self.ticks, self.records_logged)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the timer thread to exit. Returns True if it has."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def tick(self) -> Optional[LoggedRecord]:
        """Drain the tracker once and hand any new position to the sink."""
        self.ticks += 1
        event = self._tracker.drain()
        if event is None:
            logger.debug("Tick %d: no new position", self.ticks)
            return None

        record = LoggedRecord.from_event(
            event,
            track_id=self._track_id,
            recorded_at=dt.datetime.now(dt.timezone.utc),
        )
        future = self._sink.append(record)
        future.add_done_callback(self._on_append_done)
        self.records_logged += 1
        logger.info(
            "Tick %d: logging position lat=%.6f lon=%.6f",
            self.ticks,
            record.latitude,
            record.longitude,
        )
        return record

    def _on_append_done(self, future: "Future[None]") -> None:
        exc = future.exception()
        if exc is not None:
            with self._failures_lock:
                self._append_failures += 1
            logger.error("Failed to persist track record: %s", exc)

    def _run(self) -> None:
        start = self._clock()
        index = 0
        while True:
            delay = self._schedule.deadline(index, start) - self._clock()
            if self._cancel_event.wait(max(0.0, delay)):
                break

            try:
                self.tick()
            except Exception:
                # A failed tick must not end the schedule
                logger.exception("Logging tick %d failed", self.ticks)

            next_index = self._schedule.next_index(self._clock() - start)
            if next_index > index + 1:
                logger.warning("Logging tick overran; skipping %d tick(s)", next_index - index - 1)
            index = max(index + 1, next_index)


__all__ = ["FixedRateSchedule", "LoggerState", "RateLimitedLogger"]
