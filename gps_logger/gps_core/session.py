"""GPS logging session lifecycle.

Owns start and teardown order for one session:

    serial port opened -> reader thread started -> (store ready) -> logging started

and the reverse on stop: reader signalled first, then the logging timer
cancelled, then the port and the store closed.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING, Callable, List, Optional

from ..core.logging_utils import get_module_logger
from .errors import ErrorReport, SerialPortError, SessionStateError, SinkError
from .parsers.nmea_parser import NMEAParser
from .position_tracker import PositionTracker
from .recording.rate_limited_logger import LoggerState, RateLimitedLogger
from .recording.records import LoggedRecord
from .recording.sinks import RecordSink, create_sink
from .serial_reader import SerialReader
from .transports.serial_transport import SerialPortHandle

if TYPE_CHECKING:
    from ..config import GPSLoggerConfig

logger = get_module_logger(__name__)

# How long stop() waits for each worker thread before moving on
_JOIN_TIMEOUT_S = 2.0


class GPSLoggerSession:
    """Wires serial ingestion, position tracking and rate-limited logging.

    Example:
        session = GPSLoggerSession(GPSLoggerConfig(serial_port="/dev/ttyUSB0"))
        session.open_store()      # creates the track file/table, marks ready
        session.start_gps()       # opens the port, starts the reader thread
        session.start_logging()   # first record after 1s, then every 10s
        ...
        session.stop()
    """

    def __init__(
        self,
        config: GPSLoggerConfig,
        *,
        handle: Optional[SerialPortHandle] = None,
        parser: Optional[NMEAParser] = None,
        sink: Optional[RecordSink] = None,
        tracker: Optional[PositionTracker] = None,
        on_error: Optional[Callable[[ErrorReport], None]] = None,
    ):
        self.config = config
        self.handle = handle or SerialPortHandle(config.serial_port, config.baud_rate)
        self.parser = parser or NMEAParser(validate_checksums=config.validate_checksums)
        self.tracker = tracker or PositionTracker()
        self.sink = sink or create_sink(config.sink, config.output_dir, config.track_id)
        self.errors: List[ErrorReport] = []
        self._on_error = on_error

        self._reader: Optional[SerialReader] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._rate_logger: Optional[RateLimitedLogger] = None
        self._ready = False
        self._lock = threading.Lock()

        self.parser.add_location_listener(self.tracker.write)

    # ------------------------------------------------------------------
    # State

    @property
    def is_ready(self) -> bool:
        """True once the track store is available for records."""
        return self._ready

    @property
    def is_reading(self) -> bool:
        thread = self._reader_thread
        return thread is not None and thread.is_alive()

    @property
    def is_logging(self) -> bool:
        rate_logger = self._rate_logger
        return rate_logger is not None and rate_logger.state is LoggerState.RUNNING

    @property
    def reader(self) -> Optional[SerialReader]:
        return self._reader

    @property
    def rate_logger(self) -> Optional[RateLimitedLogger]:
        return self._rate_logger

    # ------------------------------------------------------------------
    # Lifecycle

    def start_gps(self) -> None:
        """Open the serial port and start the reader thread.

        Raises:
            SerialPortError: if the port cannot be opened
            SessionStateError: if a stopped reader has not exited yet
        """
        with self._lock:
            if self.is_reading:
                if self._reader is not None and self._reader.stop_requested:
                    raise SessionStateError("Previous serial reader has not exited yet")
                logger.warning("GPS reader already running on %s", self.handle.port)
                return

            logger.info("Starting serial on %s", self.handle.port)
            try:
                self.handle.open()
                self.handle.wait_until_open(
                    poll_s=self.config.open_poll_s,
                    timeout_s=self.config.open_timeout_s,
                )
            except SerialPortError as exc:
                self._report("serial", exc)
                raise

            self._reader = SerialReader(
                self.handle,
                self.parser.accept,
                backoff_s=self.config.poll_backoff_s,
                on_error=self._on_reader_error,
            )
            self._reader_thread = threading.Thread(
                target=self._reader.run,
                name="SerialReader",
                daemon=True,
            )
            self._reader_thread.start()
            logger.info("Serial port is open, reader started")

    def open_store(self) -> bool:
        """Open the record sink and mark the session ready on success."""
        if self.sink.open():
            self.mark_session_ready()
            return True
        self._report("store", SinkError(f"Could not open {type(self.sink).__name__}"))
        return False

    def mark_session_ready(self, ready: bool = True) -> None:
        """Signal whether the track store is available (gates start_logging)."""
        self._ready = ready
        logger.info("Session %s", "ready" if ready else "not ready")

    def start_logging(self) -> bool:
        """Start rate-limited logging. Returns False if the session is not ready."""
        with self._lock:
            if not self._ready:
                logger.warning("Cannot start logging: track store not ready")
                return False
            if self.is_logging:
                logger.debug("Logging already running")
                return True

            self._rate_logger = RateLimitedLogger(
                self.tracker,
                self.sink,
                initial_delay_s=self.config.log_initial_delay_s,
                period_s=self.config.log_period_s,
                track_id=self.config.track_id,
            )
            self._rate_logger.start()
            return True

    def add_record(self, record: LoggedRecord) -> "Future[None]":
        """Append a record directly, outside the logging schedule."""
        return self.sink.append(record)

    def stop(self) -> None:
        """Stop reading and logging and release the port and store. Idempotent."""
        with self._lock:
            reader, reader_thread = self._reader, self._reader_thread
            rate_logger = self._rate_logger

            if reader is not None:
                reader.stop_reading()
            if rate_logger is not None:
                rate_logger.stop()

            if reader_thread is not None:
                reader_thread.join(_JOIN_TIMEOUT_S)
                if reader_thread.is_alive():
                    # Still tracked so start_gps refuses until it exits
                    logger.warning("Serial reader did not stop within %.1fs", _JOIN_TIMEOUT_S)
                else:
                    self._reader_thread = None
            if rate_logger is not None and not rate_logger.join(_JOIN_TIMEOUT_S):
                logger.warning("Logging timer did not stop within %.1fs", _JOIN_TIMEOUT_S)

            self.handle.close()
            self.sink.close()
            self._ready = False

    def __enter__(self) -> "GPSLoggerSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Error reporting

    def _on_reader_error(self, exc: BaseException) -> None:
        self._report("serial", exc)

    def _report(self, source: str, exc: BaseException) -> None:
        report = ErrorReport.from_exception(source, exc)
        self.errors.append(report)
        logger.error("%s error: %s", source, report.message)
        if self._on_error is not None:
            self._on_error(report)


__all__ = ["GPSLoggerSession"]
