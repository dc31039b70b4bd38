"""GPS core package - serial ingestion and rate-limited track logging."""

from .constants import (
    CONTROL_BYTE_THRESHOLD,
    DEFAULT_BAUD_RATE,
    DEFAULT_LOG_INITIAL_DELAY_S,
    DEFAULT_LOG_PERIOD_S,
    DEFAULT_POLL_BACKOFF_S,
    DEFAULT_SERIAL_PORT,
    DEFAULT_TRACK_ID,
    TRACK_RECORD_FIELDS,
    WGS84_WKID,
)
from .errors import ErrorReport, GPSLoggerError, SerialPortError, SessionStateError, SinkError
from .line_framer import LineFramer
from .parsers import LocationEvent, NMEAParser, Position
from .position_tracker import PositionTracker
from .recording import (
    CsvRecordSink,
    FixedRateSchedule,
    LoggedRecord,
    LoggerState,
    RateLimitedLogger,
    RecordSink,
    SqliteRecordSink,
    create_sink,
)
from .serial_reader import SerialReader
from .session import GPSLoggerSession
from .transports import SerialPortHandle

__all__ = [
    # Constants
    "CONTROL_BYTE_THRESHOLD",
    "DEFAULT_BAUD_RATE",
    "DEFAULT_LOG_INITIAL_DELAY_S",
    "DEFAULT_LOG_PERIOD_S",
    "DEFAULT_POLL_BACKOFF_S",
    "DEFAULT_SERIAL_PORT",
    "DEFAULT_TRACK_ID",
    "TRACK_RECORD_FIELDS",
    "WGS84_WKID",
    # Errors
    "ErrorReport",
    "GPSLoggerError",
    "SerialPortError",
    "SessionStateError",
    "SinkError",
    # Ingestion
    "LineFramer",
    "SerialPortHandle",
    "SerialReader",
    # Parsing
    "LocationEvent",
    "NMEAParser",
    "Position",
    # Tracking and recording
    "PositionTracker",
    "LoggedRecord",
    "RecordSink",
    "CsvRecordSink",
    "SqliteRecordSink",
    "create_sink",
    "FixedRateSchedule",
    "LoggerState",
    "RateLimitedLogger",
    # Session
    "GPSLoggerSession",
]
