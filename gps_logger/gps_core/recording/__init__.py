"""Rate-limited recording of tracked positions."""

from .records import LoggedRecord
from .sinks import CsvRecordSink, RecordSink, SqliteRecordSink, create_sink
from .rate_limited_logger import FixedRateSchedule, LoggerState, RateLimitedLogger

__all__ = [
    "LoggedRecord",
    "RecordSink",
    "CsvRecordSink",
    "SqliteRecordSink",
    "create_sink",
    "FixedRateSchedule",
    "LoggerState",
    "RateLimitedLogger",
]
