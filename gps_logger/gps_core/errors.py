"""Exceptions raised by the GPS logging pipeline."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field


class GPSLoggerError(Exception):
    """Base class for all GPS logger errors."""


class SerialPortError(GPSLoggerError):
    """The serial port could not be opened or never reported open."""


class SinkError(GPSLoggerError):
    """A record sink was used while not open."""


class SessionStateError(GPSLoggerError):
    """A lifecycle operation was requested in the wrong state."""


@dataclass(frozen=True)
class ErrorReport:
    """Operator-facing record of a failure inside the pipeline."""

    source: str
    message: str
    when: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))

    @classmethod
    def from_exception(cls, source: str, exc: BaseException) -> "ErrorReport":
        return cls(source=source, message=f"{type(exc).__name__}: {exc}")


__all__ = [
    "GPSLoggerError",
    "SerialPortError",
    "SinkError",
    "SessionStateError",
    "ErrorReport",
]
