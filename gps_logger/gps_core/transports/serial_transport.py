"""Serial UART handle for GPS receivers.

Wraps pyserial with the small surface the ingest loop needs: a
non-blocking count of waiting bytes and a read of exactly that many.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import serial

from ...core.logging_utils import get_module_logger
from ..constants import DEFAULT_BAUD_RATE, DEFAULT_OPEN_POLL_S, DEFAULT_OPEN_TIMEOUT_S
from ..errors import SerialPortError

logger = get_module_logger(__name__)


class SerialPortHandle:
    """Serial port configured for NMEA receivers (8N1, no flow control).

    Example:
        handle = SerialPortHandle("/dev/ttyUSB0")
        handle.open()
        waiting = handle.available()
        if waiting:
            data = handle.read(waiting)
        handle.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD_RATE,
        serial_factory: Optional[Callable[..., serial.Serial]] = None,
    ):
        """Initialize the handle without opening the port.

        Args:
            port: Serial device path (e.g., '/dev/ttyUSB0')
            baudrate: Line speed (4800 for NMEA-0183 receivers)
            serial_factory: Callable building the pyserial object, for tests
        """
        self.port = port
        self.baudrate = baudrate
        self._serial_factory = serial_factory or serial.Serial
        self._serial: Optional[serial.Serial] = None
        self._lock = threading.Lock()
        self._last_error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        """Check if the underlying port is open."""
        return self._serial is not None and self._serial.is_open

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def open(self) -> None:
        """Open the serial port.

        Raises:
            SerialPortError: if pyserial cannot open the device
        """
        if self.is_open:
            logger.debug("Already open: %s", self.port)
            return

        try:
            self._serial = self._serial_factory(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                timeout=0,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            self._last_error = str(exc)
            self._serial = None
            logger.error("Failed to open %s at %d baud: %s", self.port, self.baudrate, exc)
            raise SerialPortError(f"Cannot open {self.port}: {exc}") from exc

        self._last_error = None
        logger.info("Opened %s at %d baud (8N1)", self.port, self.baudrate)

    def wait_until_open(
        self,
        poll_s: float = DEFAULT_OPEN_POLL_S,
        timeout_s: Optional[float] = DEFAULT_OPEN_TIMEOUT_S,
    ) -> None:
        """Block until the port reports open.

        Raises:
            SerialPortError: if the port is not open within ``timeout_s``
        """
        deadline = None if timeout_s is None else time.monotonic() + timeout_s
        logger.debug("Waiting till %s is open", self.port)
        while not self.is_open:
            if deadline is not None and time.monotonic() >= deadline:
                raise SerialPortError(f"{self.port} did not open within {timeout_s:.1f}s")
            time.sleep(poll_s)

    def available(self) -> int:
        """Number of bytes waiting in the input buffer. Never blocks."""
        ser = self._serial
        if ser is None:
            raise serial.PortNotOpenError()
        return ser.in_waiting

    def read(self, size: int) -> bytes:
        """Read up to ``size`` already-buffered bytes."""
        ser = self._serial
        if ser is None:
            raise serial.PortNotOpenError()
        with self._lock:
            return ser.read(size)

    def close(self) -> None:
        """Close the port. Safe to call when already closed."""
        ser = self._serial
        self._serial = None
        if ser is None:
            return
        try:
            with self._lock:
                ser.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("Error closing %s: %s", self.port, exc)
            return
        logger.info("Closed %s", self.port)

    def __enter__(self) -> "SerialPortHandle":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["SerialPortHandle"]
