"""GPS transport implementations."""

from .serial_transport import SerialPortHandle

__all__ = ["SerialPortHandle"]
