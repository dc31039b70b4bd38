"""NMEA parsing components."""

from .nmea_types import LocationEvent, Position
from .nmea_parser import NMEAParser, validate_checksum

__all__ = ["LocationEvent", "Position", "NMEAParser", "validate_checksum"]
