"""GPS track logger: serial NMEA ingestion with rate-limited persistence."""

__version__ = "0.1.0"

from .config import GPSLoggerConfig
from .gps_core import GPSLoggerSession

__all__ = ["GPSLoggerConfig", "GPSLoggerSession", "__version__"]
