"""GPS/NMEA protocol constants and configuration defaults."""

# Bytes below this value terminate a sentence
CONTROL_BYTE_THRESHOLD = 32

# Serial line settings of the receiver (4800 8N1, no flow control)
DEFAULT_SERIAL_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD_RATE = 4800
DEFAULT_OPEN_POLL_S = 0.25
DEFAULT_OPEN_TIMEOUT_S = 10.0

# Ingest loop backoff when no bytes are waiting
DEFAULT_POLL_BACKOFF_S = 0.01

# Rate-limited logging schedule
DEFAULT_LOG_INITIAL_DELAY_S = 1.0
DEFAULT_LOG_PERIOD_S = 10.0

DEFAULT_TRACK_ID = "GPS Test"

# WGS84 geographic coordinates
WGS84_WKID = 4326

# Speed conversion factors
KMH_PER_KNOT = 1.852
MPS_PER_KNOT = 0.514444

# Track record columns (CSV header and SQLite table)
TRACK_RECORD_FIELDS = [
    "track_id",
    "recorded_at",
    "fix_time",
    "latitude",
    "longitude",
    "altitude_m",
    "wkid",
    "speed_mps",
    "heading_deg",
    "sentence_type",
]
