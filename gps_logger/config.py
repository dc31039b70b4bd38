"""Typed configuration for the GPS track logger."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from .core.config_loader import ConfigLoader
from .core.logging_utils import get_module_logger
from .gps_core.constants import (
    DEFAULT_BAUD_RATE,
    DEFAULT_LOG_INITIAL_DELAY_S,
    DEFAULT_LOG_PERIOD_S,
    DEFAULT_OPEN_POLL_S,
    DEFAULT_OPEN_TIMEOUT_S,
    DEFAULT_POLL_BACKOFF_S,
    DEFAULT_SERIAL_PORT,
    DEFAULT_TRACK_ID,
)

logger = get_module_logger("GPSLoggerConfig")

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.txt"
SINK_TYPES = ("csv", "sqlite")
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass(slots=True)
class GPSLoggerConfig:
    """Typed configuration for a logging session."""

    # Serial configuration
    serial_port: str = DEFAULT_SERIAL_PORT
    baud_rate: int = DEFAULT_BAUD_RATE
    poll_backoff_s: float = DEFAULT_POLL_BACKOFF_S
    open_poll_s: float = DEFAULT_OPEN_POLL_S
    open_timeout_s: float = DEFAULT_OPEN_TIMEOUT_S
    validate_checksums: bool = True

    # Logging schedule
    log_initial_delay_s: float = DEFAULT_LOG_INITIAL_DELAY_S
    log_period_s: float = DEFAULT_LOG_PERIOD_S
    track_id: str = DEFAULT_TRACK_ID

    # Output
    output_dir: Path = field(default_factory=lambda: Path("gps_data"))
    sink: str = "csv"

    # Diagnostics
    log_level: str = "info"
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        self.sink = self.sink.lower()
        self.log_level = self.log_level.lower()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got '{self.log_level}'")
        if self.sink not in SINK_TYPES:
            raise ValueError(f"sink must be one of {SINK_TYPES}, got '{self.sink}'")
        if self.poll_backoff_s <= 0:
            raise ValueError("poll_backoff_s must be > 0")
        if self.log_period_s <= 0:
            raise ValueError("log_period_s must be > 0")
        if self.log_initial_delay_s < 0:
            raise ValueError("log_initial_delay_s must be >= 0")
        self.output_dir = Path(self.output_dir)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)

    @classmethod
    def from_file(cls, config_path: Optional[Path] = None) -> "GPSLoggerConfig":
        """Load config values from a ``key = value`` file over the defaults."""
        path = config_path or DEFAULT_CONFIG_PATH
        logger.debug("Loading GPS logger config from: %s", path)
        defaults = asdict(cls())
        values = ConfigLoader.load(path, defaults=defaults, strict=True)
        return cls(**values)

    def apply_args(self, args: Any) -> "GPSLoggerConfig":
        """Return a copy with non-None CLI argument values applied."""
        values = asdict(self)
        names = {f.name for f in fields(self)}

        for name in names:
            val = getattr(args, name, None)
            if val is not None:
                values[name] = val

        return GPSLoggerConfig(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = ["GPSLoggerConfig", "DEFAULT_CONFIG_PATH", "LOG_LEVELS", "SINK_TYPES"]
