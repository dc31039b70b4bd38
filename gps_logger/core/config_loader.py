"""Loader for ``key = value`` text configuration files.

Example file::

    # Serial receiver
    serial_port = /dev/ttyUSB0
    baud_rate = 4800        # NMEA-0183 default
    log_file = none
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO, Tuple

from .logging_utils import get_module_logger

logger = get_module_logger("ConfigLoader")

_TRUE_WORDS = frozenset({"true", "yes", "on", "1"})
_FALSE_WORDS = frozenset({"false", "no", "off", "0"})
_NONE_WORDS = frozenset({"", "none", "null"})


def _iter_entries(stream: TextIO) -> Iterator[Tuple[int, str, str]]:
    """Yield ``(line_number, key, raw_value)`` for every assignment line."""
    for line_num, raw in enumerate(stream, 1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            logger.warning("Ignoring config line %d (expected key = value): %s", line_num, raw.strip())
            continue
        yield line_num, key.strip(), value.strip()


def _parse_int(value: str) -> int:
    """Decimal, or hex/octal/binary with a 0x/0o/0b prefix. Leading zeros stay decimal."""
    digits = value.lstrip("+-")
    if digits[:2].lower() in ("0x", "0o", "0b"):
        return int(value, 0)
    return int(value)


class ConfigLoader:
    """Reads flat config files.

    When ``defaults`` are given, values for known keys are coerced to the
    type of their default and, with ``strict``, unknown keys are dropped.
    """

    @staticmethod
    def load(
        config_path: Path,
        defaults: Optional[Dict[str, Any]] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        defaults = defaults or {}
        config = dict(defaults)

        if not config_path.exists():
            logger.debug("Config file %s not found, using defaults", config_path)
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as stream:
                for line_num, key, value in _iter_entries(stream):
                    if key in defaults:
                        config[key] = ConfigLoader.coerce(value, defaults[key])
                    elif strict and defaults:
                        logger.warning("Unknown config key '%s' on line %d ignored", key, line_num)
                    else:
                        config[key] = ConfigLoader.infer(value)
        except OSError as exc:
            logger.error("Failed to read config file %s: %s", config_path, exc)
            return dict(defaults)

        logger.info("Loaded config from %s", config_path)
        return config

    @staticmethod
    def infer(value: str) -> Any:
        """Best-effort typing for keys without a default: bool, int, float or str."""
        lowered = value.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        for cast in (int, float):
            try:
                return cast(value)
            except ValueError:
                pass
        return value

    @staticmethod
    def coerce(value: str, default: Any) -> Any:
        """Convert ``value`` to the type of ``default``; keep the default if that fails."""
        if default is None:
            # Optional settings: "none"/"null"/empty unset them, anything else is a string
            return None if value.lower() in _NONE_WORDS else value

        if isinstance(default, bool):
            return value.lower() in _TRUE_WORDS

        if isinstance(default, Path):
            return Path(value).expanduser()

        if isinstance(default, (int, float)):
            try:
                return _parse_int(value) if isinstance(default, int) else float(value)
            except ValueError:
                logger.warning("Cannot read '%s' as %s, keeping %r", value, type(default).__name__, default)
                return default

        return value


__all__ = ["ConfigLoader"]
