"""Root logging setup for the GPS track logger.

Called once by the CLI entry point. Library code never touches handlers;
it only obtains loggers through ``get_module_logger``.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Union

if TYPE_CHECKING:
    from ..config import GPSLoggerConfig

# threadName tells SerialReader, GPSLoggingTimer and GPSWriter output apart
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-16s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3

# Third-party loggers that are too chatty below WARNING
NOISY_LOGGERS = ("asyncio",)

_configured = False


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")
    return numeric


def _build_handlers(
    formatter: logging.Formatter,
    console: bool,
    log_file: Optional[Path],
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    force: bool = False,
) -> None:
    """Install console and optional rotating-file handlers on the root logger.

    Args:
        level: Level name ("info", "debug", ...) or numeric level.
        log_file: Path of a rotating log file, created with its parents.
        console: Whether to log to stdout.
        force: Rebuild handlers even if logging was already configured;
            otherwise a repeat call only changes the level.
    """
    global _configured
    numeric_level = _coerce_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    if _configured and not force:
        return

    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(OSError):
            handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    path = Path(log_file) if log_file else None
    for handler in _build_handlers(formatter, console, path):
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    _configured = True


def configure_from_config(config: GPSLoggerConfig, *, force: bool = False) -> None:
    """Apply the ``log_level`` and ``log_file`` settings of a session config."""
    configure_logging(config.log_level, log_file=config.log_file, force=force)


__all__ = ["configure_logging", "configure_from_config", "LOG_FORMAT", "LOG_DATEFMT"]
