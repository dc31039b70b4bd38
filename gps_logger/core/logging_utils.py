"""Component-tagged loggers for the GPS track logger.

Every module logs through ``get_module_logger``. Messages are prefixed with
the module's short name so that interleaved reader and timer output stays
readable::

    [serial_reader] Serial reader started (backoff 0.010s)
    [rate_limited_logger] Tick 3: logging position lat=48.117300 lon=11.516700
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAMESPACE = "gps_logger"


def qualified_name(name: Optional[str]) -> str:
    """Place ``name`` under the gps_logger namespace."""
    if not name or name == LOGGER_NAMESPACE:
        return LOGGER_NAMESPACE
    if name.startswith(f"{LOGGER_NAMESPACE}."):
        return name
    return f"{LOGGER_NAMESPACE}.{name}"


def component_for(name: str) -> str:
    # gps_logger.gps_core.serial_reader -> serial_reader
    return name.rsplit(".", 1)[-1] or LOGGER_NAMESPACE


class StructuredLogger:
    """Wraps a stdlib logger and tags each message with its component.

    Attributes not defined here (``setLevel``, ``isEnabledFor``,
    ``handlers``...) are read from the wrapped logger.
    """

    __slots__ = ("_logger", "_component")

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        self._logger = logger
        self._component = component or component_for(logger.name)

    def __getattr__(self, item):
        return getattr(self._logger, item)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<StructuredLogger {self._logger.name} [{self._component}]>"

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def component(self) -> str:
        return self._component

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _format(self, message: object, args: tuple) -> str:
        text = str(message)
        if args:
            try:
                text = text % args
            except (TypeError, ValueError):
                text = f"{text} | args={' '.join(str(arg) for arg in args)}"
        return f"[{self._component}] {text}"

    def _log(self, level: int, message: object, args: tuple, kwargs: dict) -> None:
        # Formatting is skipped for disabled levels; the reader logs per chunk
        if not self._logger.isEnabledFor(level):
            return
        # Attribute the record to our caller, not to this wrapper
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, self._format(message, args), **kwargs)

    def log(self, level: int, message: object, *args, **kwargs) -> None:
        self._log(level, message, args, kwargs)

    def debug(self, message: object, *args, **kwargs) -> None:
        self._log(logging.DEBUG, message, args, kwargs)

    def info(self, message: object, *args, **kwargs) -> None:
        self._log(logging.INFO, message, args, kwargs)

    def warning(self, message: object, *args, **kwargs) -> None:
        self._log(logging.WARNING, message, args, kwargs)

    def error(self, message: object, *args, **kwargs) -> None:
        self._log(logging.ERROR, message, args, kwargs)

    def exception(self, message: object, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, args, kwargs)

    def critical(self, message: object, *args, **kwargs) -> None:
        self._log(logging.CRITICAL, message, args, kwargs)


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    """Return a structured logger scoped to the gps_logger namespace."""
    return StructuredLogger(logging.getLogger(qualified_name(name)))


__all__ = ["LOGGER_NAMESPACE", "StructuredLogger", "get_module_logger"]
