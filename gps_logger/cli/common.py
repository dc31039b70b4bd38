"""Helpers shared by command-line entry points."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import Any

from ..config import LOG_LEVELS

_BANNER_WIDTH = 60


def add_common_cli_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every entry point.

    Defaults are None so that unset options never override config file values.
    """
    group = parser.add_argument_group("common options")
    group.add_argument(
        "--config",
        type=Path,
        default=None,
        help="key = value config file to load before applying options",
    )
    group.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for track files",
    )
    group.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Diagnostic log verbosity",
    )
    group.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write diagnostics to this rotating log file",
    )


def _number(value: str, typ: type, *, allow_zero: bool):
    try:
        parsed = typ(value)
    except ValueError as exc:
        kind = "an integer" if typ is int else "a number"
        raise argparse.ArgumentTypeError(f"'{value}' is not {kind}") from exc
    if parsed < 0 or (parsed == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        raise argparse.ArgumentTypeError(f"'{value}' must be {bound}")
    return parsed


def positive_int(value: str) -> int:
    return _number(value, int, allow_zero=False)


def positive_float(value: str) -> float:
    return _number(value, float, allow_zero=False)


def non_negative_float(value: str) -> float:
    return _number(value, float, allow_zero=True)


def install_exception_handlers(logger: Any) -> None:
    """Route uncaught exceptions (outside of Ctrl-C) to ``logger``."""

    def log_uncaught(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = log_uncaught


def install_signal_handlers(shutdown_event: asyncio.Event, loop: asyncio.AbstractEventLoop) -> None:
    """Set ``shutdown_event`` on SIGINT or SIGTERM."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown_event.set)


def log_banner(logger: Any, title: str, **details: Any) -> None:
    """Log a framed block: the title, then one ``Key Name: value`` line per detail."""
    logger.info("=" * _BANNER_WIDTH)
    logger.info(title)
    for key, value in details.items():
        logger.info("%s: %s", key.replace("_", " ").title(), value)
    logger.info("=" * _BANNER_WIDTH)
