"""Command-line entry point for the GPS track logger."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional

from ..config import SINK_TYPES, GPSLoggerConfig
from ..core.logging_config import configure_from_config
from ..core.logging_utils import get_module_logger
from ..gps_core.errors import SerialPortError
from ..gps_core.session import GPSLoggerSession
from .common import (
    add_common_cli_arguments,
    install_exception_handlers,
    install_signal_handlers,
    log_banner,
    non_negative_float,
    positive_float,
    positive_int,
)

logger = get_module_logger("MainGPSLogger")

# How often the main task checks that the reader thread is still alive
_WATCH_INTERVAL_S = 1.0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Log positions from a serial NMEA GPS receiver at a fixed rate",
    )
    add_common_cli_arguments(parser)

    parser.add_argument(
        "--port",
        dest="serial_port",
        default=None,
        help="Serial device of the GPS receiver (e.g. /dev/ttyUSB0)",
    )
    parser.add_argument(
        "--baud",
        dest="baud_rate",
        type=positive_int,
        default=None,
        help="Serial baud rate (receiver default is 4800)",
    )
    parser.add_argument(
        "--sink",
        choices=SINK_TYPES,
        default=None,
        help="Track store backend",
    )
    parser.add_argument(
        "--track-id",
        default=None,
        help="Track identifier written with every record",
    )
    parser.add_argument(
        "--period",
        dest="log_period_s",
        type=positive_float,
        default=None,
        help="Seconds between logged positions",
    )
    parser.add_argument(
        "--initial-delay",
        dest="log_initial_delay_s",
        type=non_negative_float,
        default=None,
        help="Seconds before the first logged position",
    )
    parser.add_argument(
        "--backoff",
        dest="poll_backoff_s",
        type=positive_float,
        default=None,
        help="Seconds to wait when no serial data is available",
    )
    parser.add_argument(
        "--no-checksum",
        dest="validate_checksums",
        action="store_const",
        const=False,
        default=None,
        help="Accept NMEA sentences with missing or bad checksums",
    )
    parser.add_argument(
        "--duration",
        type=positive_float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> GPSLoggerConfig:
    """Defaults, then the config file, then CLI options."""
    return GPSLoggerConfig.from_file(args.config).apply_args(args)


async def _wait_for_shutdown(
    session: GPSLoggerSession,
    shutdown_event: asyncio.Event,
    duration: Optional[float],
) -> bool:
    """Block until shutdown is requested. Returns False if the reader died."""
    loop = asyncio.get_running_loop()
    deadline = None if duration is None else loop.time() + duration

    while not shutdown_event.is_set():
        timeout = _WATCH_INTERVAL_S
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info("Duration of %.1fs reached", duration)
                return True
            timeout = min(timeout, remaining)

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

        if not session.is_reading:
            logger.error("Serial reader stopped unexpectedly")
            return False

    logger.info("Shutdown requested")
    return True


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    configure_from_config(config)
    install_exception_handlers(logger)
    log_banner(
        logger,
        "GPS logger session start",
        serial_port=config.serial_port,
        baud_rate=config.baud_rate,
        sink=config.sink,
        output_dir=config.output_dir,
        log_period_s=config.log_period_s,
    )

    session = GPSLoggerSession(config)
    shutdown_event = asyncio.Event()
    install_signal_handlers(shutdown_event, asyncio.get_running_loop())

    exit_code = 0
    try:
        if not await asyncio.to_thread(session.open_store):
            return 1

        try:
            await asyncio.to_thread(session.start_gps)
        except SerialPortError as exc:
            logger.error("GPS not started: %s", exc)
            return 1

        session.start_logging()
        if not await _wait_for_shutdown(session, shutdown_event, args.duration):
            exit_code = 1
    finally:
        await asyncio.to_thread(session.stop)
        rate_logger = session.rate_logger
        log_banner(
            logger,
            "GPS logger stopped",
            records_logged=rate_logger.records_logged if rate_logger else 0,
            errors=len(session.errors),
        )

    return exit_code


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
