"""Unit tests for the command-line entry point."""

import argparse
import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from gps_logger.cli import main as cli_main
from gps_logger.cli.common import non_negative_float, positive_float, positive_int


class TestParseArgs:
    """Test argument parsing and config building."""

    def test_no_arguments_uses_config(self):
        """Test that unset options leave the packaged config in effect."""
        args = cli_main.parse_args([])

        config = cli_main.build_config(args)

        assert config.serial_port == "/dev/ttyUSB0"
        assert config.log_period_s == 10.0
        assert args.duration is None

    def test_options_override_config(self, tmp_path):
        """Test that CLI options map onto config fields."""
        args = cli_main.parse_args(
            [
                "--port", "/dev/ttyACM0",
                "--baud", "9600",
                "--sink", "sqlite",
                "--track-id", "Drive 1",
                "--period", "5",
                "--initial-delay", "0",
                "--backoff", "0.05",
                "--no-checksum",
                "--output-dir", str(tmp_path),
                "--log-level", "debug",
            ]
        )

        config = cli_main.build_config(args)

        assert config.serial_port == "/dev/ttyACM0"
        assert config.baud_rate == 9600
        assert config.sink == "sqlite"
        assert config.track_id == "Drive 1"
        assert config.log_period_s == 5.0
        assert config.log_initial_delay_s == 0.0
        assert config.poll_backoff_s == 0.05
        assert config.validate_checksums is False
        assert config.output_dir == tmp_path
        assert config.log_level == "debug"

    def test_config_file_option(self, tmp_path):
        """Test that --config loads another file before CLI options."""
        path = tmp_path / "gps.txt"
        path.write_text("track_id = From File\nbaud_rate = 38400\n", encoding="utf-8")

        config = cli_main.build_config(cli_main.parse_args(["--config", str(path), "--baud", "4800"]))

        assert config.track_id == "From File"
        assert config.baud_rate == 4800

    @pytest.mark.parametrize("argv", [["--period", "0"], ["--baud", "-1"], ["--sink", "xml"]])
    def test_invalid_options_exit(self, argv):
        """Test that invalid option values are rejected by argparse."""
        with pytest.raises(SystemExit):
            cli_main.parse_args(argv)


class TestValidators:
    """Test argparse type validators."""

    def test_positive(self):
        assert positive_int("3") == 3
        assert positive_float("0.5") == 0.5

    def test_non_negative(self):
        assert non_negative_float("0") == 0.0

    @pytest.mark.parametrize("func, value", [(positive_int, "0"), (positive_float, "abc"), (non_negative_float, "-1")])
    def test_rejects(self, func, value):
        with pytest.raises(argparse.ArgumentTypeError):
            func(value)


class TestMain:
    """Test exit codes of the async entry point."""

    def test_invalid_config_returns_2(self, tmp_path):
        """Test that a config file with invalid values exits with code 2."""
        path = tmp_path / "bad.txt"
        path.write_text("sink = parquet\n", encoding="utf-8")

        assert asyncio.run(cli_main.main(["--config", str(path)])) == 2

    def test_unopenable_port_returns_1(self, tmp_path):
        """Test that a serial failure exits with code 1 after cleanup."""
        with patch("gps_logger.cli.main.configure_from_config"), \
                patch("gps_logger.cli.main.install_exception_handlers"), \
                patch("gps_logger.gps_core.transports.serial_transport.serial.Serial",
                      side_effect=OSError("no such device")):
            code = asyncio.run(
                cli_main.main(["--port", "/dev/ttyNOPE", "--output-dir", str(tmp_path), "--duration", "1"])
            )

        assert code == 1
        assert list(Path(tmp_path).glob("*.csv"))
