"""End-to-end tests: serial bytes in, rate-limited track records out."""

import csv
import os
import time

import pytest

from gps_logger.config import GPSLoggerConfig
from gps_logger.gps_core.line_framer import LineFramer
from gps_logger.gps_core.parsers.nmea_parser import NMEAParser
from gps_logger.gps_core.position_tracker import PositionTracker
from gps_logger.gps_core.recording.rate_limited_logger import FixedRateSchedule, RateLimitedLogger
from gps_logger.gps_core.recording.sinks import CsvRecordSink
from gps_logger.gps_core.session import GPSLoggerSession
from gps_logger.gps_core.transports.serial_transport import SerialPortHandle
from tests.infrastructure.mocks.serial_mocks import MockGPSDevice, generate_gga, wait_until
from tests.infrastructure.mocks.sink_mocks import MemoryRecordSink

FIX_RATE_HZ = 50


def latitude_for(frame: int) -> float:
    return round(10.0 + frame * 0.0001, 4)


class TestSimulatedMinute:
    """Replay one minute of 50 Hz fixes against the 1s/10s schedule."""

    def test_one_record_per_tick_with_latest_fix(self):
        """Test that 60s of fixes yields six records, each the newest fix before its tick."""
        schedule = FixedRateSchedule(initial_delay_s=1.0, period_s=10.0)
        tick_frames = [round(offset * FIX_RATE_HZ) for offset in schedule.offsets_within(60.0)]
        assert tick_frames == [50, 550, 1050, 1550, 2050, 2550]

        parser = NMEAParser()
        tracker = PositionTracker()
        parser.add_location_listener(tracker.write)
        sink = MemoryRecordSink()
        sink.open()
        rate_logger = RateLimitedLogger(tracker, sink, initial_delay_s=1.0, period_s=10.0, track_id="GPS Test")
        framer = LineFramer()

        pending_ticks = list(tick_frames)
        for frame in range(60 * FIX_RATE_HZ):
            while pending_ticks and pending_ticks[0] == frame:
                rate_logger.tick()
                pending_ticks.pop(0)
            raw = generate_gga(lat=latitude_for(frame), lon=20.0)
            # Split each sentence across two reads to exercise reassembly
            for chunk in (raw[:7], raw[7:]):
                for sentence in framer.feed(chunk):
                    parser.accept(sentence)

        assert len(sink.records) == 6
        expected = [latitude_for(frame - 1) for frame in tick_frames]
        assert [round(r.latitude, 4) for r in sink.records] == pytest.approx(expected)
        assert all(r.track_id == "GPS Test" for r in sink.records)
        assert tracker.writes == 60 * FIX_RATE_HZ


@pytest.mark.slow
class TestThreadedSession:
    """Run the full threaded pipeline against a mock receiver."""

    def test_csv_track_from_streamed_fixes(self, tmp_path):
        """Test that a running session writes one CSV row per tick with new data."""
        config = GPSLoggerConfig(
            serial_port="/dev/ttyMOCK0",
            poll_backoff_s=0.002,
            open_poll_s=0.01,
            log_initial_delay_s=0.05,
            log_period_s=0.1,
            output_dir=tmp_path,
        )
        device = MockGPSDevice()
        handle = SerialPortHandle(config.serial_port, serial_factory=lambda **kw: device)
        sink = CsvRecordSink(tmp_path, config.track_id)
        session = GPSLoggerSession(config, handle=handle, sink=sink)

        fixes = [generate_gga(lat=latitude_for(i), lon=20.0) for i in range(100)]
        try:
            assert session.open_store()
            session.start_gps()
            assert session.start_logging()
            device.start_streaming(fixes, interval=0.005)
            device.wait_streamed(timeout=5.0)
            assert wait_until(lambda: session.rate_logger.ticks >= 4)
        finally:
            session.stop()

        rate_logger = session.rate_logger
        with sink.filepath.open(newline="") as f:
            rows = list(csv.DictReader(f))

        assert len(rows) == rate_logger.records_logged
        assert 1 <= len(rows) <= rate_logger.ticks
        latitudes = [float(r["latitude"]) for r in rows]
        assert latitudes == sorted(set(latitudes))
        assert all(r["track_id"] == "GPS Test" for r in rows)
        assert session.errors == []


@pytest.mark.hardware
class TestReceiver:
    """Log from a real receiver. Set GPS_TEST_PORT to its device path."""

    def test_logs_from_receiver(self, tmp_path):
        """Test that a connected receiver produces at least one record."""
        port = os.environ.get("GPS_TEST_PORT", "/dev/ttyUSB0")
        config = GPSLoggerConfig(serial_port=port, log_initial_delay_s=1.0, log_period_s=2.0, output_dir=tmp_path)
        sink = MemoryRecordSink()

        with GPSLoggerSession(config, sink=sink) as session:
            session.open_store()
            session.start_gps()
            session.start_logging()
            deadline = time.monotonic() + 30.0
            while not sink.records and time.monotonic() < deadline:
                time.sleep(0.5)

        assert sink.records
