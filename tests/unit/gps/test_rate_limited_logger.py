"""Unit tests for the fixed-rate track logger."""

import datetime as dt
import threading
from concurrent.futures import Future

import pytest

from gps_logger.gps_core.errors import SessionStateError, SinkError
from gps_logger.gps_core.parsers.nmea_types import LocationEvent, Position
from gps_logger.gps_core.position_tracker import PositionTracker
from gps_logger.gps_core.recording.rate_limited_logger import (
    FixedRateSchedule,
    LoggerState,
    RateLimitedLogger,
)
from tests.infrastructure.mocks.serial_mocks import FakeClock, wait_until
from tests.infrastructure.mocks.sink_mocks import MemoryRecordSink


def make_event(lon: float = 11.5, lat: float = 48.1, **kwargs) -> LocationEvent:
    return LocationEvent(position=Position(x=lon, y=lat, z=kwargs.pop("z", None)), **kwargs)


@pytest.fixture
def tracker():
    return PositionTracker()


@pytest.fixture
def sink():
    sink = MemoryRecordSink()
    sink.open()
    return sink


class TestFixedRateSchedule:
    """Test tick offset arithmetic."""

    def test_offsets(self):
        """Test tick k is due at initial + k * period."""
        schedule = FixedRateSchedule(1.0, 10.0)

        assert [schedule.offset(i) for i in range(3)] == [1.0, 11.0, 21.0]
        assert schedule.deadline(2, start=100.0) == 121.0

    def test_offsets_within_minute(self):
        """Test that a 60s run holds ticks at 1, 11, 21, 31, 41 and 51 seconds."""
        schedule = FixedRateSchedule(1.0, 10.0)

        assert list(schedule.offsets_within(60.0)) == [1.0, 11.0, 21.0, 31.0, 41.0, 51.0]

    @pytest.mark.parametrize(
        "elapsed, expected",
        [(0.0, 0), (1.0, 0), (1.5, 1), (11.0, 1), (11.01, 2), (35.0, 4)],
    )
    def test_next_index(self, elapsed, expected):
        """Test the first tick due at or after the elapsed time."""
        assert FixedRateSchedule(1.0, 10.0).next_index(elapsed) == expected

    @pytest.mark.parametrize("initial, period", [(-1.0, 10.0), (1.0, 0.0), (1.0, -5.0)])
    def test_invalid_parameters(self, initial, period):
        """Test that negative delays and non-positive periods are rejected."""
        with pytest.raises(ValueError):
            FixedRateSchedule(initial, period)


class TestRateLimitedLoggerTick:
    """Test a single tick, without the timer thread."""

    def test_tick_without_new_position_appends_nothing(self, tracker, sink):
        """Test that a tick with no new fix writes no record."""
        rate_logger = RateLimitedLogger(tracker, sink, track_id="T")

        assert rate_logger.tick() is None
        assert sink.records == []
        assert rate_logger.ticks == 1

    def test_tick_logs_latest_position_once(self, tracker, sink):
        """Test that many fixes between ticks produce one record of the newest."""
        rate_logger = RateLimitedLogger(tracker, sink, track_id="GPS Test")
        for lon in (1.0, 2.0, 3.0):
            tracker.write(make_event(lon=lon))

        record = rate_logger.tick()

        assert sink.records == [record]
        assert record.longitude == 3.0
        assert record.track_id == "GPS Test"
        assert rate_logger.tick() is None
        assert rate_logger.records_logged == 1

    def test_record_carries_event_fields(self, tracker, sink):
        """Test that speed, heading, altitude and fix time are copied."""
        fix_time = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)
        tracker.write(
            make_event(
                lon=-122.4,
                lat=37.8,
                z=12.5,
                velocity_mps=3.2,
                course_deg=270.0,
                timestamp=fix_time,
                sentence_type="RMC",
            )
        )
        rate_logger = RateLimitedLogger(tracker, sink, track_id="T")

        record = rate_logger.tick()

        assert record.latitude == 37.8
        assert record.longitude == -122.4
        assert record.altitude_m == 12.5
        assert record.speed_mps == 3.2
        assert record.heading_deg == 270.0
        assert record.fix_time == fix_time
        assert record.sentence_type == "RMC"
        assert record.wkid == 4326
        assert record.recorded_at.tzinfo is not None

    def test_failed_append_is_counted(self, tracker, sink, gps_log_capture):
        """Test that a sink failure is logged and counted, not raised."""
        sink.fail_with = SinkError("disk full")
        tracker.write(make_event())
        rate_logger = RateLimitedLogger(tracker, sink, track_id="T")

        rate_logger.tick()

        assert rate_logger.append_failures == 1
        assert any("Failed to persist track record" in r.getMessage() for r in gps_log_capture.records)

    def test_failures_from_sink_threads_all_counted(self, tracker, sink):
        """Test that append failures completing on several threads are each counted."""
        rate_logger = RateLimitedLogger(tracker, sink, track_id="T")
        failed = Future()
        failed.set_exception(SinkError("disk full"))

        def complete_many():
            for _ in range(250):
                rate_logger._on_append_done(failed)

        threads = [threading.Thread(target=complete_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5.0)

        assert rate_logger.append_failures == 1000


class TestRateLimitedLoggerLifecycle:
    """Test start/stop state handling and the timer thread."""

    def test_initial_state(self, tracker, sink):
        """Test that a new logger is idle."""
        rate_logger = RateLimitedLogger(tracker, sink)

        assert rate_logger.state is LoggerState.IDLE
        assert rate_logger.join(0.1) is True

    def test_start_twice_raises(self, tracker, sink):
        """Test that a logger can only be started once."""
        rate_logger = RateLimitedLogger(tracker, sink, initial_delay_s=5.0)
        rate_logger.start()
        try:
            with pytest.raises(SessionStateError):
                rate_logger.start()
        finally:
            rate_logger.stop()
            rate_logger.join(2.0)

    def test_stop_is_idempotent(self, tracker, sink):
        """Test that stop can be called repeatedly, even before start."""
        rate_logger = RateLimitedLogger(tracker, sink)

        rate_logger.stop()
        rate_logger.stop()

        assert rate_logger.state is LoggerState.STOPPED
        with pytest.raises(SessionStateError):
            rate_logger.start()

    def test_ticks_on_schedule(self, tracker, sink):
        """Test that the timer thread logs each new position it finds."""
        rate_logger = RateLimitedLogger(tracker, sink, initial_delay_s=0.0, period_s=0.05, track_id="T")
        tracker.write(make_event(lon=1.0))
        rate_logger.start()
        try:
            assert wait_until(lambda: len(sink.records) == 1)
            tracker.write(make_event(lon=2.0))
            assert wait_until(lambda: len(sink.records) == 2)
        finally:
            rate_logger.stop()
            assert rate_logger.join(2.0)

        assert [r.longitude for r in sink.records] == [1.0, 2.0]
        assert rate_logger.state is LoggerState.STOPPED

    def test_stop_cancels_pending_tick(self, tracker, sink):
        """Test that no tick runs after stop returns."""
        rate_logger = RateLimitedLogger(tracker, sink, initial_delay_s=0.5, period_s=0.5)
        tracker.write(make_event())
        rate_logger.start()

        rate_logger.stop()
        assert rate_logger.join(2.0)

        assert rate_logger.ticks == 0
        assert sink.records == []

    def test_failing_tick_does_not_end_schedule(self, tracker, sink):
        """Test that an exception inside a tick is logged and ticking continues."""

        class FlakySink(MemoryRecordSink):
            calls = 0

            def append(self, record):
                FlakySink.calls += 1
                if FlakySink.calls == 1:
                    raise RuntimeError("boom")
                return super().append(record)

        flaky = FlakySink()
        flaky.open()
        rate_logger = RateLimitedLogger(tracker, flaky, initial_delay_s=0.0, period_s=0.02)
        tracker.write(make_event(lon=1.0))
        rate_logger.start()
        try:
            assert wait_until(lambda: FlakySink.calls >= 1)
            tracker.write(make_event(lon=2.0))
            assert wait_until(lambda: len(flaky.records) == 1)
        finally:
            rate_logger.stop()
            rate_logger.join(2.0)

        assert flaky.records[0].longitude == 2.0

    def test_overrun_skips_missed_ticks(self, tracker, fake_clock, gps_log_capture):
        """Test that a tick overrunning later deadlines skips them instead of bursting."""

        class SlowSink(MemoryRecordSink):
            def append(self, record):
                fake_clock.advance(25.0)
                return super().append(record)

        slow = SlowSink()
        slow.open()
        rate_logger = RateLimitedLogger(
            tracker, slow, initial_delay_s=0.0, period_s=10.0, clock=fake_clock
        )
        tracker.write(make_event())
        rate_logger.start()
        try:
            assert wait_until(
                lambda: any("skipping 2 tick(s)" in r.getMessage() for r in gps_log_capture.records)
            )
        finally:
            rate_logger.stop()
            rate_logger.join(2.0)

        assert rate_logger.ticks == 1
