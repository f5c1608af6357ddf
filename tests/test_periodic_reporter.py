"""Tests for the PeriodicReporter."""

import threading
import time

import pytest

from runtime_bench.utils.periodic_reporter import PeriodicReporter, ProgressSnapshot, start_reporting
from runtime_bench.utils.run_config import NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.sample_recorder import SampleRecorder
from runtime_bench.utils.workload_driver import WorkloadDriver, timed


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


class TestTick:
    """Snapshot arithmetic, driven manually with a fake clock."""

    def test_interval_count_and_rate(self):
        clock = FakeClock()
        recorder = SampleRecorder()
        reporter = PeriodicReporter(recorder, NANOS_PER_SECOND, lambda s: None, clock=clock)
        reporter._started_ns = clock.now

        for _ in range(10):
            recorder.record(1)
        clock.now = 2 * NANOS_PER_SECOND
        first = reporter.tick()

        for _ in range(5):
            recorder.record(1)
        clock.now = 3 * NANOS_PER_SECOND
        second = reporter.tick()

        assert first == ProgressSnapshot(2.0, 10, 10, 5.0)
        assert second == ProgressSnapshot(3.0, 15, 5, 5.0)
        assert reporter.ticks == 2

    def test_zero_interval_gives_zero_rate(self):
        clock = FakeClock()
        recorder = SampleRecorder()
        reporter = PeriodicReporter(recorder, NANOS_PER_SECOND, lambda s: None, clock=clock)
        recorder.record(1)

        snapshot = reporter.tick()

        assert snapshot.interval_rate_units_per_second == 0.0
        assert snapshot.total_count == 1

    def test_cleared_recorder_does_not_go_negative(self):
        clock = FakeClock()
        recorder = SampleRecorder()
        reporter = PeriodicReporter(recorder, NANOS_PER_SECOND, lambda s: None, clock=clock)
        for _ in range(10):
            recorder.record(1)
        clock.now = NANOS_PER_SECOND
        reporter.tick()

        recorder.clear()
        recorder.record(1)
        clock.now = 2 * NANOS_PER_SECOND
        snapshot = reporter.tick()

        assert snapshot.interval_count == 1

    def test_restarted_elapsed_source_keeps_rate_positive(self):
        elapsed = [5 * NANOS_PER_SECOND]
        recorder = SampleRecorder()
        reporter = PeriodicReporter(
            recorder, NANOS_PER_SECOND, lambda s: None, elapsed_nanos=lambda: elapsed[0]
        )
        reporter._last_elapsed_ns = elapsed[0]

        elapsed[0] = 2 * NANOS_PER_SECOND
        for _ in range(10):
            recorder.record(1)
        snapshot = reporter.tick()

        assert snapshot.elapsed_seconds == 2.0
        assert snapshot.interval_rate_units_per_second == 5.0

    def test_invalid_cadence_rejected(self):
        with pytest.raises(ValueError):
            PeriodicReporter(SampleRecorder(), 0, lambda s: None)

    def test_snapshot_to_dict(self):
        data = ProgressSnapshot(1.0, 2, 3, 4.0).to_dict()

        assert data == {
            'elapsed_seconds': 1.0,
            'total_count': 2,
            'interval_count': 3,
            'interval_rate_units_per_second': 4.0,
        }


class TestReporterThread:
    """Background ticking, stop signal and callback failures."""

    def test_emits_until_stopped(self):
        recorder = SampleRecorder()
        snapshots = []
        reporter = PeriodicReporter(recorder, 20 * NANOS_PER_MILLI, snapshots.append)

        with reporter:
            for _ in range(20):
                recorder.record(1)
                time.sleep(0.01)

        count = len(snapshots)
        time.sleep(0.08)

        assert count >= 3
        assert len(snapshots) == count
        assert not reporter.is_running

    def test_double_start_rejected(self):
        reporter = PeriodicReporter(SampleRecorder(), NANOS_PER_SECOND, lambda s: None)
        reporter.start()
        try:
            with pytest.raises(RuntimeError):
                reporter.start()
        finally:
            reporter.stop()

    def test_failing_callback_stops_reporting(self):
        def explode(snapshot):
            raise RuntimeError("emit failed")

        reporter = PeriodicReporter(SampleRecorder(), 10 * NANOS_PER_MILLI, explode)
        reporter.start()
        time.sleep(0.1)
        reporter.stop()

        assert isinstance(reporter.error, RuntimeError)
        assert reporter.ticks == 1

    def test_stops_when_owning_run_completes(self):
        """A reporter started for a driver ends by itself once the run is over."""
        driver = WorkloadDriver()
        recorder = SampleRecorder()
        snapshots = []
        reporter_box = []

        def unit():
            if not reporter_box:
                reporter_box.append(
                    start_reporting(recorder, driver, 20 * NANOS_PER_MILLI, snapshots.append)
                )
            time.sleep(0.001)
            return 1

        driver.run(RunConfig.for_duration(0.15), unit, recorder=recorder)
        reporter = reporter_box[0]
        reporter._thread.join(timeout=1.0)

        assert not reporter.is_running
        assert snapshots
        assert all(s.elapsed_seconds <= 0.15 + 0.2 for s in snapshots)

    def test_started_before_short_run_stops_with_it(self):
        driver = WorkloadDriver()
        recorder = SampleRecorder()
        snapshots = []

        reporter = start_reporting(recorder, driver, 50 * NANOS_PER_MILLI, snapshots.append)
        driver.run(RunConfig.for_iterations(10), lambda: 1, recorder=recorder)
        time.sleep(0.3)

        assert not reporter.is_running
        assert snapshots == []

    def test_started_after_run_ended_stops_at_first_tick(self):
        driver = WorkloadDriver()
        driver.run(RunConfig.for_iterations(10), lambda: 1)
        snapshots = []

        reporter = start_reporting(SampleRecorder(), driver, 20 * NANOS_PER_MILLI, snapshots.append)
        time.sleep(0.2)

        assert not reporter.is_running
        assert snapshots == []

    def test_follows_run_started_after_reporter(self):
        driver = WorkloadDriver()
        recorder = SampleRecorder()
        snapshots = []

        def unit():
            time.sleep(0.001)
            return 1

        reporter = start_reporting(recorder, driver, 20 * NANOS_PER_MILLI, snapshots.append)
        driver.run(RunConfig.for_duration(0.2), unit, recorder=recorder)
        reporter._thread.join(timeout=1.0)

        assert not reporter.is_running
        assert snapshots
        assert all(s.elapsed_seconds > 0 for s in snapshots)

    def test_owner_finished_ends_reporting_without_emitting(self):
        snapshots = []
        reporter = PeriodicReporter(
            SampleRecorder(), 10 * NANOS_PER_MILLI, snapshots.append, owner_finished=lambda: True
        ).start()
        reporter._thread.join(timeout=1.0)

        assert not reporter.is_running
        assert snapshots == []
        assert reporter.ticks == 0

    def test_reporter_does_not_slow_driver(self):
        """A slow callback on the reporter thread leaves the driver's budget untouched."""
        def slow_emit(snapshot):
            time.sleep(0.05)

        start = time.perf_counter()
        result = WorkloadDriver().run(
            RunConfig.for_iterations(200, report_every_nanos=5 * NANOS_PER_MILLI),
            timed(lambda: None),
            on_snapshot=slow_emit,
        )

        assert result.count == 200
        assert time.perf_counter() - start < 1.0


def test_reporter_thread_is_daemon():
    reporter = PeriodicReporter(SampleRecorder(), NANOS_PER_SECOND, lambda s: None).start()
    try:
        assert reporter._thread.daemon
        assert reporter._thread.name == "PeriodicReporter"
        assert reporter._thread is not threading.current_thread()
    finally:
        reporter.stop()
