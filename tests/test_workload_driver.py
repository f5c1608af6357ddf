"""Tests for the WorkloadDriver: budgets, pacing, concurrency and cancellation.

Timing assertions use generous tolerances; they check the shape of the
behaviour (catch-up instead of drift, prompt exit) rather than exact numbers.
"""

import threading
import time

import pytest

from runtime_bench.utils.counters import AtomicCounter
from runtime_bench.utils.errors import ConfigurationError
from runtime_bench.utils.run_config import NANOS_PER_MILLI, RunConfig
from runtime_bench.utils.sample_recorder import SampleRecorder
from runtime_bench.utils.workload_driver import RunResult, WorkloadDriver, timed

SLACK_SEC = 0.5


def counting_unit(counter: AtomicCounter):
    def unit():
        counter.increment()
        return 1
    return unit


def cancel_after(driver: WorkloadDriver, seconds: float) -> threading.Timer:
    timer = threading.Timer(seconds, driver.cancel)
    timer.start()
    return timer


class TestIterationBudget:
    """Iteration-bound runs stop exactly at the configured count."""

    def test_single_worker_exact_count(self):
        calls = AtomicCounter()
        result = WorkloadDriver().run(RunConfig.for_iterations(1000), counting_unit(calls))

        assert result.count == 1000
        assert calls.value == 1000
        assert result.total == 1000
        assert result.cancelled is False

    @pytest.mark.parametrize("workers", [2, 4, 8])
    def test_budget_shared_across_workers(self, workers):
        calls = AtomicCounter()
        recorder = SampleRecorder()
        result = WorkloadDriver().run(
            RunConfig.for_iterations(10_000, worker_count=workers),
            counting_unit(calls),
            recorder=recorder,
        )

        assert result.count == 10_000
        assert calls.value == 10_000
        assert recorder.size() == 10_000
        assert result.worker_count == workers

    def test_four_workers_no_lost_updates(self):
        """4 workers x N samples yields exactly 4*N recorded samples."""
        n = 2_500
        calls = AtomicCounter()

        def unit():
            return calls.increment()

        recorder = SampleRecorder()
        result = WorkloadDriver().run(
            RunConfig.for_iterations(4 * n, worker_count=4), unit, recorder=recorder
        )

        assert recorder.size() == 4 * n
        assert result.count == 4 * n
        # every value handed out by the counter was recorded exactly once
        assert recorder.drain_sorted() == list(range(1, 4 * n + 1))


class TestDurationBudget:
    """Duration-bound runs end shortly after the deadline."""

    def test_unthrottled_run_stops_after_duration(self):
        result = WorkloadDriver().run(RunConfig.for_duration(0.2), lambda: 1)

        assert result.elapsed_seconds >= 0.2
        assert result.elapsed_seconds < 0.2 + SLACK_SEC
        assert result.count > 0

    def test_slow_unit_overruns_by_at_most_one_invocation(self):
        def slow():
            time.sleep(0.05)
            return 1

        result = WorkloadDriver().run(RunConfig.for_duration(0.2), slow)

        assert result.elapsed_seconds < 0.2 + 0.05 + SLACK_SEC
        assert result.count >= 3

    def test_concurrent_duration_run(self):
        result = WorkloadDriver().run(
            RunConfig.for_duration(0.2, worker_count=3), timed(lambda: time.sleep(0.001))
        )

        assert result.count > 0
        assert result.elapsed_seconds < 0.2 + SLACK_SEC


class TestPacing:
    """Paced runs keep a fixed schedule."""

    def test_paced_elapsed_close_to_k_intervals(self):
        interval_ns = 5 * NANOS_PER_MILLI
        k = 20
        result = WorkloadDriver().run(
            RunConfig.for_iterations(k, target_interval_nanos=interval_ns), lambda: 0
        )

        assert result.count == k
        assert result.elapsed_nanos >= (k - 1) * interval_ns
        assert result.elapsed_nanos <= k * interval_ns + SLACK_SEC * 1e9

    def test_slow_invocation_is_caught_up_not_drifted(self):
        """A 60ms first call with a 20ms interval is absorbed by later calls."""
        calls = AtomicCounter()

        def unit():
            if calls.increment() == 1:
                time.sleep(0.06)
            return 0

        result = WorkloadDriver().run(
            RunConfig.for_iterations(6, target_interval_nanos=20 * NANOS_PER_MILLI), unit
        )

        # schedule ends at ~100ms; drifting would take ~160ms
        assert result.count == 6
        assert result.elapsed_seconds >= 0.09
        assert result.elapsed_seconds < 0.14

    def test_paced_duration_run_rate(self):
        result = WorkloadDriver().run(
            RunConfig.for_duration(0.3, target_interval_nanos=10 * NANOS_PER_MILLI), lambda: 0
        )

        # ~30 invocations expected; allow scheduler noise
        assert 20 <= result.count <= 32


class TestCancellation:
    """External cancellation stops all workers promptly."""

    def test_cancel_mid_run(self):
        driver = WorkloadDriver()
        recorder = SampleRecorder()
        cancel_after(driver, 0.2)

        start = time.perf_counter()
        result = driver.run(
            RunConfig.for_duration(30, worker_count=3),
            timed(lambda: time.sleep(0.001)),
            recorder=recorder,
        )

        assert time.perf_counter() - start < 0.2 + SLACK_SEC
        assert result.cancelled is True
        assert result.count == recorder.size()
        assert driver.cancelled

    def test_cancel_interrupts_pacing_wait(self):
        driver = WorkloadDriver()
        cancel_after(driver, 0.1)

        start = time.perf_counter()
        result = driver.run(
            RunConfig.for_iterations(5, target_interval_nanos=10_000 * NANOS_PER_MILLI), lambda: 1
        )

        assert time.perf_counter() - start < 0.1 + SLACK_SEC
        assert result.cancelled is True
        assert result.count == 1

    def test_cancel_before_run(self):
        driver = WorkloadDriver()
        driver.cancel()
        calls = AtomicCounter()

        result = driver.run(RunConfig.for_iterations(100), counting_unit(calls))

        assert calls.value == 0
        assert result.count == 0
        assert result.summary is None
        assert result.cancelled is True

    def test_reset_allows_new_run(self):
        driver = WorkloadDriver()
        driver.cancel()
        driver.reset()

        result = driver.run(RunConfig.for_iterations(10), lambda: 1)

        assert result.count == 10
        assert result.cancelled is False


class TestErrors:
    """Configuration errors are eager; workload errors propagate."""

    def test_configuration_error_before_any_work(self):
        calls = AtomicCounter()

        with pytest.raises(ConfigurationError):
            WorkloadDriver().run(RunConfig(), counting_unit(calls))
        assert calls.value == 0

    def test_ambiguous_budget_rejected(self):
        with pytest.raises(ConfigurationError):
            WorkloadDriver().run(RunConfig(duration_seconds=1, iteration_count=1), lambda: 1)

    def test_unsafe_recorder_with_workers_rejected(self):
        with pytest.raises(ConfigurationError):
            WorkloadDriver().run(
                RunConfig.for_iterations(10, worker_count=2),
                lambda: 1,
                recorder=SampleRecorder(thread_safe=False),
            )

    def test_non_empty_recorder_rejected(self):
        recorder = SampleRecorder()
        recorder.record(1)

        with pytest.raises(ConfigurationError):
            WorkloadDriver().run(RunConfig.for_iterations(10), lambda: 1, recorder=recorder)

    def test_workload_exception_propagates_with_partial_samples(self):
        calls = AtomicCounter()

        def unit():
            if calls.increment() == 50:
                raise ValueError("boom")
            return 1

        driver = WorkloadDriver()
        recorder = SampleRecorder()
        with pytest.raises(ValueError, match="boom"):
            driver.run(RunConfig.for_duration(30, worker_count=4), unit, recorder=recorder)

        assert recorder.size() >= 49
        assert driver.is_running is False
        assert driver.runs_started == driver.runs_finished == 1

    def test_memory_error_is_not_masked(self):
        def unit():
            raise MemoryError()

        with pytest.raises(MemoryError):
            WorkloadDriver().run(RunConfig.for_iterations(10), unit)


class TestWarmUpAndReporting:
    """Warm-up isolation, progress snapshots and result helpers."""

    def test_warm_up_samples_never_reach_run(self):
        driver = WorkloadDriver()
        warm = driver.warm_up(RunConfig.for_iterations(500), lambda: 1_000_000)
        result = driver.run(RunConfig.for_iterations(10), lambda: 1)

        assert warm.count == 500
        assert result.count == 10
        assert result.summary.max == 1

    def test_run_counters_include_warm_up(self):
        driver = WorkloadDriver()
        assert driver.runs_started == driver.runs_finished == 0

        driver.warm_up(RunConfig.for_iterations(5), lambda: 1)
        driver.run(RunConfig.for_iterations(5), lambda: 1)

        assert driver.runs_started == driver.runs_finished == 2

    def test_snapshots_emitted_during_run(self):
        snapshots = []
        result = WorkloadDriver().run(
            RunConfig.for_duration(0.35, report_every_nanos=50 * NANOS_PER_MILLI),
            timed(lambda: time.sleep(0.001)),
            on_snapshot=snapshots.append,
        )

        assert len(snapshots) >= 2
        totals = [s.total_count for s in snapshots]
        assert totals == sorted(totals)
        assert totals[-1] <= result.count
        assert all(s.elapsed_seconds <= result.elapsed_seconds + 0.01 for s in snapshots)

    def test_driver_default_snapshot_callback(self):
        snapshots = []
        driver = WorkloadDriver(on_snapshot=snapshots.append)
        driver.run(
            RunConfig.for_duration(0.2, report_every_nanos=40 * NANOS_PER_MILLI),
            timed(lambda: time.sleep(0.001)),
        )

        assert snapshots

    def test_timed_measures_elapsed_nanos(self):
        unit = timed(lambda: time.sleep(0.01))

        assert unit() >= 10 * NANOS_PER_MILLI

    def test_result_helpers(self):
        driver = WorkloadDriver()
        result = driver.run(RunConfig.for_iterations(100), lambda: 3)

        assert isinstance(result, RunResult)
        assert result.total == 300
        assert result.rate_per_second > 0
        assert driver.elapsed_nanos == result.elapsed_nanos
        data = result.to_dict()
        assert data['count'] == 100
        assert data['summary']['max'] == 3
