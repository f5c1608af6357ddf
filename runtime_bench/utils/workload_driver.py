#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Copyright 2026 Vaquar Khan

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

================================================================================
Workload Driver
================================================================================
Purpose: Run a unit of work under a time or iteration budget and sample it

Modes:
- Unthrottled: invoke the unit of work back-to-back
- Paced: each worker keeps a deadline advanced by target_interval_nanos after
  every invocation, so slow invocations are caught up instead of drifting
- Concurrent: worker_count workers share one SampleRecorder and one
  iteration budget
"""

import functools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional

from runtime_bench.utils.counters import AtomicCounter
from runtime_bench.utils.errors import ConfigurationError
from runtime_bench.utils.percentiles import PercentileSummary, summarize
from runtime_bench.utils.periodic_reporter import ProgressSnapshot, start_reporting
from runtime_bench.utils.run_config import NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.sample_recorder import SampleRecorder

_LOGGER = logging.getLogger(__name__)

# Residual pacing waits shorter than this are spun instead of slept
SPIN_THRESHOLD_NANOS = 500_000

UnitOfWork = Callable[[], int]


@dataclass(frozen=True)
class RunResult:
    """
    Outcome of one WorkloadDriver.run call

    summary is None only when the run recorded nothing (e.g. cancelled
    before the first invocation).
    """
    count: int
    elapsed_nanos: int
    summary: Optional[PercentileSummary]
    cancelled: bool = False
    worker_count: int = 1

    @property
    def elapsed_seconds(self) -> float:
        return self.elapsed_nanos / NANOS_PER_SECOND

    @property
    def total(self) -> int:
        """Sum of all samples (operations completed in throughput mode)"""
        return self.summary.total if self.summary is not None else 0

    @property
    def rate_per_second(self) -> float:
        """Samples recorded per second of wall-clock time"""
        if self.elapsed_nanos <= 0:
            return 0.0
        return self.count * NANOS_PER_SECOND / self.elapsed_nanos

    def to_dict(self):
        return {
            'count': self.count,
            'elapsed_seconds': self.elapsed_seconds,
            'rate_per_second': self.rate_per_second,
            'cancelled': self.cancelled,
            'worker_count': self.worker_count,
            'summary': self.summary.to_dict() if self.summary is not None else None,
        }


def timed(fn: Callable[[], object]) -> UnitOfWork:
    """
    Wrap fn into a latency-mode unit of work

    The returned callable runs fn and returns its own elapsed nanoseconds.
    """
    @functools.wraps(fn)
    def unit_of_work() -> int:
        start = time.perf_counter_ns()
        fn()
        return time.perf_counter_ns() - start
    return unit_of_work


def _log_snapshot(snapshot: ProgressSnapshot):
    _LOGGER.info(
        "[%6.1f s] %d samples (+%d, %.0f/s)",
        snapshot.elapsed_seconds,
        snapshot.total_count,
        snapshot.interval_count,
        snapshot.interval_rate_units_per_second,
    )


class WorkloadDriver:
    """
    Drives a caller-supplied unit of work and records one sample per call

    The unit of work either self-times and returns elapsed nanoseconds
    (latency mode, see timed()) or returns an operation count
    (throughput mode). The driver does not care which.

    cancel() may be called from any thread (or a signal handler); every
    worker exits within one invocation plus one pacing wait.

    Example:
        >>> driver = WorkloadDriver()
        >>> result = driver.run(RunConfig.for_iterations(1000), timed(handle_request))
        >>> print(result.summary.p99)
    """

    def __init__(self, on_snapshot: Optional[Callable[[ProgressSnapshot], None]] = None):
        """
        Args:
            on_snapshot: Default progress callback for runs with
                report_every_nanos > 0 (logs at INFO when omitted)
        """
        self._on_snapshot = on_snapshot
        self._cancel_requested = False
        self._stop_event = threading.Event()
        self._running = False
        self._runs_started = 0
        self._runs_finished = 0
        self._start_ns = 0
        self._end_ns = 0

    def cancel(self):
        """
        Ask all workers of the current run to stop

        The request stays in force until reset(): later warm_up() or run()
        calls on this driver return at once with an empty, cancelled result.
        """
        self._cancel_requested = True
        self._stop_event.set()
        _LOGGER.debug("Cancellation requested")

    def reset(self):
        """Clear a previous cancellation so the driver can run again"""
        self._cancel_requested = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def runs_started(self) -> int:
        """Number of run or warm-up calls that have begun"""
        return self._runs_started

    @property
    def runs_finished(self) -> int:
        """Number of run or warm-up calls that have ended, normally or not"""
        return self._runs_finished

    @property
    def elapsed_nanos(self) -> int:
        """Time since the current run started, or the length of the last run"""
        if self._start_ns == 0:
            return 0
        if self._running:
            return time.perf_counter_ns() - self._start_ns
        return self._end_ns - self._start_ns

    def warm_up(self, config: RunConfig, unit_of_work: UnitOfWork) -> RunResult:
        """
        Run the workload into a throwaway recorder

        Nothing recorded here reaches a later run's summary.
        """
        config.validate()
        _LOGGER.debug("Warm-up: %s", config)
        recorder = SampleRecorder(thread_safe=config.worker_count > 1)
        return self._execute(config, unit_of_work, recorder, on_snapshot=None, report=False)

    def run(
        self,
        config: RunConfig,
        unit_of_work: UnitOfWork,
        recorder: Optional[SampleRecorder] = None,
        on_snapshot: Optional[Callable[[ProgressSnapshot], None]] = None,
    ) -> RunResult:
        """
        Execute one measured run

        Args:
            config: Budget, pacing and concurrency of the run
            unit_of_work: Callable returning one integer sample per call
            recorder: Empty recorder to fill; pass one to keep access to
                partial samples if the workload raises
            on_snapshot: Progress callback overriding the driver default

        Returns:
            RunResult with the count, elapsed time and percentile summary
            (cancelled and without samples if cancel() was called earlier
            and not cleared with reset())

        Raises:
            ConfigurationError: Before any work starts, if config or recorder is unusable
            Exception: Whatever the unit of work raised first, after all
                workers have stopped
        """
        config.validate()
        if recorder is None:
            recorder = SampleRecorder(thread_safe=config.worker_count > 1)
        else:
            if config.worker_count > 1 and not recorder.thread_safe:
                raise ConfigurationError("concurrent workers need a thread-safe SampleRecorder")
            if recorder.size() != 0:
                raise ConfigurationError("recorder must be empty at run start")
        return self._execute(config, unit_of_work, recorder, on_snapshot, report=True)

    def _execute(self, config, unit_of_work, recorder, on_snapshot, report):
        if self._running:
            raise RuntimeError("driver is already running")

        stop = threading.Event()
        self._stop_event = stop
        if self._cancel_requested:
            stop.set()

        self._runs_started += 1
        budget = None if config.is_duration_bound else AtomicCounter()
        self._start_ns = time.perf_counter_ns()
        self._end_ns = 0
        deadline_ns = self._start_ns + config.duration_nanos if config.is_duration_bound else None
        self._running = True

        reporter = None
        if report and config.report_every_nanos > 0:
            emit = on_snapshot or self._on_snapshot or _log_snapshot
            reporter = start_reporting(recorder, self, config.report_every_nanos, emit)

        _LOGGER.debug(
            "Run started: %d worker(s), %s, interval=%d ns",
            config.worker_count,
            f"{config.duration_seconds} s" if deadline_ns else f"{config.iteration_count} iterations",
            config.target_interval_nanos,
        )

        try:
            if config.worker_count == 1:
                stopped_early = [
                    self._worker_loop(config, unit_of_work, recorder, stop, budget, deadline_ns)
                ]
            else:
                stopped_early = self._run_workers(
                    config, unit_of_work, recorder, stop, budget, deadline_ns
                )
        finally:
            self._end_ns = time.perf_counter_ns()
            self._running = False
            self._runs_finished += 1
            if reporter is not None:
                reporter.stop()

        samples = recorder.drain_sorted()
        result = RunResult(
            count=len(samples),
            elapsed_nanos=self._end_ns - self._start_ns,
            summary=summarize(samples) if samples else None,
            cancelled=any(stopped_early),
            worker_count=config.worker_count,
        )
        _LOGGER.debug(
            "Run finished: %d samples in %.3f s%s",
            result.count,
            result.elapsed_seconds,
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def _run_workers(self, config, unit_of_work, recorder, stop, budget, deadline_ns) -> List[bool]:
        stopped_early = []
        with ThreadPoolExecutor(
            max_workers=config.worker_count, thread_name_prefix="Worker"
        ) as executor:
            futures = [
                executor.submit(
                    self._worker_loop, config, unit_of_work, recorder, stop, budget, deadline_ns
                )
                for _ in range(config.worker_count)
            ]
            try:
                for future in as_completed(futures):
                    stopped_early.append(future.result())
            except BaseException:
                # first failure wins; the others stop at their next check
                stop.set()
                raise
        return stopped_early

    def _worker_loop(self, config, unit_of_work, recorder, stop, budget, deadline_ns) -> bool:
        """
        One worker's loop

        Returns:
            True if the worker left because of a stop signal, False when
            its budget was exhausted
        """
        interval = config.target_interval_nanos
        next_ns = time.perf_counter_ns()

        while True:
            if stop.is_set():
                return True
            now = time.perf_counter_ns()
            if deadline_ns is not None and now >= deadline_ns:
                return False

            if interval and now < next_ns:
                self._pace(next_ns if deadline_ns is None else min(next_ns, deadline_ns), stop)
                continue

            if budget is not None and not budget.try_claim(config.iteration_count):
                return False

            recorder.record(int(unit_of_work()))

            if interval:
                next_ns += interval

    @staticmethod
    def _pace(until_ns: int, stop: threading.Event):
        """Sleep coarse waits (waking on stop), spin the sub-threshold residual"""
        while True:
            remaining = until_ns - time.perf_counter_ns()
            if remaining <= 0 or stop.is_set():
                return
            if remaining > SPIN_THRESHOLD_NANOS:
                stop.wait((remaining - SPIN_THRESHOLD_NANOS) / NANOS_PER_SECOND)
            else:
                time.sleep(0)
