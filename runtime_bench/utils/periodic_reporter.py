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
Periodic Reporter
================================================================================
Purpose: Emit progress snapshots on an independent timer thread
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, Optional

from runtime_bench.utils.run_config import NANOS_PER_SECOND
from runtime_bench.utils.sample_recorder import SampleRecorder

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress of a running workload at one reporter tick"""
    elapsed_seconds: float
    total_count: int
    interval_count: int
    interval_rate_units_per_second: float

    def to_dict(self):
        return asdict(self)


class PeriodicReporter:
    """
    Reads recorder counters every `every_nanos` and hands a snapshot to `emit`

    Runs on its own daemon thread and only reads shared counters, so the
    workload loop is never blocked or slowed by reporting.

    Example:
        >>> reporter = PeriodicReporter(recorder, 5 * NANOS_PER_SECOND, print)
        >>> with reporter:
        ...     driver.run(config, unit_of_work, recorder=recorder)
    """

    def __init__(
        self,
        recorder: SampleRecorder,
        every_nanos: int,
        emit: Callable[[ProgressSnapshot], None],
        elapsed_nanos: Optional[Callable[[], int]] = None,
        owner_finished: Optional[Callable[[], bool]] = None,
        clock: Callable[[], int] = time.perf_counter_ns,
    ):
        """
        Args:
            recorder: Recorder whose sample count is tracked
            every_nanos: Tick cadence in nanoseconds (> 0)
            emit: Callback receiving each ProgressSnapshot
            elapsed_nanos: Source of run-relative elapsed time; defaults to
                time since start()
            owner_finished: Checked before every tick; reporting ends,
                without emitting, once it returns True
            clock: Monotonic nanosecond clock
        """
        if every_nanos <= 0:
            raise ValueError(f"every_nanos must be > 0, got {every_nanos}")
        self._recorder = recorder
        self._every_nanos = every_nanos
        self._emit = emit
        self._elapsed_source = elapsed_nanos
        self._owner_finished = owner_finished
        self._clock = clock

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_ns = 0
        self._last_count = 0
        self._last_elapsed_ns = 0
        self.ticks = 0
        self.error: Optional[BaseException] = None

    def start(self) -> "PeriodicReporter":
        if self._thread is not None:
            raise RuntimeError("reporter already started")
        self._started_ns = self._clock()
        self._last_count = self._recorder.snapshot_count()
        self._last_elapsed_ns = self._elapsed()
        self._thread = threading.Thread(target=self._loop, name="PeriodicReporter", daemon=True)
        self._thread.start()
        _LOGGER.debug("Reporter started (every %.3f s)", self._every_nanos / NANOS_PER_SECOND)
        return self

    def stop(self, timeout: Optional[float] = None):
        """Signal the timer thread to stop and wait for it"""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        _LOGGER.debug("Reporter stopped after %d ticks", self.ticks)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> ProgressSnapshot:
        """Take one snapshot and advance the interval baseline"""
        elapsed_ns = self._elapsed()
        count = self._recorder.snapshot_count()

        interval_count = count - self._last_count
        if interval_count < 0:
            # recorder was cleared since the previous tick
            interval_count = count
        interval_ns = elapsed_ns - self._last_elapsed_ns
        if interval_ns < 0:
            # elapsed source restarted, e.g. a new run began
            interval_ns = elapsed_ns
        rate = interval_count * NANOS_PER_SECOND / interval_ns if interval_ns > 0 else 0.0

        self._last_count = count
        self._last_elapsed_ns = elapsed_ns
        self.ticks += 1

        return ProgressSnapshot(
            elapsed_seconds=elapsed_ns / NANOS_PER_SECOND,
            total_count=count,
            interval_count=interval_count,
            interval_rate_units_per_second=rate,
        )

    def _elapsed(self) -> int:
        if self._elapsed_source is not None:
            return self._elapsed_source()
        return self._clock() - self._started_ns

    def _loop(self):
        interval_s = self._every_nanos / NANOS_PER_SECOND
        while not self._stop_event.wait(interval_s):
            if self._owner_finished is not None and self._owner_finished():
                _LOGGER.debug("Owning run finished, reporter exiting")
                break
            try:
                self._emit(self.tick())
            except Exception as e:
                self.error = e
                _LOGGER.exception("Snapshot callback failed, reporting stopped")
                break

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()


def start_reporting(
    recorder: SampleRecorder,
    driver,
    every_nanos: int,
    emit: Callable[[ProgressSnapshot], None],
) -> PeriodicReporter:
    """
    Start a reporter tied to a WorkloadDriver

    The reporter follows the run in progress when it starts, or else the
    next run to begin. Reporting ends by itself once that run completes,
    or at the first tick if the driver is still idle by then (the run
    already ended or never started). Elapsed time is measured from the
    driver's run start.
    """
    owned_run = driver.runs_started if driver.is_running else driver.runs_started + 1

    def owner_finished() -> bool:
        # read finished first: a run may begin and end between the two reads
        if driver.runs_finished >= owned_run:
            return True
        return driver.runs_started < owned_run

    reporter = PeriodicReporter(
        recorder,
        every_nanos,
        emit,
        elapsed_nanos=lambda: driver.elapsed_nanos,
        owner_finished=owner_finished,
    )
    return reporter.start()
