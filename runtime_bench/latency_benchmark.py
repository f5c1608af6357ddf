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
Latency Benchmark - Short, Predictable Collector Pauses
================================================================================
Simulates a latency-sensitive service (e.g. a REST API): requests arrive at a
fixed rate and each one allocates a little memory while it is processed.

What matters here is the tail: p99/p999 and the number of requests that hit
a collector pause, not the raw throughput.

Scenario:
- Warm up for a few seconds, discard those samples
- Issue a request every 100 μs (10,000 req/sec) for 30 seconds
- Each request allocates 10 x 1KB buffers and sums their sizes

Expected Result:
- p50 in the low microseconds
- Sporadic spikes above 1ms; spikes above 10ms are very likely collector pauses
"""

import argparse
import time
from dataclasses import dataclass, asdict
from typing import List, Optional

from runtime_bench.utils.console import (
    cancel_on_interrupt,
    configure_logging,
    print_banner,
    print_gc_stats,
    print_latency_summary,
    print_memory_stats,
    print_runtime_info,
    print_threshold_count,
)
from runtime_bench.utils.metrics_collector import GCPauseTracker, MetricsCollector
from runtime_bench.utils.periodic_reporter import ProgressSnapshot
from runtime_bench.utils.run_config import NANOS_PER_MICRO, NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.workload_driver import WorkloadDriver

WARMUP_DURATION_SEC = 5
BENCHMARK_DURATION_SEC = 30
REQUEST_INTERVAL_MICROS = 100  # 10,000 req/sec
PROGRESS_EVERY_SEC = 5

REQUEST_SIZE = 10       # buffers per request
BUFFER_SIZE = 1024      # 1KB per buffer

HIGH_LATENCY_THRESHOLD_NS = 1 * NANOS_PER_MILLI
GC_PAUSE_THRESHOLD_NS = 10 * NANOS_PER_MILLI


@dataclass
class LatencyResult:
    """Results from the latency benchmark"""
    total_requests: int
    duration_sec: float
    throughput_req_per_sec: float
    avg_us: float
    p50_us: float
    p90_us: float
    p95_us: float
    p99_us: float
    p999_us: float
    max_us: float
    high_latency_requests: int
    suspected_gc_pauses: int
    gc_pause_count: int
    cancelled: bool

    def to_dict(self):
        return asdict(self)


class Response:
    def __init__(self, start_ns: int, result: int):
        self.start_ns = start_ns
        self.result = result

    def latency_nanos(self) -> int:
        return time.perf_counter_ns() - self.start_ns


class Request:
    """A request that allocates its working set on creation"""

    def __init__(self):
        self.start_ns = time.perf_counter_ns()
        self.data: List[bytearray] = [bytearray(BUFFER_SIZE) for _ in range(REQUEST_SIZE)]

    def process(self) -> Response:
        result = 0
        for buffer in self.data:
            result += len(buffer)
        return Response(self.start_ns, result)


def handle_request() -> int:
    """Unit of work: one request, timed from creation to response"""
    return Request().process().latency_nanos()


class LatencyBenchmark:
    """Paced request benchmark reporting tail latency"""

    def __init__(
        self,
        duration_sec: float = BENCHMARK_DURATION_SEC,
        warmup_sec: float = WARMUP_DURATION_SEC,
        interval_micros: int = REQUEST_INTERVAL_MICROS,
        workers: int = 1,
        progress_every_sec: float = PROGRESS_EVERY_SEC,
    ):
        self.duration_sec = duration_sec
        self.warmup_sec = warmup_sec
        self.interval_nanos = int(interval_micros * NANOS_PER_MICRO)
        self.workers = workers
        self.progress_every_nanos = int(progress_every_sec * NANOS_PER_SECOND)
        self.metrics = MetricsCollector()
        self.driver = WorkloadDriver(on_snapshot=self._print_progress)

    def run_benchmark(self) -> Optional[LatencyResult]:
        """
        Run warm-up and the measured phase

        Returns:
            LatencyResult, or None if cancelled during warm-up or before any
            request completed
        """
        print_banner("LATENCY BENCHMARK")
        print_runtime_info()
        print("\nGoal: minimise response time; throughput is secondary.")

        if self.warmup_sec > 0:
            print(f"\nWarming up ({self.warmup_sec:g} sec)...")
            self.driver.warm_up(
                RunConfig.for_duration(
                    self.warmup_sec,
                    target_interval_nanos=self.interval_nanos,
                    worker_count=self.workers,
                ),
                handle_request,
            )
            if self.driver.cancelled:
                print("Warm-up interrupted, skipping the measured run.")
                return None

        config = RunConfig.for_duration(
            self.duration_sec,
            target_interval_nanos=self.interval_nanos,
            worker_count=self.workers,
            report_every_nanos=self.progress_every_nanos,
        )

        print(f"\nRunning benchmark ({self.duration_sec:g} sec)...")
        gc_before = self.metrics.collect_gc_metrics()
        with GCPauseTracker() as tracker:
            run = self.driver.run(config, handle_request)
        gc_delta = self.metrics.gc_delta(gc_before, self.metrics.collect_gc_metrics())

        if run.summary is None:
            print("\nNo requests completed.")
            return None

        summary = run.summary
        print_banner("RESULTS")
        print(f"Total requests: {run.count:,}")
        print(f"Throughput: {run.rate_per_second:,.0f} req/sec")
        if run.cancelled:
            print("(run was cancelled early)")

        print_latency_summary(summary, unit='us', label="Latency (response time)")
        print()
        high_latency = print_threshold_count(
            summary, HIGH_LATENCY_THRESHOLD_NS, "Requests with latency > 1ms"
        )
        suspected_pauses = self._analyze_gc_impact(summary)

        print_gc_stats(gc_delta, run.elapsed_seconds, tracker)
        print_memory_stats(self.metrics.collect_memory_metrics())
        print("=" * 60)

        scaled = summary.scaled(NANOS_PER_MICRO)
        return LatencyResult(
            total_requests=run.count,
            duration_sec=run.elapsed_seconds,
            throughput_req_per_sec=run.rate_per_second,
            avg_us=scaled['mean'],
            p50_us=scaled['p50'],
            p90_us=scaled['p90'],
            p95_us=scaled['p95'],
            p99_us=scaled['p99'],
            p999_us=scaled['p999'],
            max_us=scaled['max'],
            high_latency_requests=high_latency,
            suspected_gc_pauses=suspected_pauses,
            gc_pause_count=tracker.pause_count,
            cancelled=run.cancelled,
        )

    def _analyze_gc_impact(self, summary) -> int:
        """Latency spikes above 10ms are most likely collector pauses"""
        suspected = summary.threshold_exceed_count(GC_PAUSE_THRESHOLD_NS)
        if suspected > 0:
            print_threshold_count(summary, GC_PAUSE_THRESHOLD_NS, "Possible GC pauses (latency > 10ms)")
            print(f"Longest pause: {summary.max / NANOS_PER_MILLI:.2f} ms")
        return suspected

    def _print_progress(self, snapshot: ProgressSnapshot):
        print(f"  {snapshot.elapsed_seconds:5.0f} sec: {snapshot.total_count:,} requests processed "
              f"({snapshot.interval_rate_units_per_second:,.0f} req/sec)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Paced request latency benchmark.")
    parser.add_argument("--duration", type=float, default=BENCHMARK_DURATION_SEC,
                        help="Measured phase length in seconds.")
    parser.add_argument("--warmup", type=float, default=WARMUP_DURATION_SEC,
                        help="Warm-up length in seconds (0 to skip).")
    parser.add_argument("--interval-us", type=int, default=REQUEST_INTERVAL_MICROS,
                        help="Request inter-arrival interval in microseconds.")
    parser.add_argument("--workers", type=int, default=1, help="Concurrent request workers.")
    parser.add_argument("--progress-every", type=float, default=PROGRESS_EVERY_SEC,
                        help="Progress report cadence in seconds (0 to disable).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    """Run latency benchmark"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    benchmark = LatencyBenchmark(
        duration_sec=args.duration,
        warmup_sec=args.warmup,
        interval_micros=args.interval_us,
        workers=args.workers,
        progress_every_sec=args.progress_every,
    )
    with cancel_on_interrupt(benchmark.driver):
        result = benchmark.run_benchmark()

    if result is not None:
        print(f"\n✅ Latency Benchmark Complete! p99 = {result.p99_us:,.2f} μs")
    return result


if __name__ == "__main__":
    main()
