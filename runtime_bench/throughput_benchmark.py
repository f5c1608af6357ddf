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
Throughput Benchmark - Maximum Work per Second
================================================================================
Creates many objects and computes over them. The goal is total operations
per second; individual collector pauses matter less here.

Scenario:
- A few warm-up iterations on a tenth of the workload, discarded
- A fixed number of measured iterations, each building N data points
  (1KB payload each) and periodically computing over everything built so far

Reported:
- ops/sec per iteration (in execution order) and overall
- Iteration time percentiles in milliseconds
"""

import argparse
import math
import random
import time
from dataclasses import dataclass, asdict
from typing import List, Optional

from runtime_bench.utils.console import (
    cancel_on_interrupt,
    configure_logging,
    print_banner,
    print_gc_stats,
    print_memory_stats,
    print_runtime_info,
)
from runtime_bench.utils.metrics_collector import GCPauseTracker, MetricsCollector
from runtime_bench.utils.run_config import NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.sample_recorder import SampleRecorder
from runtime_bench.utils.workload_driver import WorkloadDriver, timed

WARMUP_ITERATIONS = 5
BENCHMARK_ITERATIONS = 5
OPERATIONS_PER_ITERATION = 10_000
COMPUTE_EVERY = 100     # recompute over all points every N inserts
PAYLOAD_SIZE = 1024     # 1KB per data point


@dataclass
class ThroughputResult:
    """Results from the throughput benchmark"""
    iterations: int
    operations_per_iteration: int
    total_operations: int
    total_time_ms: float
    ops_per_sec: float
    iteration_p50_ms: float
    iteration_p95_ms: float
    iteration_p99_ms: float
    iteration_max_ms: float
    iteration_ops_per_sec: List[float]

    def to_dict(self):
        return asdict(self)


class DataPoint:
    """A small record that also occupies memory through its payload"""

    def __init__(self, timestamp: int, value: float, label: str):
        self.timestamp = timestamp
        self.value = value
        self.label = label
        self.payload = bytearray(PAYLOAD_SIZE)

    def compute(self) -> float:
        return math.sin(self.value) * math.cos(self.timestamp) + (hash(self.label) & 0xFFFF)


def run_iteration(operations: int) -> int:
    """
    Build `operations` data points, computing as they accumulate

    Returns:
        Number of operations performed
    """
    data_points = []
    computed = 0.0

    for i in range(operations):
        data_points.append(DataPoint(time.perf_counter_ns(), random.random() * 1000, f"data_{i}"))

        if i % COMPUTE_EVERY == 0:
            for point in data_points:
                computed += point.compute()

    for point in data_points:
        computed += point.compute()

    return operations


class ThroughputBenchmark:
    """Iteration-bound benchmark reporting operations per second"""

    def __init__(
        self,
        iterations: int = BENCHMARK_ITERATIONS,
        warmup_iterations: int = WARMUP_ITERATIONS,
        operations: int = OPERATIONS_PER_ITERATION,
    ):
        self.iterations = iterations
        self.warmup_iterations = warmup_iterations
        self.operations = operations
        self.metrics = MetricsCollector()
        self.driver = WorkloadDriver()

    def run_benchmark(self) -> Optional[ThroughputResult]:
        print_banner("THROUGHPUT BENCHMARK")
        print_runtime_info()
        print("\nGoal: maximise operations per second; GC pauses matter less.")

        if self.warmup_iterations > 0:
            print("\nWarming up...")
            warmup_ops = max(1, self.operations // 10)
            self.driver.warm_up(
                RunConfig.for_iterations(self.warmup_iterations),
                lambda: run_iteration(warmup_ops),
            )
            if self.driver.cancelled:
                print("Warm-up interrupted, skipping the measured run.")
                return None

        print("\nRunning benchmark...\n")
        recorder = SampleRecorder(thread_safe=False)
        gc_before = self.metrics.collect_gc_metrics()
        with GCPauseTracker() as tracker:
            run = self.driver.run(
                RunConfig.for_iterations(self.iterations),
                timed(lambda: run_iteration(self.operations)),
                recorder=recorder,
            )
        gc_delta = self.metrics.gc_delta(gc_before, self.metrics.collect_gc_metrics())

        if run.summary is None:
            print("No iterations completed.")
            return None

        # insertion order is execution order
        per_iteration = []
        for index, elapsed_ns in enumerate(recorder.snapshot(), start=1):
            ops_per_sec = self.operations * NANOS_PER_SECOND / elapsed_ns if elapsed_ns else 0.0
            per_iteration.append(ops_per_sec)
            print(f"Iteration {index:2d}: {self.operations:>10,} ops, "
                  f"{elapsed_ns // NANOS_PER_MILLI:>8,} ms, {ops_per_sec:,.0f} ops/sec")

        summary = run.summary
        total_operations = run.count * self.operations
        total_time_ns = summary.total
        ops_per_sec = total_operations * NANOS_PER_SECOND / total_time_ns if total_time_ns else 0.0

        print_banner("RESULTS")
        print(f"Overall throughput: {ops_per_sec:,.0f} ops/sec")
        print(f"Total operations: {total_operations:,}")
        print(f"Total time: {total_time_ns // NANOS_PER_MILLI:,} ms")

        print("\nTime per iteration:")
        print(f"  p50: {summary.p50 / NANOS_PER_MILLI:>8,.1f} ms")
        print(f"  p95: {summary.p95 / NANOS_PER_MILLI:>8,.1f} ms")
        print(f"  p99: {summary.p99 / NANOS_PER_MILLI:>8,.1f} ms")
        print(f"  max: {summary.max / NANOS_PER_MILLI:>8,.1f} ms")

        print_gc_stats(gc_delta, run.elapsed_seconds, tracker)
        print_memory_stats(self.metrics.collect_memory_metrics())
        print("=" * 60)

        return ThroughputResult(
            iterations=run.count,
            operations_per_iteration=self.operations,
            total_operations=total_operations,
            total_time_ms=total_time_ns / NANOS_PER_MILLI,
            ops_per_sec=ops_per_sec,
            iteration_p50_ms=summary.p50 / NANOS_PER_MILLI,
            iteration_p95_ms=summary.p95 / NANOS_PER_MILLI,
            iteration_p99_ms=summary.p99 / NANOS_PER_MILLI,
            iteration_max_ms=summary.max / NANOS_PER_MILLI,
            iteration_ops_per_sec=per_iteration,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Allocation-heavy throughput benchmark.")
    parser.add_argument("--iterations", type=int, default=BENCHMARK_ITERATIONS,
                        help="Measured iterations.")
    parser.add_argument("--warmup-iterations", type=int, default=WARMUP_ITERATIONS,
                        help="Warm-up iterations (0 to skip).")
    parser.add_argument("--operations", type=int, default=OPERATIONS_PER_ITERATION,
                        help="Data points built per iteration.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    """Run throughput benchmark"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    benchmark = ThroughputBenchmark(
        iterations=args.iterations,
        warmup_iterations=args.warmup_iterations,
        operations=args.operations,
    )
    with cancel_on_interrupt(benchmark.driver):
        result = benchmark.run_benchmark()

    if result is not None:
        print(f"\n✅ Throughput Benchmark Complete! {result.ops_per_sec:,.0f} ops/sec")
    return result


if __name__ == "__main__":
    main()
