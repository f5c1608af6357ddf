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
Allocation Rate Benchmark
================================================================================
Creates objects as fast as possible and shows how the collector keeps up
with a high allocation rate.

Shows:
- How often each generation is collected
- How long collector pauses last
- How much of the run is spent inside the collector

Buffers are released by reference counting as soon as their batch dies; the
cyclic collector runs because every object is wrapped in a small container.
"""

import argparse
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
from runtime_bench.utils.metrics_collector import BYTES_PER_MB, GCPauseTracker, MetricsCollector
from runtime_bench.utils.periodic_reporter import ProgressSnapshot
from runtime_bench.utils.run_config import NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.workload_driver import WorkloadDriver

DURATION_SEC = 30
ALLOCATION_SIZE = 1024      # 1KB per object
BATCH_SIZE = 10_000         # objects per unit of work
REPORT_EVERY_SEC = 5


@dataclass
class AllocationResult:
    """Results from the allocation rate benchmark"""
    duration_sec: float
    objects_created: int
    allocated_mb: float
    allocation_rate_mb_per_sec: float
    object_rate_per_sec: float
    gc_collections: List[int]
    gc_pause_count: int
    gc_pause_total_ms: float
    gc_overhead_percent: float

    def to_dict(self):
        return asdict(self)


def allocate_batch(count: int = BATCH_SIZE, size: int = ALLOCATION_SIZE) -> int:
    """
    Unit of work: allocate `count` buffers that die immediately

    Returns:
        Number of objects created
    """
    batch = []
    for _ in range(count):
        # wrapped in a list so every object counts towards the gen-0 threshold
        batch.append([bytearray(size)])
    # batch goes out of scope and becomes garbage
    return len(batch)


class AllocationBenchmark:
    """Unthrottled, duration-bound allocation benchmark"""

    def __init__(
        self,
        duration_sec: float = DURATION_SEC,
        batch_size: int = BATCH_SIZE,
        report_every_sec: float = REPORT_EVERY_SEC,
    ):
        self.duration_sec = duration_sec
        self.batch_size = batch_size
        self.report_every_nanos = int(report_every_sec * NANOS_PER_SECOND)
        self.metrics = MetricsCollector()
        self.driver = WorkloadDriver(on_snapshot=self._print_progress)

    def run_benchmark(self) -> Optional[AllocationResult]:
        print_banner("ALLOCATION RATE BENCHMARK")
        print_runtime_info()
        print("\nMaximum object creation rate; shows young-generation collection frequency.\n")

        config = RunConfig.for_duration(self.duration_sec, report_every_nanos=self.report_every_nanos)
        gc_before = self.metrics.collect_gc_metrics()
        with GCPauseTracker() as tracker:
            run = self.driver.run(config, lambda: allocate_batch(self.batch_size))
        gc_delta = self.metrics.gc_delta(gc_before, self.metrics.collect_gc_metrics())

        if run.summary is None:
            print("No batches completed.")
            return None

        elapsed = run.elapsed_seconds
        objects_created = run.total
        allocated_mb = objects_created * ALLOCATION_SIZE / BYTES_PER_MB
        pause_total_ms = tracker.total_pause_ns / NANOS_PER_MILLI
        overhead = pause_total_ms / (elapsed * 1000) * 100 if elapsed > 0 else 0.0

        print_banner("RESULTS")
        print(f"Duration: {elapsed:.1f} seconds")
        print(f"Objects created: {objects_created:,}")
        print(f"Memory allocated: {allocated_mb:,.0f} MB")
        print(f"Allocation rate: {allocated_mb / elapsed:,.0f} MB/sec")
        print(f"Object creation rate: {objects_created / elapsed:,.0f} obj/sec")

        print_gc_stats(gc_delta, elapsed, tracker)
        print_memory_stats(self.metrics.collect_memory_metrics())
        print("=" * 60)

        return AllocationResult(
            duration_sec=elapsed,
            objects_created=objects_created,
            allocated_mb=allocated_mb,
            allocation_rate_mb_per_sec=allocated_mb / elapsed,
            object_rate_per_sec=objects_created / elapsed,
            gc_collections=list(gc_delta.collections),
            gc_pause_count=tracker.pause_count,
            gc_pause_total_ms=pause_total_ms,
            gc_overhead_percent=overhead,
        )

    def _print_progress(self, snapshot: ProgressSnapshot):
        objects = snapshot.total_count * self.batch_size
        rate_mb = (snapshot.interval_rate_units_per_second * self.batch_size
                   * ALLOCATION_SIZE / BYTES_PER_MB)
        print(f"[{snapshot.elapsed_seconds:3.0f} sec] Created: {objects:,} objects, "
              f"Allocation rate: {rate_mb:,.0f} MB/sec")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Allocation rate benchmark.")
    parser.add_argument("--duration", type=float, default=DURATION_SEC,
                        help="Run length in seconds.")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE,
                        help="Objects allocated per unit of work.")
    parser.add_argument("--report-every", type=float, default=REPORT_EVERY_SEC,
                        help="Progress report cadence in seconds (0 to disable).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    """Run allocation rate benchmark"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    benchmark = AllocationBenchmark(
        duration_sec=args.duration,
        batch_size=args.batch_size,
        report_every_sec=args.report_every,
    )
    with cancel_on_interrupt(benchmark.driver):
        result = benchmark.run_benchmark()

    if result is not None:
        print(f"\n✅ Allocation Benchmark Complete! "
              f"{result.allocation_rate_mb_per_sec:,.0f} MB/sec allocated")
    return result


if __name__ == "__main__":
    main()
