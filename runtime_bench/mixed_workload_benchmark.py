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
Mixed Workload Benchmark - Realistic Mixed Load
================================================================================
Simulates an application with:
- Short-lived objects (die young)
- Long-lived objects held in a cache (survive into the oldest generation)
- Periodic load bursts
- Periodic eviction of stale cache entries

One worker per CPU shares the cache. Operation latencies go to the
harness; the cache, bursts and cleanup belong to this program.
"""

import argparse
import logging
import os
import random
import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional

from runtime_bench.utils.console import (
    cancel_on_interrupt,
    configure_logging,
    print_banner,
    print_gc_stats,
    print_latency_summary,
    print_memory_stats,
    print_runtime_info,
)
from runtime_bench.utils.counters import AtomicCounter
from runtime_bench.utils.metrics_collector import GCPauseTracker, MetricsCollector
from runtime_bench.utils.periodic_reporter import ProgressSnapshot
from runtime_bench.utils.run_config import NANOS_PER_MICRO, NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.workload_driver import WorkloadDriver

_LOGGER = logging.getLogger(__name__)

DURATION_SEC = 60
LONG_LIVED_OBJECTS = 10_000
CACHED_OBJECT_SIZE = 10 * 1024  # 10KB
SHORT_LIVED_PER_OPERATION = 100
SHORT_LIVED_SIZE = 1024         # 1KB
OPERATION_INTERVAL_MS = 1

BURST_INTERVAL_SEC = 5
BURST_OBJECTS = 10_000          # 10MB burst
CLEANUP_INTERVAL_SEC = 10
CACHE_TTL_SEC = 30
REPORT_EVERY_SEC = 5


@dataclass
class MixedWorkloadResult:
    """Results from the mixed workload benchmark"""
    workers: int
    duration_sec: float
    total_operations: int
    throughput_ops_per_sec: float
    avg_us: float
    p50_us: float
    p95_us: float
    p99_us: float
    max_us: float
    final_cache_size: int
    bursts: int
    evicted_entries: int
    gc_pause_count: int

    def to_dict(self):
        return asdict(self)


class CachedObject:
    """Long-lived cache entry"""

    def __init__(self, key: str, size: int, clock: Callable[[], float] = time.monotonic):
        self.key = key
        self._clock = clock
        self.created_at = clock()
        self.last_accessed = self.created_at
        self.data = bytearray(size)
        self.access_count = 0

    def access(self):
        self.last_accessed = self._clock()
        self.access_count += 1

    def is_expired(self, ttl_sec: float) -> bool:
        return self._clock() - self.last_accessed > ttl_sec


class TTLCache:
    """Thread-safe dictionary of CachedObject with a TTL sweep"""

    def __init__(self):
        self._entries: Dict[str, CachedObject] = {}
        self._lock = threading.Lock()

    def get_or_create(self, key: str, factory: Callable[[str], CachedObject]) -> CachedObject:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = factory(key)
                self._entries[key] = entry
            return entry

    def put(self, entry: CachedObject):
        with self._lock:
            self._entries[entry.key] = entry

    def cleanup(self, ttl_sec: float) -> int:
        """Remove entries not accessed within ttl_sec; returns the number removed"""
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(ttl_sec)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self):
        return len(self._entries)


def generate_burst(objects: int = BURST_OBJECTS) -> int:
    """Allocate a short-lived spike of 1KB buffers"""
    burst = [bytearray(SHORT_LIVED_SIZE) for _ in range(objects)]
    return len(burst)


def _run_every(name: str, interval_sec: float, action: Callable[[], None], stop: threading.Event):
    """
    Start a daemon thread calling action every interval_sec until stop is set

    A failing action is logged with its traceback and ends the thread.
    """
    def loop():
        while not stop.wait(interval_sec):
            try:
                action()
            except Exception:
                _LOGGER.exception("%s failed, background task stopped", name)
                break

    thread = threading.Thread(target=loop, name=name, daemon=True)
    thread.start()
    return thread


class MixedWorkloadBenchmark:
    """Concurrent, paced workload over a shared cache"""

    def __init__(
        self,
        duration_sec: float = DURATION_SEC,
        workers: Optional[int] = None,
        burst_interval_sec: float = BURST_INTERVAL_SEC,
        cleanup_interval_sec: float = CLEANUP_INTERVAL_SEC,
        cache_ttl_sec: float = CACHE_TTL_SEC,
        report_every_sec: float = REPORT_EVERY_SEC,
    ):
        self.duration_sec = duration_sec
        self.workers = workers or os.cpu_count() or 1
        self.burst_interval_sec = burst_interval_sec
        self.cleanup_interval_sec = cleanup_interval_sec
        self.cache_ttl_sec = cache_ttl_sec
        self.report_every_nanos = int(report_every_sec * NANOS_PER_SECOND)

        self.cache = TTLCache()
        self.bursts = AtomicCounter()
        self.evicted = AtomicCounter()
        self.metrics = MetricsCollector()
        self.driver = WorkloadDriver(on_snapshot=self._print_progress)

    def operation(self) -> int:
        """Unit of work: short-lived garbage plus one cache access, self-timed"""
        start = time.perf_counter_ns()

        short_lived = [bytearray(SHORT_LIVED_SIZE) for _ in range(SHORT_LIVED_PER_OPERATION)]

        key = f"cache_{random.randrange(LONG_LIVED_OBJECTS)}"
        self.cache.get_or_create(key, lambda k: CachedObject(k, CACHED_OBJECT_SIZE)).access()

        result = 0
        for buffer in short_lived:
            result += len(buffer)

        return time.perf_counter_ns() - start

    def _burst(self):
        generate_burst()
        self.bursts.increment()

    def _cleanup(self):
        removed = self.cache.cleanup(self.cache_ttl_sec)
        if removed > 0:
            self.evicted.increment(removed)
            print(f"  [Cleanup] Removed {removed} stale cache entries")

    def run_benchmark(self) -> Optional[MixedWorkloadResult]:
        print_banner("MIXED WORKLOAD BENCHMARK")
        print_runtime_info()
        print("\nSimulates a real application:")
        print("- Short-lived objects")
        print("- Long-lived cached objects")
        print("- Periodic load bursts")
        print("- Eviction of stale cache entries\n")

        print("Populating cache...")
        for i in range(LONG_LIVED_OBJECTS // 2):
            self.cache.put(CachedObject(f"cache_{i}", CACHED_OBJECT_SIZE))

        print(f"Starting {self.workers} workers...\n")
        config = RunConfig.for_duration(
            self.duration_sec,
            target_interval_nanos=OPERATION_INTERVAL_MS * NANOS_PER_MILLI,
            worker_count=self.workers,
            report_every_nanos=self.report_every_nanos,
        )

        background_stop = threading.Event()
        background = [
            _run_every("BurstGenerator", self.burst_interval_sec, self._burst, background_stop),
            _run_every("CacheCleanup", self.cleanup_interval_sec, self._cleanup, background_stop),
        ]

        gc_before = self.metrics.collect_gc_metrics()
        try:
            with GCPauseTracker() as tracker:
                run = self.driver.run(config, self.operation)
        finally:
            background_stop.set()
            for thread in background:
                thread.join()
        gc_delta = self.metrics.gc_delta(gc_before, self.metrics.collect_gc_metrics())

        if run.summary is None:
            print("No operations completed.")
            return None

        summary = run.summary
        print_banner("RESULTS")
        print(f"Total operations: {run.count:,}")
        print(f"Throughput: {run.rate_per_second:,.1f} ops/sec")
        print_latency_summary(summary, unit='us', label="Operation latency")
        print(f"\nFinal cache size: {len(self.cache):,} objects")
        print(f"Bursts: {self.bursts.value}, evicted entries: {self.evicted.value:,}")

        print_gc_stats(gc_delta, run.elapsed_seconds, tracker)
        print_memory_stats(self.metrics.collect_memory_metrics())
        print("=" * 60)

        scaled = summary.scaled(NANOS_PER_MICRO)
        return MixedWorkloadResult(
            workers=self.workers,
            duration_sec=run.elapsed_seconds,
            total_operations=run.count,
            throughput_ops_per_sec=run.rate_per_second,
            avg_us=scaled['mean'],
            p50_us=scaled['p50'],
            p95_us=scaled['p95'],
            p99_us=scaled['p99'],
            max_us=scaled['max'],
            final_cache_size=len(self.cache),
            bursts=self.bursts.value,
            evicted_entries=self.evicted.value,
            gc_pause_count=tracker.pause_count,
        )

    def _print_progress(self, snapshot: ProgressSnapshot):
        memory = self.metrics.collect_memory_metrics()
        print(f"[{snapshot.elapsed_seconds:3.0f} sec] Operations: {snapshot.total_count:,}, "
              f"Cache: {len(self.cache)} objects, Memory: {memory.rss_mb:,.0f} MB")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mixed short/long-lived object workload.")
    parser.add_argument("--duration", type=float, default=DURATION_SEC,
                        help="Run length in seconds.")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker count (defaults to the CPU count).")
    parser.add_argument("--report-every", type=float, default=REPORT_EVERY_SEC,
                        help="Progress report cadence in seconds (0 to disable).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    """Run mixed workload benchmark"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    benchmark = MixedWorkloadBenchmark(
        duration_sec=args.duration,
        workers=args.workers,
        report_every_sec=args.report_every,
    )
    with cancel_on_interrupt(benchmark.driver):
        result = benchmark.run_benchmark()

    if result is not None:
        print(f"\n✅ Mixed Workload Benchmark Complete! "
              f"{result.total_operations:,} operations on {result.workers} workers")
    return result


if __name__ == "__main__":
    main()
