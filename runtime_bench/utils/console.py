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
Console Output
================================================================================
Purpose: Shared report printing for the benchmark and demo programs
"""

import gc
import logging
import platform
import signal
import threading
from contextlib import contextmanager

from runtime_bench.utils.metrics_collector import GCMetrics, GCPauseTracker, MemoryMetrics
from runtime_bench.utils.percentiles import PercentileSummary
from runtime_bench.utils.run_config import NANOS_PER_MICRO, NANOS_PER_MILLI

WIDTH = 60

UNITS = {
    'us': (NANOS_PER_MICRO, 'μs'),
    'ms': (NANOS_PER_MILLI, 'ms'),
}


def configure_logging(verbose: bool = False):
    """Console logging for the demo entry points"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def print_banner(title: str):
    print(f"\n{'='*WIDTH}")
    print(title)
    print(f"{'='*WIDTH}")


def print_runtime_info():
    """Interpreter and collector configuration, printed at program start"""
    print(f"Python: {platform.python_implementation()} {platform.python_version()}")
    print(f"GC enabled: {gc.isenabled()}, thresholds: {gc.get_threshold()}")


def print_latency_summary(summary: PercentileSummary, unit: str = 'us', label: str = "Latency"):
    """
    Print mean, percentiles and max

    Args:
        summary: Summary over nanosecond samples
        unit: 'us' or 'ms'
        label: Heading for the block
    """
    divisor, suffix = UNITS[unit]
    figures = summary.scaled(divisor)
    print(f"\n{label}:")
    print(f"  avg:  {figures['mean']:>12,.2f} {suffix}")
    print(f"  p50:  {figures['p50']:>12,.2f} {suffix}")
    print(f"  p90:  {figures['p90']:>12,.2f} {suffix}")
    print(f"  p95:  {figures['p95']:>12,.2f} {suffix}")
    print(f"  p99:  {figures['p99']:>12,.2f} {suffix}")
    print(f"  p999: {figures['p999']:>12,.2f} {suffix}")
    print(f"  max:  {figures['max']:>12,.2f} {suffix}")


def print_threshold_count(summary: PercentileSummary, threshold_ns: int, label: str):
    count = summary.threshold_exceed_count(threshold_ns)
    print(f"{label}: {count:,} ({summary.threshold_exceed_ratio(threshold_ns) * 100:.3f}%)")
    return count


def print_memory_stats(metrics: MemoryMetrics):
    print("\nMemory usage:")
    print(f"  RSS:       {metrics.rss_mb:>10,.1f} MB ({metrics.memory_percent:.1f}%)")
    print(f"  Virtual:   {metrics.vms_mb:>10,.1f} MB")
    print(f"  Available: {metrics.system_available_mb:>10,.1f} MB of {metrics.system_total_mb:,.0f} MB")


def print_gc_stats(delta: GCMetrics, elapsed_seconds: float, tracker: GCPauseTracker = None):
    """
    Print collector activity over a run

    Args:
        delta: Counters accumulated during the run (MetricsCollector.gc_delta)
        elapsed_seconds: Run length, for frequencies and overhead
        tracker: Optional pause tracker active during the run
    """
    print("\nGC statistics:")
    for generation, count in enumerate(delta.collections):
        rate = count / elapsed_seconds if elapsed_seconds > 0 else 0.0
        print(f"  Generation {generation}: {count:>8,} collections ({rate:.2f}/sec)")
    print(f"  Objects collected: {delta.collected:,}")

    if tracker is None:
        return
    pauses = tracker.summary()
    if pauses is None:
        print("  No collector pauses observed")
        return

    total_ms = pauses.total / NANOS_PER_MILLI
    overhead = total_ms / (elapsed_seconds * 1000) * 100 if elapsed_seconds > 0 else 0.0
    print(f"  Pauses: {pauses.count:,}, total {total_ms:,.2f} ms")
    print(f"  Average pause: {pauses.mean / NANOS_PER_MILLI:.3f} ms, "
          f"max {pauses.max / NANOS_PER_MILLI:.3f} ms")
    print(f"  GC overhead: {overhead:.2f}%")
    print(f"  Throughput: {100 - overhead:.2f}% (time outside GC)")


@contextmanager
def cancel_on_interrupt(driver):
    """
    Turn Ctrl+C into a cooperative WorkloadDriver.cancel()

    The previous SIGINT handler is restored on exit. Outside the main
    thread signals cannot be handled, so this does nothing there.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        print("\nInterrupted, stopping workers...")
        driver.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
