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
Listener Leak Demo - Forgotten Subscriptions
================================================================================
Leak: every DataProcessor subscribes to a long-lived EventBus and never
unsubscribes. The bus keeps every processor (and its 10MB buffer)
reachable forever.

Fix (--fixed): EventBus.subscribe() returns a Subscription. The processor
owns it and cancels it in close(), and processors are used as context
managers so close() always runs.
"""

import argparse
import random
import threading
import time
from typing import Callable, List

from runtime_bench.utils.console import cancel_on_interrupt, configure_logging, print_banner
from runtime_bench.utils.metrics_collector import BYTES_PER_MB, MetricsCollector
from runtime_bench.utils.periodic_reporter import ProgressSnapshot
from runtime_bench.utils.run_config import NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.workload_driver import RunResult, WorkloadDriver

RUN_DURATION_SEC = 40 * 60
PROCESSORS_PER_TICK = 5
TICK_INTERVAL_MS = 200
PROCESSOR_BUFFER_SIZE = 10 * 1024 * 1024    # 10MB per processor
PERIODIC_EVENT_CHANCE = 0.1
REPORT_EVERY_SEC = 60

Listener = Callable[[str], None]


class Subscription:
    """
    Capability returned by EventBus.subscribe()

    Calling cancel() (or leaving the `with` block) removes the listener.
    Cancelling twice is harmless.
    """

    def __init__(self, bus: "EventBus", listener: Listener):
        self._bus = bus
        self._listener = listener
        self.active = True

    def cancel(self):
        if self.active:
            self._bus._unsubscribe(self._listener)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()


class EventBus:
    """Long-lived publisher holding strong references to its listeners"""

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def _unsubscribe(self, listener: Listener):
        with self._lock:
            self._listeners.remove(listener)

    def publish(self, event: str) -> int:
        """Deliver event to every listener; returns the number delivered"""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)
        return len(listeners)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class DataProcessor:
    """Listener that owns a large buffer"""

    def __init__(self, processor_id: str, bus: EventBus, buffer_size: int = PROCESSOR_BUFFER_SIZE):
        self.processor_id = processor_id
        self.buffer = bytearray(buffer_size)
        self.processed_events: List[str] = []
        self.subscription = bus.subscribe(self.on_event)

    def on_event(self, event: str):
        self.processed_events.append(event)

    def close(self):
        self.subscription.cancel()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ListenerWorkload:
    """Unit of work: create a handful of processors and publish an event"""

    def __init__(self, bus: EventBus, fixed: bool, buffer_size: int = PROCESSOR_BUFFER_SIZE):
        self.bus = bus
        self.fixed = fixed
        self.buffer_size = buffer_size
        self.processors_created = 0
        self.processors_closed = 0

    def _new_processor(self) -> DataProcessor:
        processor = DataProcessor(f"PROC_{self.processors_created}", self.bus, self.buffer_size)
        self.processors_created += 1
        return processor

    def __call__(self) -> int:
        for _ in range(PROCESSORS_PER_TICK):
            if self.fixed:
                with self._new_processor():
                    self.bus.publish(f"Event_{time.time():.3f}")
                self.processors_closed += 1
            else:
                # subscription is dropped on the floor: the bus keeps the processor alive
                self._new_processor()
                self.bus.publish(f"Event_{time.time():.3f}")

        if random.random() < PERIODIC_EVENT_CHANCE:
            self.bus.publish(f"Periodic_Event_{time.time():.3f}")

        return PROCESSORS_PER_TICK


class ListenerLeakDemo:
    def __init__(self, fixed: bool = False, duration_sec: float = RUN_DURATION_SEC,
                 buffer_size: int = PROCESSOR_BUFFER_SIZE,
                 report_every_sec: float = REPORT_EVERY_SEC):
        self.fixed = fixed
        self.duration_sec = duration_sec
        self.bus = EventBus()
        self.workload = ListenerWorkload(self.bus, fixed, buffer_size)
        self.report_every_nanos = int(report_every_sec * NANOS_PER_SECOND)
        self.metrics = MetricsCollector()
        self.driver = WorkloadDriver(on_snapshot=self._print_progress)

    def run(self) -> RunResult:
        mode = "FIXED (explicit unsubscribe)" if self.fixed else "LEAK (never unsubscribed)"
        print_banner(f"LISTENER LEAK DEMO - {mode}")
        if self.fixed:
            print("✓ subscribe() returns a Subscription that close() cancels")
            print("✓ Processors are used as context managers")
        else:
            print("⚠️  Processors never unsubscribe: the bus keeps them all alive")
        print("\nCreating processors...\n")

        config = RunConfig.for_duration(
            self.duration_sec,
            target_interval_nanos=TICK_INTERVAL_MS * NANOS_PER_MILLI,
            report_every_nanos=self.report_every_nanos,
        )

        try:
            result = self.driver.run(config, self.workload)
        except MemoryError:
            print("\n✗ MemoryError raised!")
            self.print_status(self.driver.elapsed_nanos / NANOS_PER_SECOND)
            print("\nCause: the event bus still references every processor ever created.")
            raise

        if result.cancelled:
            print("\nRun interrupted by user.")
        print("\nFinal statistics:")
        self.print_status(result.elapsed_seconds)
        return result

    def print_status(self, elapsed_seconds: float):
        memory = self.metrics.collect_memory_metrics()
        retained_mb = self.bus.listener_count * self.workload.buffer_size / BYTES_PER_MB
        print("┌" + "─" * 58 + "┐")
        print(f"│ Uptime:               {elapsed_seconds / 60:>10.1f} minutes")
        print(f"│ Processors created:   {self.workload.processors_created:>10,}")
        print(f"│ Processors closed:    {self.workload.processors_closed:>10,}")
        print(f"│ Active listeners:     {self.bus.listener_count:>10,}")
        print(f"│ Retained by the bus:  {retained_mb:>10,.0f} MB")
        print("├" + "─" * 58 + "┤")
        print(f"│ Process RSS:          {memory.rss_mb:>10,.0f} MB ({memory.memory_percent:.1f}%)")
        print("└" + "─" * 58 + "┘")
        print()

    def _print_progress(self, snapshot: ProgressSnapshot):
        self.print_status(snapshot.elapsed_seconds)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Event listener leak and its fix.")
    parser.add_argument("--fixed", action="store_true", help="Unsubscribe processors when done.")
    parser.add_argument("--duration", type=float, default=RUN_DURATION_SEC,
                        help="Run length in seconds.")
    parser.add_argument("--buffer-kb", type=int, default=PROCESSOR_BUFFER_SIZE // 1024,
                        help="Buffer owned by each processor in KB.")
    parser.add_argument("--report-every", type=float, default=REPORT_EVERY_SEC,
                        help="Status report cadence in seconds (0 to disable).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    demo = ListenerLeakDemo(
        fixed=args.fixed,
        duration_sec=args.duration,
        buffer_size=args.buffer_kb * 1024,
        report_every_sec=args.report_every,
    )
    with cancel_on_interrupt(demo.driver):
        return demo.run()


if __name__ == "__main__":
    main()
