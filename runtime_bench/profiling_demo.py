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
Profiling Demo - Hot Spots Before and After
================================================================================
Four deliberately slow routines, and their fixed counterparts, for practising
with a sampling profiler (e.g. `py-spy record --pid <PID>`):

1. String building with += in a loop        -> str.join
2. Membership tests against a list          -> set
3. The same math recomputed every iteration -> hoisted constant, bit ops
4. Dict walked by key with a second lookup  -> dict.values()

Each routine runs for a fixed number of rounds through the harness in
throughput mode; --compare runs both versions and prints the speedups.
"""

import argparse
import math
import os
import random
import time
from dataclasses import dataclass, asdict, field
from functools import partial
from typing import Callable, List, Optional

from runtime_bench.utils.console import cancel_on_interrupt, configure_logging, print_banner
from runtime_bench.utils.run_config import NANOS_PER_MILLI, RunConfig
from runtime_bench.utils.workload_driver import WorkloadDriver, timed

ROUNDS = 5
DATA_SIZE = 1000
COMPUTE_ITERATIONS = 100_000
START_DELAY_SEC = 5

SQRT_CONSTANT = math.sqrt(123.456)


class DataPoint:
    def __init__(self, point_id: int, value: float):
        self.point_id = point_id
        self.value = value


# Slow versions

def build_string_slow(size: int) -> int:
    result = ""
    for i in range(size):
        # every += copies the whole string built so far
        result += "Item_" + str(i) + ","
    return len(result)


def count_members_slow(size: int) -> int:
    numbers = []
    for i in range(size):
        numbers.append(i)

    found = 0
    for i in range(size // 10):
        if i * 2 in numbers:
            found += 1
    return found


def compute_slow(iterations: int) -> float:
    result = 0.0
    for i in range(iterations):
        value = math.sqrt(123.456)
        result += math.sin(value) * math.cos(value)
        if i % 2 == 0:
            result += i // 2
    return result


def sum_points_slow(size: int) -> float:
    data = {}
    for i in range(size):
        key = "".join(["key_", str(i)])
        data[key] = DataPoint(i, random.random())

    total = 0.0
    for key in data.keys():
        total += data[key].value
    return total


# Fixed versions

def build_string_fast(size: int) -> int:
    return len("".join(f"Item_{i}," for i in range(size)))


def count_members_fast(size: int) -> int:
    numbers = set(range(size))
    return sum(1 for i in range(size // 10) if i * 2 in numbers)


def compute_fast(iterations: int) -> float:
    product = math.sin(SQRT_CONSTANT) * math.cos(SQRT_CONSTANT)
    result = 0.0
    for i in range(iterations):
        result += product
        if not i & 1:
            result += i >> 1
    return result


def sum_points_fast(size: int) -> float:
    data = {f"key_{i}": DataPoint(i, random.random()) for i in range(size)}
    return sum(point.value for point in data.values())


@dataclass(frozen=True)
class Section:
    name: str
    description: str
    slow: Callable[[int], object]
    fast: Callable[[int], object]
    uses_iterations: bool = False


SECTIONS = [
    Section('strings', "String concatenation", build_string_slow, build_string_fast),
    Section('collections', "Membership lookups", count_members_slow, count_members_fast),
    Section('computation', "Redundant computation", compute_slow, compute_fast, uses_iterations=True),
    Section('objects', "Object map iteration", sum_points_slow, sum_points_fast),
]


@dataclass
class SectionTiming:
    name: str
    mean_ms: float
    p50_ms: float
    max_ms: float


@dataclass
class ProfilingResult:
    """Per-section round timings for one version of the application"""
    optimized: bool
    rounds: int
    sections: List[SectionTiming] = field(default_factory=list)
    total_ms: float = 0.0
    cancelled: bool = False

    def section(self, name: str) -> Optional[SectionTiming]:
        for timing in self.sections:
            if timing.name == name:
                return timing
        return None

    def to_dict(self):
        return asdict(self)


class ProfilingDemo:
    def __init__(self, optimized: bool = False, rounds: int = ROUNDS, data_size: int = DATA_SIZE,
                 iterations: int = COMPUTE_ITERATIONS, driver: Optional[WorkloadDriver] = None):
        self.optimized = optimized
        self.rounds = rounds
        self.data_size = data_size
        self.iterations = iterations
        self.driver = driver or WorkloadDriver()

    def run(self) -> ProfilingResult:
        label = "OPTIMIZED" if self.optimized else "SLOW"
        print_banner(f"PROFILING DEMO - {label} APPLICATION")
        result = ProfilingResult(optimized=self.optimized, rounds=self.rounds)

        for section in SECTIONS:
            fn = section.fast if self.optimized else section.slow
            argument = self.iterations if section.uses_iterations else self.data_size
            run = self.driver.run(RunConfig.for_iterations(self.rounds), timed(partial(fn, argument)))
            if run.summary is None:
                result.cancelled = True
                break

            timing = SectionTiming(
                name=section.name,
                mean_ms=run.summary.mean / NANOS_PER_MILLI,
                p50_ms=run.summary.p50 / NANOS_PER_MILLI,
                max_ms=run.summary.max / NANOS_PER_MILLI,
            )
            result.sections.append(timing)
            result.total_ms += run.summary.total / NANOS_PER_MILLI
            print(f"  {section.description:<24} {timing.mean_ms:>10,.3f} ms/round "
                  f"(max {timing.max_ms:,.3f} ms)")

            if run.cancelled:
                result.cancelled = True
                break

        print(f"\nTotal time: {result.total_ms:,.1f} ms over {self.rounds} rounds")
        return result


def print_comparison(slow: ProfilingResult, fast: ProfilingResult):
    print_banner("SPEEDUP")
    for section in SECTIONS:
        before, after = slow.section(section.name), fast.section(section.name)
        if before is None or after is None:
            continue
        speedup = before.mean_ms / after.mean_ms if after.mean_ms > 0 else float('inf')
        print(f"  {section.description:<24} {speedup:>8.1f}x")
    if fast.total_ms > 0:
        print(f"\n  Overall: {slow.total_ms / fast.total_ms:.1f}x faster")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Slow and fixed routines for profiler practice.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--optimized", action="store_true", help="Run the fixed routines.")
    mode.add_argument("--compare", action="store_true", help="Run both and print speedups.")
    parser.add_argument("--rounds", type=int, default=ROUNDS, help="Rounds per routine.")
    parser.add_argument("--data-size", type=int, default=DATA_SIZE,
                        help="Elements handled by the string, lookup and object routines.")
    parser.add_argument("--iterations", type=int, default=COMPUTE_ITERATIONS,
                        help="Loop length of the computation routine.")
    parser.add_argument("--delay", type=float, default=START_DELAY_SEC,
                        help="Seconds to wait for a profiler to attach.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None) -> List[ProfilingResult]:
    """Run the slow routines, the fixed ones, or both"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    print(f"PID: {os.getpid()}")
    if args.delay > 0:
        print(f"Attach a profiler now (e.g. py-spy record --pid {os.getpid()}); "
              f"starting in {args.delay:g} sec...")
        time.sleep(args.delay)

    driver = WorkloadDriver()
    versions = [False, True] if args.compare else [args.optimized]
    results = []
    with cancel_on_interrupt(driver):
        for optimized in versions:
            demo = ProfilingDemo(optimized, args.rounds, args.data_size, args.iterations, driver)
            results.append(demo.run())
            if results[-1].cancelled:
                break

    if args.compare and len(results) == 2:
        print_comparison(*results)
    return results


if __name__ == "__main__":
    main()
