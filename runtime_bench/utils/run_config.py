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
Run Configuration
================================================================================
Purpose: Immutable description of one measurement run
"""

from dataclasses import dataclass, asdict

from runtime_bench.utils.errors import ConfigurationError

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000
NANOS_PER_MICRO = 1_000


@dataclass(frozen=True)
class RunConfig:
    """
    Budget, pacing and concurrency for one harness invocation

    Exactly one of duration_seconds / iteration_count must be non-zero.

    Attributes:
        duration_seconds: Wall-clock budget (0 = use iteration_count)
        iteration_count: Total invocations across all workers (0 = use duration)
        target_interval_nanos: Fixed inter-arrival spacing per worker (0 = unthrottled)
        worker_count: Number of concurrent workers sharing one recorder
        report_every_nanos: Progress snapshot cadence (0 = no snapshots)
    """
    duration_seconds: float = 0
    iteration_count: int = 0
    target_interval_nanos: int = 0
    worker_count: int = 1
    report_every_nanos: int = 0

    @classmethod
    def for_duration(cls, seconds: float, **kwargs) -> "RunConfig":
        return cls(duration_seconds=seconds, **kwargs)

    @classmethod
    def for_iterations(cls, count: int, **kwargs) -> "RunConfig":
        return cls(iteration_count=count, **kwargs)

    @property
    def duration_nanos(self) -> int:
        return int(self.duration_seconds * NANOS_PER_SECOND)

    @property
    def is_duration_bound(self) -> bool:
        return self.duration_seconds > 0

    @property
    def is_paced(self) -> bool:
        return self.target_interval_nanos > 0

    def validate(self):
        """
        Check the configuration before a run starts

        Raises:
            ConfigurationError: If the budget is ambiguous or a field is out of range
        """
        if self.duration_seconds < 0 or self.iteration_count < 0:
            raise ConfigurationError("duration_seconds and iteration_count must not be negative")
        if self.target_interval_nanos < 0:
            raise ConfigurationError("target_interval_nanos must not be negative")
        if self.report_every_nanos < 0:
            raise ConfigurationError("report_every_nanos must not be negative")
        if self.duration_seconds == 0 and self.iteration_count == 0:
            raise ConfigurationError(
                "no budget: set either duration_seconds or iteration_count"
            )
        if self.duration_seconds > 0 and self.iteration_count > 0:
            raise ConfigurationError(
                "ambiguous budget: set only one of duration_seconds and iteration_count"
            )
        if self.worker_count < 1:
            raise ConfigurationError(f"worker_count must be >= 1, got {self.worker_count}")

    def to_dict(self):
        return asdict(self)
