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
Metrics Collector
================================================================================
Purpose: Collect interpreter memory and garbage-collector metrics that demo
programs report alongside harness results
"""

import gc
import os
import time
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional

import psutil

from runtime_bench.utils.percentiles import PercentileSummary, summarize
from runtime_bench.utils.sample_recorder import SampleRecorder

BYTES_PER_MB = 1024 * 1024


@dataclass
class MemoryMetrics:
    """Process and system memory figures"""
    timestamp: float
    rss_mb: float
    vms_mb: float
    memory_percent: float
    system_total_mb: float
    system_available_mb: float

    def to_dict(self):
        return asdict(self)


@dataclass
class GCMetrics:
    """Garbage collection counters per generation"""
    timestamp: float
    collections: List[int] = field(default_factory=list)
    collected: int = 0
    uncollectable: int = 0
    object_count: int = 0

    @property
    def total_collections(self) -> int:
        return sum(self.collections)

    def to_dict(self):
        return asdict(self)


class GCPauseTracker:
    """
    Times every collector run via gc.callbacks

    Each pause (start to stop callback) is recorded in nanoseconds into a
    SampleRecorder. start() returns the unsubscribe callable; the tracker
    also works as a context manager.

    Example:
        >>> with GCPauseTracker() as tracker:
        ...     run_workload()
        >>> print(tracker.summary().max)
    """

    def __init__(self, recorder: Optional[SampleRecorder] = None):
        self.recorder = recorder or SampleRecorder()
        self.pauses_by_generation = [0, 0, 0]
        self._pending: Dict[int, int] = {}
        self._installed = False

    def _callback(self, phase: str, info: Dict):
        generation = info.get('generation', 0)
        if phase == 'start':
            self._pending[generation] = time.perf_counter_ns()
        elif phase == 'stop':
            started = self._pending.pop(generation, None)
            if started is not None:
                self.recorder.record(time.perf_counter_ns() - started)
                if generation < len(self.pauses_by_generation):
                    self.pauses_by_generation[generation] += 1

    def start(self):
        """Subscribe to collector events and return the unsubscribe capability"""
        if not self._installed:
            gc.callbacks.append(self._callback)
            self._installed = True
        return self.stop

    def stop(self):
        if self._installed:
            gc.callbacks.remove(self._callback)
            self._installed = False

    @property
    def pause_count(self) -> int:
        return self.recorder.snapshot_count()

    @property
    def total_pause_ns(self) -> int:
        return self.recorder.total()

    def summary(self) -> Optional[PercentileSummary]:
        """Pause statistics, or None if no collection happened"""
        pauses = self.recorder.drain_sorted()
        return summarize(pauses) if pauses else None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


class MetricsCollector:
    """Collects memory and GC metrics for the current process"""

    def __init__(self):
        self.process = psutil.Process(os.getpid())
        self.memory_metrics: List[MemoryMetrics] = []
        self.gc_metrics: List[GCMetrics] = []

    def collect_memory_metrics(self) -> MemoryMetrics:
        """Collect current memory metrics"""
        memory_info = self.process.memory_info()
        system = psutil.virtual_memory()

        metrics = MemoryMetrics(
            timestamp=time.time(),
            rss_mb=memory_info.rss / BYTES_PER_MB,
            vms_mb=memory_info.vms / BYTES_PER_MB,
            memory_percent=self.process.memory_percent(),
            system_total_mb=system.total / BYTES_PER_MB,
            system_available_mb=system.available / BYTES_PER_MB,
        )

        self.memory_metrics.append(metrics)
        return metrics

    def collect_gc_metrics(self, count_objects: bool = False) -> GCMetrics:
        """
        Collect current GC counters

        Unlike a forced collection this only reads counters, so it does not
        disturb the workload being measured.

        Args:
            count_objects: Also count tracked objects (slow on large heaps)
        """
        stats = gc.get_stats()

        metrics = GCMetrics(
            timestamp=time.time(),
            collections=[s.get('collections', 0) for s in stats],
            collected=sum(s.get('collected', 0) for s in stats),
            uncollectable=sum(s.get('uncollectable', 0) for s in stats),
            object_count=len(gc.get_objects()) if count_objects else 0,
        )

        self.gc_metrics.append(metrics)
        return metrics

    @staticmethod
    def gc_delta(before: GCMetrics, after: GCMetrics) -> GCMetrics:
        """Counters accumulated between two collections of metrics"""
        return GCMetrics(
            timestamp=after.timestamp,
            collections=[a - b for a, b in zip(after.collections, before.collections)],
            collected=after.collected - before.collected,
            uncollectable=after.uncollectable - before.uncollectable,
            object_count=after.object_count,
        )

    def get_summary(self) -> Dict:
        """Get summary of collected metrics"""
        summary = {}

        if self.gc_metrics:
            summary['gc'] = {
                'total_collections': self.gc_metrics[-1].total_collections,
                'collections_by_generation': list(self.gc_metrics[-1].collections),
                'collected': self.gc_metrics[-1].collected,
            }

        if self.memory_metrics:
            summary['memory'] = {
                'avg_rss_mb': sum(m.rss_mb for m in self.memory_metrics) / len(self.memory_metrics),
                'max_rss_mb': max(m.rss_mb for m in self.memory_metrics),
                'last_rss_mb': self.memory_metrics[-1].rss_mb,
            }

        return summary

    def reset(self):
        """Reset collected metrics"""
        self.memory_metrics = []
        self.gc_metrics = []
