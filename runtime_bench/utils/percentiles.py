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
Percentile Reducer
================================================================================
Purpose: Reduce a finished sample set into mean, percentiles and threshold counts

Percentiles use truncating rank lookup without interpolation:

    index = floor(count * quantile), clamped to [0, count - 1]

so for [1..10] p50 is the 6th value (6) and p90 the 10th (10).
"""

import math
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Dict, Iterable, Sequence, Tuple

from runtime_bench.utils.errors import EmptySampleSetError

# Quantiles reported in every summary
QUANTILES = {
    'p50': 0.50,
    'p90': 0.90,
    'p95': 0.95,
    'p99': 0.99,
    'p999': 0.999,
}


def percentile_index(count: int, quantile: float) -> int:
    """
    Rank of the sample reported for a quantile

    Args:
        count: Number of samples (must be > 0)
        quantile: Fraction in [0, 1]

    Returns:
        floor(count * quantile) clamped to a valid index
    """
    if count <= 0:
        raise EmptySampleSetError()
    index = math.floor(count * quantile)
    return min(max(index, 0), count - 1)


@dataclass(frozen=True)
class PercentileSummary:
    """
    Read-only statistics over a sorted copy of the samples

    Attributes:
        count: Number of samples
        mean: Exact sum divided by count
        min: Smallest sample
        p50, p90, p95, p99, p999: Truncating-rank percentiles
        max: Largest sample
        total: Sum of all samples
    """
    count: int
    mean: float
    min: int
    p50: int
    p90: int
    p95: int
    p99: int
    p999: int
    max: int
    total: int
    sorted_samples: Tuple[int, ...] = field(default=(), repr=False, compare=False)

    def percentile(self, quantile: float) -> int:
        """Sample at an arbitrary quantile using the same rank rule"""
        return self.sorted_samples[percentile_index(self.count, quantile)]

    def threshold_exceed_count(self, threshold: int) -> int:
        """Number of samples strictly greater than threshold"""
        return self.count - bisect_right(self.sorted_samples, threshold)

    def threshold_exceed_ratio(self, threshold: int) -> float:
        """Fraction of samples strictly greater than threshold"""
        return self.threshold_exceed_count(threshold) / self.count

    def scaled(self, divisor: float) -> Dict[str, float]:
        """Headline figures divided by a unit, e.g. 1_000 for microseconds"""
        return {
            'mean': self.mean / divisor,
            'min': self.min / divisor,
            **{name: getattr(self, name) / divisor for name in QUANTILES},
            'max': self.max / divisor,
        }

    def to_dict(self) -> Dict:
        return {
            'count': self.count,
            'mean': self.mean,
            'min': self.min,
            **{name: getattr(self, name) for name in QUANTILES},
            'max': self.max,
            'total': self.total,
        }


def summarize(samples: Iterable[int]) -> PercentileSummary:
    """
    Compute a PercentileSummary

    The input is never modified; a sorted copy is taken (already sorted
    input such as SampleRecorder.drain_sorted() is fine too).

    Args:
        samples: Sample values in any order

    Returns:
        PercentileSummary over the samples

    Raises:
        EmptySampleSetError: If samples is empty
    """
    ordered: Sequence[int] = tuple(sorted(samples))
    count = len(ordered)
    if count == 0:
        raise EmptySampleSetError()

    # Python ints do not overflow, so the sum is exact
    total = sum(ordered)

    return PercentileSummary(
        count=count,
        mean=total / count,
        min=ordered[0],
        max=ordered[-1],
        total=total,
        sorted_samples=ordered,
        **{name: ordered[percentile_index(count, q)] for name, q in QUANTILES.items()},
    )
