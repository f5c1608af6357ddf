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
Sample Recorder
================================================================================
Purpose: Append-only store of integer samples shared by workload workers
"""

import logging
import threading
from contextlib import nullcontext
from typing import List

_LOGGER = logging.getLogger(__name__)


class SampleRecorder:
    """
    Growable store of samples (nanosecond latencies or operation counts)

    Samples keep insertion order. Every mutation goes through record(),
    which holds the lock for the single append only, so concurrent workers
    never lose or duplicate a sample.

    Example:
        >>> recorder = SampleRecorder()
        >>> recorder.record(1_250)
        >>> recorder.drain_sorted()
        [1250]
    """

    def __init__(self, thread_safe: bool = True):
        """
        Initialize an empty recorder

        Args:
            thread_safe: Guard appends with a lock. Disable only when a
                single thread records.
        """
        self._samples: List[int] = []
        self._thread_safe = thread_safe
        # reentrant: a gc callback may record while this thread holds the lock
        self._lock = threading.RLock() if thread_safe else nullcontext()
        self._total = 0

    @property
    def thread_safe(self) -> bool:
        return self._thread_safe

    def record(self, sample: int):
        """Append one sample"""
        with self._lock:
            self._samples.append(sample)
            self._total += sample

    def size(self) -> int:
        """Number of samples held, read under the append lock"""
        with self._lock:
            return len(self._samples)

    def snapshot_count(self) -> int:
        """
        Number of samples held, read without taking the lock

        Used by progress reporting so it never contends with record().
        """
        return len(self._samples)

    def total(self) -> int:
        """Sum of all samples held"""
        with self._lock:
            return self._total

    def snapshot(self) -> List[int]:
        """Point-in-time copy in insertion order"""
        with self._lock:
            return list(self._samples)

    def drain_sorted(self) -> List[int]:
        """
        Point-in-time copy sorted ascending

        The live store is left untouched; samples recorded after the copy
        is taken show up in the next call.
        """
        with self._lock:
            copy = list(self._samples)
        copy.sort()
        return copy

    def clear(self):
        """Discard all samples, e.g. after a warm-up phase"""
        with self._lock:
            dropped = len(self._samples)
            self._samples = []
            self._total = 0
        _LOGGER.debug("Cleared %d samples", dropped)

    def __len__(self):
        return self.snapshot_count()

    def __repr__(self):
        return f"SampleRecorder(size={self.snapshot_count()}, thread_safe={self._thread_safe})"
