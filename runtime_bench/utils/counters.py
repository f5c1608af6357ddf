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
Atomic Counter
================================================================================
Purpose: Shared counter passed explicitly to worker threads
"""

import threading


class AtomicCounter:
    """
    Integer counter safe to share between threads

    Replaces process-wide tallies: create one per run and hand it to
    every worker that needs it.
    """

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """Add amount and return the new value"""
        with self._lock:
            self._value += amount
            return self._value

    def try_claim(self, limit: int) -> bool:
        """
        Claim one unit if the counter is still below limit

        Args:
            limit: Total number of units available

        Returns:
            True if a unit was claimed, False once the budget is spent
        """
        with self._lock:
            if self._value >= limit:
                return False
            self._value += 1
            return True

    @property
    def value(self) -> int:
        return self._value

    def reset(self):
        with self._lock:
            self._value = 0

    def __repr__(self):
        return f"AtomicCounter({self._value})"
