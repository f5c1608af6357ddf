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
Memory Leak Demo - Ever-Growing Session Store
================================================================================
Leak: every new user session is appended to a long-lived collection and
never removed, so memory grows until the process runs out of it.

Fix (--fixed):
1. Sessions expire after a TTL and are swept periodically
2. The store holds at most MAX_SESSIONS; the least recently accessed
   session is evicted when it is full

Both modes run for ~40 minutes by default. Ctrl+C stops the run cleanly
and prints the final status. Watch the process with `top`, or take
snapshots with tracemalloc to compare the two modes.
"""

import argparse
import random
import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, List, Optional

from runtime_bench.utils.console import cancel_on_interrupt, configure_logging, print_banner
from runtime_bench.utils.metrics_collector import BYTES_PER_MB, MetricsCollector
from runtime_bench.utils.periodic_reporter import ProgressSnapshot
from runtime_bench.utils.run_config import NANOS_PER_MILLI, NANOS_PER_SECOND, RunConfig
from runtime_bench.utils.workload_driver import RunResult, WorkloadDriver

RUN_DURATION_SEC = 40 * 60
SESSIONS_PER_TICK = 10
TICK_INTERVAL_MS = 100
SESSION_DATA_SIZE = 1024 * 1024     # 1MB per session
ACTIVITY_LOG_ENTRIES = 100

MAX_SESSIONS = 500
SESSION_TTL_SEC = 5 * 60
CLEANUP_INTERVAL_SEC = 30
REPORT_EVERY_SEC = 60


@dataclass
class SessionStats:
    """Session store counters"""
    active_sessions: int
    sessions_created: int
    sessions_removed: int
    allocated_mb: float

    def to_dict(self):
        return asdict(self)


class UserSession:
    """A user session carrying a data buffer and an activity log"""

    def __init__(self, session_id: str, data_size: int = SESSION_DATA_SIZE,
                 clock: Callable[[], float] = time.monotonic):
        self.session_id = session_id
        self._clock = clock
        self.created_at = clock()
        self.last_access_time = self.created_at
        self.session_data = bytearray(data_size)
        self.activity_log: List[str] = [
            f"Action_{random.randrange(1000)}_at_{self.created_at:.3f}"
            for _ in range(ACTIVITY_LOG_ENTRIES)
        ]

    def add_activity(self, activity: str):
        self.last_access_time = self._clock()
        self.activity_log.append(activity)

    def is_expired(self, ttl_sec: float) -> bool:
        return self._clock() - self.last_access_time > ttl_sec


class SessionStore:
    """
    Leaky store: sessions go in and never come out

    Nothing ever removes entries, so every session stays reachable for the
    lifetime of the store.
    """

    def __init__(self):
        self._sessions: List[UserSession] = []
        self._lock = threading.Lock()
        self.sessions_created = 0
        self.sessions_removed = 0
        self.bytes_allocated = 0

    def add(self, session: UserSession):
        with self._lock:
            self._sessions.append(session)
            self.sessions_created += 1
            self.bytes_allocated += len(session.session_data)

    def touch_random(self, activity: str) -> Optional[UserSession]:
        """Record activity on a randomly chosen session"""
        with self._lock:
            if not self._sessions:
                return None
            session = random.choice(self._sessions)
        session.add_activity(activity)
        return session

    def cleanup_expired(self) -> int:
        """No-op for the leaky store"""
        return 0

    def __len__(self):
        return len(self._sessions)

    def stats(self) -> SessionStats:
        return SessionStats(
            active_sessions=len(self._sessions),
            sessions_created=self.sessions_created,
            sessions_removed=self.sessions_removed,
            allocated_mb=self.bytes_allocated / BYTES_PER_MB,
        )


class BoundedSessionStore(SessionStore):
    """Fixed store: capacity limit with LRU eviction plus TTL expiry"""

    def __init__(self, max_sessions: int = MAX_SESSIONS, ttl_sec: float = SESSION_TTL_SEC):
        super().__init__()
        self.max_sessions = max_sessions
        self.ttl_sec = ttl_sec

    def add(self, session: UserSession):
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                self._remove_oldest()
            self._sessions.append(session)
            self.sessions_created += 1
            self.bytes_allocated += len(session.session_data)

    def _remove_oldest(self):
        """Evict the least recently accessed session; caller holds the lock"""
        if not self._sessions:
            return
        oldest = min(self._sessions, key=lambda s: s.last_access_time)
        self._sessions.remove(oldest)
        self.sessions_removed += 1

    def cleanup_expired(self) -> int:
        """Remove sessions idle for longer than the TTL"""
        with self._lock:
            alive = [s for s in self._sessions if not s.is_expired(self.ttl_sec)]
            removed = len(self._sessions) - len(alive)
            self._sessions = alive
            self.sessions_removed += removed
        return removed


class SessionWorkload:
    """Unit of work: a tick of new users plus activity on existing sessions"""

    def __init__(self, store: SessionStore, sessions_per_tick: int = SESSIONS_PER_TICK,
                 session_size: int = SESSION_DATA_SIZE,
                 cleanup_interval_sec: float = CLEANUP_INTERVAL_SEC):
        self.store = store
        self.sessions_per_tick = sessions_per_tick
        self.session_size = session_size
        self.cleanup_interval_sec = cleanup_interval_sec
        self._next_id = 0
        self._last_cleanup = time.monotonic()

    def __call__(self) -> int:
        for _ in range(self.sessions_per_tick):
            session = UserSession(f"SESSION_{self._next_id}", self.session_size)
            self._next_id += 1
            self.store.add(session)
            self.store.touch_random(f"Activity at {time.time():.3f}")

        now = time.monotonic()
        if now - self._last_cleanup >= self.cleanup_interval_sec:
            removed = self.store.cleanup_expired()
            if removed > 0:
                print(f"🧹 Cleanup: removed {removed} expired sessions")
            self._last_cleanup = now

        return self.sessions_per_tick


class MemoryLeakDemo:
    def __init__(self, fixed: bool = False, duration_sec: float = RUN_DURATION_SEC,
                 session_size: int = SESSION_DATA_SIZE, max_sessions: int = MAX_SESSIONS,
                 report_every_sec: float = REPORT_EVERY_SEC):
        self.fixed = fixed
        self.duration_sec = duration_sec
        self.store = BoundedSessionStore(max_sessions) if fixed else SessionStore()
        self.workload = SessionWorkload(self.store, session_size=session_size)
        self.report_every_nanos = int(report_every_sec * NANOS_PER_SECOND)
        self.metrics = MetricsCollector()
        self.driver = WorkloadDriver(on_snapshot=self._print_progress)

    def run(self) -> RunResult:
        mode = "FIXED (bounded store)" if self.fixed else "LEAK (unbounded store)"
        print_banner(f"MEMORY LEAK DEMO - {mode}")
        print(f"Runs for {self.duration_sec / 60:.0f} minutes or until interrupted.")
        if self.fixed:
            print(f"✓ Sessions expire after {SESSION_TTL_SEC // 60} minutes")
            print(f"✓ At most {self.store.max_sessions} sessions are kept")
        else:
            print("⚠️  Sessions are never removed: expect memory to grow until exhausted")
        print("\nCreating sessions...\n")

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
            print("\nCause: the session store kept growing and was never cleaned up.")
            raise

        if result.cancelled:
            print("\nRun interrupted by user.")
        else:
            print(f"\n✓ Ran for the full {self.duration_sec / 60:.0f} minutes without running out of memory.")
        print("\nFinal statistics:")
        self.print_status(result.elapsed_seconds)
        return result

    def print_status(self, elapsed_seconds: float):
        stats = self.store.stats()
        memory = self.metrics.collect_memory_metrics()
        limit = f" / {self.store.max_sessions} (max)" if self.fixed else ""
        print("┌" + "─" * 58 + "┐")
        print(f"│ Uptime:             {elapsed_seconds / 60:>10.1f} minutes")
        print(f"│ Active sessions:    {stats.active_sessions:>10,}{limit}")
        print(f"│ Sessions created:   {stats.sessions_created:>10,}")
        print(f"│ Sessions removed:   {stats.sessions_removed:>10,}")
        print(f"│ Data allocated:     {stats.allocated_mb:>10,.0f} MB")
        print("├" + "─" * 58 + "┤")
        print(f"│ Process RSS:        {memory.rss_mb:>10,.0f} MB ({memory.memory_percent:.1f}%)")
        print(f"│ System available:   {memory.system_available_mb:>10,.0f} MB")
        print("└" + "─" * 58 + "┘")
        print()

    def _print_progress(self, snapshot: ProgressSnapshot):
        self.print_status(snapshot.elapsed_seconds)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Session-store memory leak and its fix.")
    parser.add_argument("--fixed", action="store_true", help="Use the bounded session store.")
    parser.add_argument("--duration", type=float, default=RUN_DURATION_SEC,
                        help="Run length in seconds.")
    parser.add_argument("--session-kb", type=int, default=SESSION_DATA_SIZE // 1024,
                        help="Data buffer per session in KB.")
    parser.add_argument("--max-sessions", type=int, default=MAX_SESSIONS,
                        help="Capacity of the bounded store.")
    parser.add_argument("--report-every", type=float, default=REPORT_EVERY_SEC,
                        help="Status report cadence in seconds (0 to disable).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    demo = MemoryLeakDemo(
        fixed=args.fixed,
        duration_sec=args.duration,
        session_size=args.session_kb * 1024,
        max_sessions=args.max_sessions,
        report_every_sec=args.report_every,
    )
    with cancel_on_interrupt(demo.driver):
        return demo.run()


if __name__ == "__main__":
    main()
