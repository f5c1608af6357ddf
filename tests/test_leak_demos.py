"""Tests for the session-store and listener leak demos."""

import gc
import weakref

from runtime_bench.listener_leak_demo import (
    PROCESSORS_PER_TICK,
    DataProcessor,
    EventBus,
    ListenerWorkload,
)
from runtime_bench.memory_leak_demo import (
    BoundedSessionStore,
    SessionStore,
    SessionWorkload,
    UserSession,
)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def make_session(session_id, clock, size=16):
    return UserSession(session_id, data_size=size, clock=clock)


class TestSessionStore:
    """Leaky store versus the bounded store."""

    def test_leaky_store_never_shrinks(self):
        clock = FakeClock()
        store = SessionStore()
        for i in range(20):
            store.add(make_session(f"S{i}", clock))
        clock.now = 10_000.0

        assert store.cleanup_expired() == 0
        assert len(store) == 20
        assert store.stats().sessions_removed == 0

    def test_bounded_store_evicts_least_recently_accessed(self):
        clock = FakeClock()
        store = BoundedSessionStore(max_sessions=3, ttl_sec=60)
        sessions = []
        for i in range(3):
            clock.now = float(i)
            session = make_session(f"S{i}", clock)
            store.add(session)
            sessions.append(session)

        clock.now = 10.0
        sessions[0].add_activity("keep me")
        clock.now = 11.0
        store.add(make_session("S3", clock))

        ids = {s.session_id for s in store._sessions}
        assert ids == {"S0", "S2", "S3"}
        assert store.stats().sessions_removed == 1
        assert len(store) == 3

    def test_bounded_store_expires_idle_sessions(self):
        clock = FakeClock()
        store = BoundedSessionStore(max_sessions=10, ttl_sec=5)
        old = make_session("old", clock)
        store.add(old)
        clock.now = 4.0
        store.add(make_session("fresh", clock))

        clock.now = 6.0
        removed = store.cleanup_expired()

        assert removed == 1
        assert [s.session_id for s in store._sessions] == ["fresh"]
        assert store.stats().sessions_removed == 1

    def test_stats_track_allocation(self):
        clock = FakeClock()
        store = SessionStore()
        store.add(make_session("a", clock, size=1024 * 1024))
        store.add(make_session("b", clock, size=1024 * 1024))

        stats = store.stats()

        assert stats.allocated_mb == 2.0
        assert stats.to_dict()['active_sessions'] == 2

    def test_touch_random_on_empty_store(self):
        assert SessionStore().touch_random("nothing") is None

    def test_workload_adds_sessions_per_tick(self):
        store = BoundedSessionStore(max_sessions=15)
        workload = SessionWorkload(store, sessions_per_tick=10, session_size=16)

        assert workload() == 10
        assert workload() == 10
        assert len(store) == 15
        assert store.stats().sessions_created == 20


class TestEventBus:
    """Subscriptions and the listener workload."""

    def test_publish_reaches_subscribers(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)
        bus.subscribe(received.append)

        assert bus.publish("hello") == 2
        assert received == ["hello", "hello"]

    def test_cancel_is_idempotent(self):
        bus = EventBus()
        subscription = bus.subscribe(lambda event: None)

        subscription.cancel()
        subscription.cancel()

        assert not subscription.active
        assert bus.listener_count == 0

    def test_subscription_context_manager(self):
        bus = EventBus()
        with bus.subscribe(lambda event: None):
            assert bus.listener_count == 1
        assert bus.listener_count == 0

    def test_closed_processor_is_collectable(self):
        bus = EventBus()
        with DataProcessor("P", bus, buffer_size=16) as processor:
            bus.publish("event")
            assert processor.processed_events == ["event"]
            ref = weakref.ref(processor)
        del processor
        gc.collect()

        assert ref() is None
        assert bus.listener_count == 0

    def test_leaky_workload_accumulates_listeners(self):
        bus = EventBus()
        workload = ListenerWorkload(bus, fixed=False, buffer_size=16)

        workload()
        workload()

        assert bus.listener_count == 2 * PROCESSORS_PER_TICK
        assert workload.processors_created == 2 * PROCESSORS_PER_TICK
        assert workload.processors_closed == 0

    def test_fixed_workload_leaves_no_listeners(self):
        bus = EventBus()
        workload = ListenerWorkload(bus, fixed=True, buffer_size=16)

        assert workload() == PROCESSORS_PER_TICK
        assert bus.listener_count == 0
        assert workload.processors_closed == PROCESSORS_PER_TICK
