"""Unit tests for SampleRecorder and AtomicCounter."""

import threading

import pytest

from runtime_bench.utils.counters import AtomicCounter
from runtime_bench.utils.sample_recorder import SampleRecorder


class TestSampleRecorder:
    """Test recording, snapshots and draining."""

    def test_starts_empty(self):
        recorder = SampleRecorder()

        assert recorder.size() == 0
        assert recorder.snapshot_count() == 0
        assert recorder.drain_sorted() == []

    def test_record_and_size(self):
        recorder = SampleRecorder()
        for value in (30, 10, 20):
            recorder.record(value)

        assert recorder.size() == 3
        assert recorder.snapshot_count() == 3
        assert len(recorder) == 3
        assert recorder.total() == 60

    def test_snapshot_keeps_insertion_order(self):
        recorder = SampleRecorder()
        for value in (30, 10, 20):
            recorder.record(value)

        assert recorder.snapshot() == [30, 10, 20]

    def test_drain_sorted_does_not_mutate_live_store(self):
        recorder = SampleRecorder()
        for value in (30, 10, 20):
            recorder.record(value)

        assert recorder.drain_sorted() == [10, 20, 30]
        assert recorder.snapshot() == [30, 10, 20]
        assert recorder.size() == 3

    def test_drain_reflects_later_records(self):
        recorder = SampleRecorder()
        recorder.record(5)
        first = recorder.drain_sorted()
        recorder.record(1)

        assert first == [5]
        assert recorder.drain_sorted() == [1, 5]

    def test_clear(self):
        recorder = SampleRecorder()
        recorder.record(1)
        recorder.record(2)
        recorder.clear()

        assert recorder.size() == 0
        assert recorder.total() == 0
        assert recorder.drain_sorted() == []

    def test_not_thread_safe_mode(self):
        recorder = SampleRecorder(thread_safe=False)
        recorder.record(7)

        assert recorder.thread_safe is False
        assert recorder.drain_sorted() == [7]

    def test_concurrent_records_are_not_lost(self):
        """4 threads x N records gives exactly 4*N samples."""
        recorder = SampleRecorder()
        per_thread = 5_000
        barrier = threading.Barrier(4)

        def worker(offset):
            barrier.wait()
            for i in range(per_thread):
                recorder.record(offset + i)

        threads = [threading.Thread(target=worker, args=(n * per_thread,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert recorder.size() == 4 * per_thread
        assert recorder.drain_sorted() == list(range(4 * per_thread))

    def test_per_thread_order_preserved(self):
        recorder = SampleRecorder()

        def worker(tag):
            for i in range(1000):
                recorder.record(tag * 10_000 + i)

        threads = [threading.Thread(target=worker, args=(tag,)) for tag in (1, 2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = recorder.snapshot()
        for tag in (1, 2):
            mine = [s for s in snapshot if s // 10_000 == tag]
            assert mine == sorted(mine)


class TestAtomicCounter:
    """Test the shared counter."""

    def test_increment(self):
        counter = AtomicCounter()

        assert counter.increment() == 1
        assert counter.increment(5) == 6
        assert counter.value == 6

    def test_try_claim_stops_at_limit(self):
        counter = AtomicCounter()
        claims = [counter.try_claim(3) for _ in range(5)]

        assert claims == [True, True, True, False, False]
        assert counter.value == 3

    def test_reset(self):
        counter = AtomicCounter(10)
        counter.reset()

        assert counter.value == 0

    def test_concurrent_claims_never_overshoot(self):
        counter = AtomicCounter()
        claimed = AtomicCounter()

        def worker():
            while counter.try_claim(10_000):
                claimed.increment()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert claimed.value == 10_000
        assert counter.value == 10_000


@pytest.mark.parametrize("thread_safe", [True, False])
def test_repr_mentions_size(thread_safe):
    recorder = SampleRecorder(thread_safe=thread_safe)
    recorder.record(1)

    assert "size=1" in repr(recorder)
