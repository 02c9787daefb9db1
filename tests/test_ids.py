"""Tests for snowflake ID generation."""

import threading

import pytest

from memkeep.ids import DEFAULT_EPOCH_MS, MAX_NODE_ID, SEQUENCE_BITS, SnowflakeGenerator, get_generator


class FakeClock:
    def __init__(self, start_ms):
        self.now = start_ms

    def __call__(self):
        return self.now


class TestSnowflakeGenerator:
    def test_ids_strictly_increase(self):
        gen = SnowflakeGenerator()
        ids = [gen.generate() for _ in range(5000)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_layout(self):
        clock = FakeClock(DEFAULT_EPOCH_MS + 1000)
        gen = SnowflakeGenerator(node_id=5, clock=clock)

        first = gen.generate()
        second = gen.generate()

        assert first >> 22 == 1000
        assert (first >> SEQUENCE_BITS) & MAX_NODE_ID == 5
        assert first & ((1 << SEQUENCE_BITS) - 1) == 0
        assert second == first + 1

    def test_sequence_resets_on_new_millisecond(self):
        clock = FakeClock(DEFAULT_EPOCH_MS + 10)
        gen = SnowflakeGenerator(clock=clock)
        gen.generate()
        gen.generate()
        clock.now += 1
        assert gen.generate() & ((1 << SEQUENCE_BITS) - 1) == 0

    def test_clock_moving_backwards(self):
        clock = FakeClock(DEFAULT_EPOCH_MS + 1000)
        gen = SnowflakeGenerator(clock=clock)
        before = gen.generate()
        clock.now -= 500
        after = gen.generate()
        assert after > before

    def test_sequence_exhaustion_borrows_next_millisecond(self):
        clock = FakeClock(DEFAULT_EPOCH_MS + 1000)
        gen = SnowflakeGenerator(clock=clock)
        ids = [gen.generate() for _ in range((1 << SEQUENCE_BITS) + 10)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)
        assert ids[-1] >> 22 == 1001

    def test_thread_safety(self):
        gen = SnowflakeGenerator()
        results = []
        lock = threading.Lock()

        def worker():
            local = [gen.generate() for _ in range(1000)]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 8000

    @pytest.mark.parametrize("node_id", [-1, MAX_NODE_ID + 1])
    def test_invalid_node_id(self, node_id):
        with pytest.raises(ValueError):
            SnowflakeGenerator(node_id=node_id)


class TestSharedGenerator:
    def test_same_node_shares_generator(self):
        assert get_generator() is get_generator(1)
        assert get_generator(3) is get_generator(3)

    def test_nodes_are_separate(self):
        assert get_generator(4) is not get_generator(5)
        assert get_generator(5).node_id == 5
