"""Tests for the delay buffer."""

import pytest

from axolemma.delay_buffer import DelayBuffer

STEP = 0.125


def _filled(count: int, step: float = STEP) -> DelayBuffer:
    buffer = DelayBuffer(1.0, step)
    for value in range(count):
        buffer.add_value(float(value), step)
    return buffer


def test_capacity_from_max_delay():
    assert DelayBuffer(1.0, STEP).num_entries == 8


def test_empty_buffer_returns_zero():
    buffer = DelayBuffer(1.0, STEP)
    assert buffer.get_delayed_value(0.25) == 0.0


def test_clear_then_query_returns_zero():
    buffer = _filled(5)
    buffer.clear()
    assert buffer.filling
    assert len(buffer) == 0
    assert buffer.get_delayed_value(0.125) == 0.0


@pytest.mark.parametrize("max_delay,min_step", [(0, 0.1), (1.0, 0), (-1.0, 0.1)])
def test_invalid_sizing(max_delay, min_step):
    with pytest.raises(ValueError):
        DelayBuffer(max_delay, min_step)


class TestEqualDurations:
    def test_recent_values(self):
        buffer = _filled(6)
        assert buffer.all_durations_equal
        assert buffer.get_delayed_value(STEP) == 5.0
        assert buffer.get_delayed_value(2 * STEP) == 4.0
        assert buffer.get_delayed_value(3 * STEP) == 3.0

    def test_zero_delay_reads_latest(self):
        assert _filled(3).get_delayed_value(0.0) == 2.0

    def test_delay_past_data_reads_oldest(self):
        assert _filled(3).get_delayed_value(10.0) == 0.0

    def test_wraps_around(self):
        buffer = _filled(12)
        assert not buffer.filling
        assert len(buffer) == 7
        assert buffer.get_delayed_value(STEP) == 11.0
        assert buffer.get_delayed_value(3 * STEP) == 9.0
        assert buffer.get_delayed_value(7 * STEP) == 5.0
        # Oldest surviving value once the request reaches past the data.
        assert buffer.get_delayed_value(100.0) == 5.0


class TestVaryingDurations:
    def _buffer(self) -> DelayBuffer:
        buffer = DelayBuffer(1.0, STEP)
        buffer.add_value(1.0, 0.125)
        buffer.add_value(2.0, 0.25)
        buffer.add_value(3.0, 0.125)
        return buffer

    def test_flag_cleared(self):
        assert not self._buffer().all_durations_equal

    def test_walks_back_by_duration(self):
        buffer = self._buffer()
        assert buffer.get_delayed_value(0.125) == 3.0
        assert buffer.get_delayed_value(0.3) == 2.0
        assert buffer.get_delayed_value(10.0) == 1.0

    def test_flag_restored_after_full_ring_of_equal_steps(self):
        buffer = self._buffer()
        for _ in range(buffer.num_entries):
            buffer.add_value(0.0, 0.125)
        assert buffer.all_durations_equal


def test_copy_is_independent():
    buffer = _filled(4)
    clone = buffer.copy()
    buffer.add_value(99.0, STEP)
    assert clone.get_delayed_value(STEP) == 3.0
    assert buffer.get_delayed_value(STEP) == 99.0
