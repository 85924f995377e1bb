"""Tests for synthetic attribute transforms and the seed-bound Stream."""

from datetime import datetime, timedelta, timezone

import pytest

from seed import derive_seed, next_value
from synth import (
    HOP_STRIDE,
    Stream,
    bounded_count,
    capped,
    interpolate_instant,
    linear,
    pick,
)

START = datetime(2021, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestTransforms:
    """Test the pure draw -> attribute transforms."""

    def test_linear_endpoints(self):
        assert linear(0.0, 10, 20) == 10
        assert linear(0.5, 10, 20) == 15

    def test_linear_rounding(self):
        assert linear(0.33333, 0, 1, 2) == 0.33

    def test_pick_indexes_by_floor(self):
        values = ["a", "b", "c", "d"]
        assert pick(0.0, values) == "a"
        assert pick(0.49, values) == "b"
        assert pick(0.999999, values) == "d"

    def test_pick_clamps_to_last(self):
        assert pick(1.0, ["a", "b"]) == "b"

    def test_pick_empty_raises(self):
        with pytest.raises(ValueError):
            pick(0.5, [])

    def test_bounded_count_range(self):
        assert bounded_count(0.0, 3) == 0
        assert bounded_count(0.999999, 3) == 3
        assert bounded_count(1.0, 3) == 3

    def test_bounded_count_non_positive_max(self):
        assert bounded_count(0.7, 0) == 0
        assert bounded_count(0.7, -2) == 0

    def test_capped(self):
        assert capped(120, 100) == 100
        assert capped(80, 100) == 80

    def test_interpolate_instant(self):
        assert interpolate_instant(0.0, START, END) == START
        assert interpolate_instant(0.5, START, END) == START + (END - START) / 2

    def test_interpolate_reversed_window_collapses_to_start(self):
        assert interpolate_instant(0.7, END, START) == END


class TestStream:
    """Test Stream draws per channel."""

    def test_for_key_uses_derived_seed(self):
        assert Stream.for_key("supplier", "SUP-001").seed == derive_seed("supplier", "SUP-001")

    def test_integer_channel_is_raw_offset(self):
        stream = Stream(1234)
        assert stream.draw(5) == next_value(1234, 5)

    def test_same_channel_same_value(self):
        stream = Stream.for_key("k")
        assert stream.draw("volume") == stream.draw("volume")

    def test_channels_independent(self):
        stream = Stream.for_key("k")
        assert stream.draw("volume") != stream.draw("confidence")

    def test_integer_inclusive_bounds(self):
        stream = Stream.for_key("ints")
        values = {stream.integer(f"n:{i}", 1, 3) for i in range(200)}
        assert values == {1, 2, 3}

    def test_uniform_in_range(self):
        stream = Stream.for_key("floats")
        for i in range(100):
            assert 0.3 <= stream.uniform(f"u:{i}", 0.3, 0.95, 2) <= 0.95

    def test_instant_ordered_pair(self):
        stream = Stream.for_key("instants")
        first = stream.instant("first", START, END)
        second = stream.instant("second", first, END)
        assert START <= first <= second <= END

    def test_hex_length_and_alphabet(self):
        value = Stream.for_key("hex").hex("id", 40)
        assert len(value) == 40
        assert set(value) <= set("0123456789abcdef")

    def test_hex_custom_length(self):
        assert len(Stream.for_key("hex").hex("cluster", 8)) == 8

    def test_sample_distinct(self):
        pool = list(range(10))
        picked = Stream.for_key("sample").sample("s", pool, 6)
        assert len(picked) == 6
        assert len(set(picked)) == 6
        assert set(picked) <= set(pool)

    def test_sample_caps_at_pool_size(self):
        assert sorted(Stream.for_key("sample").sample("s", ["a", "b"], 5)) == ["a", "b"]

    def test_sample_does_not_mutate_input(self):
        pool = ("a", "b", "c")
        Stream.for_key("sample").sample("s", pool, 3)
        assert pool == ("a", "b", "c")

    def test_distinct_picks_unique(self):
        pool = ["x", "y", "z", "w"]
        picked = Stream.for_key("distinct").distinct("d", pool, 4)
        assert sorted(picked) == sorted(pool)

    def test_distinct_zero(self):
        assert Stream.for_key("distinct").distinct("d", ["x"], 0) == []

    def test_child_differs_from_parent(self):
        parent = Stream.for_key("parent")
        child = parent.child("sub")
        assert child.seed == derive_seed(parent.seed, "sub")
        assert child.seed != parent.seed

    def test_at_hop_stride(self):
        stream = Stream(100)
        assert stream.at_hop(3).seed == 100 + 3 * HOP_STRIDE

    def test_stream_is_immutable(self):
        stream = Stream(1)
        with pytest.raises(AttributeError):
            stream.seed = 2
