"""Tests for seed derivation and the seeded generator."""

import pytest

from seed import SEED_SEPARATOR, channel_offset, derive_seed, next_value


class TestDeriveSeed:
    """Test derive_seed() hashing of key parts."""

    def test_known_values(self):
        """djb2 starts at 5381 and multiplies by 33 per byte."""
        assert derive_seed() == 5381
        assert derive_seed("a") == 5381 * 33 + ord("a")
        assert derive_seed("a", "b") == (177670 * 33 + ord(SEED_SEPARATOR)) * 33 + ord("b")

    def test_deterministic(self):
        assert derive_seed("US", "finance") == derive_seed("US", "finance")

    def test_part_boundaries_matter(self):
        assert derive_seed("ab", "c") != derive_seed("a", "bc")

    def test_order_matters(self):
        assert derive_seed("US", "finance") != derive_seed("finance", "US")

    def test_none_renders_empty(self):
        assert derive_seed("US", None) == derive_seed("US", "")

    def test_non_string_parts(self):
        assert derive_seed(42) == derive_seed("42")

    def test_always_positive(self):
        keys = ["", "x", "0x" + "f" * 40, "SUP-001", "naïve café", "a" * 1000]
        for key in keys:
            seed = derive_seed(key)
            assert 1 <= seed <= 2 ** 31

    def test_unicode_hashes_utf8_bytes(self):
        assert derive_seed("é") == (5381 * 33 + 0xC3) * 33 + 0xA9


class TestChannelOffset:
    def test_matches_label_seed(self):
        assert channel_offset("risk_score") == derive_seed("risk_score")

    def test_distinct_labels_distinct_offsets(self):
        labels = ["score", "confidence", "volume", "tags", "first_seen"]
        assert len({channel_offset(label) for label in labels}) == len(labels)


class TestNextValue:
    """Test next_value() determinism and range."""

    def test_zero_maps_to_zero(self):
        assert next_value(0, 0) == 0.0

    def test_deterministic(self):
        assert next_value(12345, 7) == next_value(12345, 7)

    def test_offsets_differ(self):
        values = {next_value(12345, offset) for offset in range(50)}
        assert len(values) == 50

    @pytest.mark.parametrize("seed", [0, 1, 2 ** 31 - 1, 2 ** 31, 2 ** 40 + 3, -1, -(2 ** 35)])
    def test_range_closed_open(self, seed):
        for offset in range(20):
            value = next_value(seed, offset)
            assert 0.0 <= value < 1.0

    def test_seed_reduced_mod_2_32(self):
        assert next_value(2 ** 32 + 99, 3) == next_value(99, 3)
        assert next_value(-1, 0) == next_value(2 ** 32 - 1, 0)

    def test_spread_over_unit_interval(self):
        values = [next_value(derive_seed("spread"), i) for i in range(1000)]
        assert min(values) < 0.1
        assert max(values) > 0.9
        assert 0.4 < sum(values) / len(values) < 0.6
