"""Tests for confidence and freshness estimation."""

from datetime import datetime, timedelta, timezone

import pytest

from freshness import (
    DEFAULT_STALENESS_THRESHOLD_SECONDS,
    Freshness,
    blended_confidence,
    compute_freshness,
    log_confidence,
    sla_status,
    staleness_ms,
)

NOW = datetime(2026, 2, 26, 12, 0, tzinfo=timezone.utc)


class TestComputeFreshness:
    """Test compute_freshness() ages and the stale boundary."""

    def test_zero_age_at_now(self):
        result = compute_freshness(NOW, NOW)
        assert result.age_seconds == 0
        assert result.stale is False

    def test_timestamp_is_fetch_time(self):
        assert compute_freshness(NOW, NOW).timestamp == "2026-02-26T12:00:00.000Z"

    def test_age_floored_to_seconds(self):
        result = compute_freshness(NOW - timedelta(milliseconds=1999), NOW)
        assert result.age_seconds == 1

    def test_not_stale_at_threshold(self):
        fetched = NOW - timedelta(seconds=DEFAULT_STALENESS_THRESHOLD_SECONDS)
        assert compute_freshness(fetched, NOW).stale is False

    def test_stale_past_threshold(self):
        fetched = NOW - timedelta(seconds=DEFAULT_STALENESS_THRESHOLD_SECONDS + 1)
        assert compute_freshness(fetched, NOW).stale is True

    def test_one_ms_past_threshold_within_same_second(self):
        fetched = NOW - timedelta(seconds=300, milliseconds=1)
        result = compute_freshness(fetched, NOW)
        assert result.age_seconds == 300
        assert result.stale is False

    def test_custom_threshold(self):
        fetched = NOW - timedelta(seconds=61)
        assert compute_freshness(fetched, NOW, threshold_seconds=60).stale is True

    def test_future_fetch_clamped(self):
        result = compute_freshness(NOW + timedelta(seconds=30), NOW)
        assert result.age_seconds == 0

    def test_to_dict(self):
        result = compute_freshness(NOW - timedelta(seconds=5), NOW)
        assert result.to_dict() == {
            "timestamp": "2026-02-26T11:59:55.000Z",
            "ageSeconds": 5,
            "stale": False,
        }

    def test_default_now_is_clock(self):
        result = compute_freshness(datetime.now(timezone.utc))
        assert isinstance(result, Freshness)
        assert result.age_seconds <= 1


class TestLogConfidence:
    """Test log_confidence() saturation."""

    def test_zero_and_negative(self):
        assert log_confidence(0, 100) == 0.0
        assert log_confidence(-5, 100) == 0.0

    def test_saturates_at_one(self):
        assert log_confidence(10_000, 100) == 1.0

    def test_known_value(self):
        # log10(10) / log10(10000) = 0.25
        assert log_confidence(9, 10_000) == 0.25

    def test_non_decreasing(self):
        values = [log_confidence(n, 1000) for n in range(0, 2000, 7)]
        assert values == sorted(values)
        assert all(0.0 <= v <= 1.0 for v in values)


class TestBlendedConfidence:
    def test_zero_count(self):
        assert blended_confidence(0, 100, 1.0) == 0.0

    def test_full(self):
        assert blended_confidence(1000, 100, 1.0) == 1.0

    def test_known_value(self):
        # volume log10(10)/log10(100) = 0.5 -> 0.35 + 0.3 * 0.5
        assert blended_confidence(9, 100, 0.5) == 0.5

    def test_coverage_clamped(self):
        assert blended_confidence(1000, 100, 5.0) == 1.0
        assert blended_confidence(1000, 100, -1.0) == 0.7

    def test_non_decreasing_in_count(self):
        values = [blended_confidence(n, 1000, 0.8) for n in range(1, 3000, 13)]
        assert values == sorted(values)


class TestSla:
    def test_staleness_ms(self):
        assert staleness_ms(NOW - timedelta(minutes=2), NOW) == 120_000

    def test_staleness_never_negative(self):
        assert staleness_ms(NOW + timedelta(seconds=1), NOW) == 0

    @pytest.mark.parametrize("staleness, expected", [
        (0, "fresh"),
        (300_000, "fresh"),
        (300_001, "stale"),
        (None, "unknown"),
    ])
    def test_sla_status(self, staleness, expected):
        assert sla_status(staleness, 300_000) == expected
