"""Confidence and freshness estimation.

Confidence saturates logarithmically with the number of supporting
observations. Freshness reports how old a response's underlying data is
relative to a staleness threshold and is recomputed on every read.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from util import clamp, ensure_utc, millis_between, round_half_up, to_iso_millis, utc_now

DEFAULT_STALENESS_THRESHOLD_SECONDS = 300
DEFAULT_VOLUME_WEIGHT = 0.7


@dataclass(frozen=True)
class Freshness:
    """Age metadata attached to every response.

    Attributes:
        timestamp: When the data was fetched (ISO-8601, milliseconds)
        age_seconds: Whole seconds since fetch, never negative
        stale: True once age exceeds the threshold
    """

    timestamp: str
    age_seconds: int
    stale: bool

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "ageSeconds": self.age_seconds, "stale": self.stale}


def compute_freshness(
    fetched_at: datetime,
    now: Optional[datetime] = None,
    threshold_seconds: int = DEFAULT_STALENESS_THRESHOLD_SECONDS,
) -> Freshness:
    """Compute freshness for data fetched at ``fetched_at``.

    Age is floored to whole seconds and clamped at 0 for clock skew.
    Staleness is strict: at exactly ``threshold_seconds`` the data is fresh.
    """
    fetched_at = ensure_utc(fetched_at)
    now = ensure_utc(now) if now is not None else utc_now()
    age = max(0, (now - fetched_at) // timedelta(seconds=1))
    return Freshness(
        timestamp=to_iso_millis(fetched_at),
        age_seconds=age,
        stale=age > threshold_seconds,
    )


def log_confidence(count: float, reference: float) -> float:
    """Saturating confidence from an observation count.

    Returns ``min(1, log10(count + 1) / log10(reference))`` rounded to 2
    places, or 0 when there are no observations. ``reference`` is the count at
    which confidence saturates.
    """
    if count <= 0:
        return 0.0
    reference = max(reference, 2)
    return round_half_up(min(1.0, math.log10(count + 1) / math.log10(reference)), 2)


def blended_confidence(
    count: float,
    reference: float,
    coverage: float,
    volume_weight: float = DEFAULT_VOLUME_WEIGHT,
) -> float:
    """Blend observation volume with a coverage ratio.

    ``volume_weight`` of the result comes from the capped log ratio, the rest
    from ``coverage`` clamped to [0, 1]. Zero observations give 0.
    """
    if count <= 0:
        return 0.0
    volume = min(1.0, math.log10(count + 1) / math.log10(max(reference, 2)))
    value = volume * volume_weight + clamp(coverage, 0.0, 1.0) * (1 - volume_weight)
    return round_half_up(min(1.0, value), 2)


def staleness_ms(last_updated: datetime, now: datetime) -> int:
    return max(0, millis_between(last_updated, now))


def sla_status(staleness: Optional[int], max_staleness_ms: int) -> str:
    """Classify staleness against an SLA: fresh, stale or unknown."""
    if staleness is None:
        return "unknown"
    return "fresh" if staleness <= max_staleness_ms else "stale"
