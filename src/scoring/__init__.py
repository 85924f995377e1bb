"""Composite scoring and classification.

Weighted factor composition, step-function classification and the small
aggregates the services build on (hop-decayed means, max/mean blends,
confidence bands).

Every Scale uses the same boundary rule: a value equal to a threshold lands in
that threshold's bucket, so with ``critical: 80`` a score of exactly 80 is
critical.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from util import clamp, round_half_up

DEFAULT_Z_95 = 1.645


@dataclass(frozen=True)
class ScoreFactor:
    """One weighted contribution to a composite score.

    Attributes:
        name: Factor identifier
        score: Sub-score in [0, 100]
        weight: Weight in [0, 1]
        description: Human-readable explanation
    """

    name: str
    score: float
    weight: float
    description: str = ""

    @property
    def contribution(self) -> float:
        return self.score * self.weight

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor": self.name,
            "score": self.score,
            "weight": self.weight,
            "description": self.description,
        }


def composite_score(factors: Iterable[ScoreFactor], low: float = 0.0, high: float = 100.0) -> float:
    """Sum ``score * weight`` over factors, rounded to 2 places and clamped."""
    total = sum(f.contribution for f in factors)
    return clamp(round_half_up(total, 2), low, high)


@dataclass(frozen=True)
class Scale:
    """Ordered threshold table mapping a number to a label.

    Attributes:
        steps: (threshold, label) pairs, highest threshold first
        floor: Label for values below every threshold (and NaN)
    """

    steps: tuple[tuple[float, Any], ...]
    floor: Any

    @classmethod
    def from_mapping(cls, thresholds: Mapping[Any, float], floor: Any) -> Scale:
        """Build a scale from ``{label: lower_bound}``."""
        ordered = sorted(((float(t), label) for label, t in thresholds.items()),
                         key=lambda pair: pair[0], reverse=True)
        return cls(steps=tuple(ordered), floor=floor)

    @classmethod
    def from_pairs(cls, pairs: Sequence[Sequence[Any]], floor: Any) -> Scale:
        """Build a scale from ``[[lower_bound, label], ...]``."""
        ordered = sorted(((float(t), label) for t, label in pairs),
                         key=lambda pair: pair[0], reverse=True)
        return cls(steps=tuple(ordered), floor=floor)

    def classify(self, value: float) -> Any:
        for threshold, label in self.steps:
            if value >= threshold:
                return label
        return self.floor


def confidence_band(
    point: float,
    confidence: float,
    max_width: float,
    low: float,
    high: float,
    ndigits: int = 0,
) -> tuple[float, float]:
    """Interval around ``point`` that narrows as confidence grows.

    Width is ``max_width * (1 - confidence)``; both ends are clamped.
    With ``ndigits == 0`` the bounds are returned as ints.
    """
    half = max_width * (1 - clamp(confidence, 0.0, 1.0)) / 2
    lower = clamp(round_half_up(point - half, ndigits), low, high)
    upper = clamp(round_half_up(point + half, ndigits), low, high)
    if ndigits == 0:
        return int(lower), int(upper)
    return lower, upper


def upper_percentile(mean: float, spread: float, z: float = DEFAULT_Z_95) -> float:
    """Normal-approximation upper percentile, never below the mean."""
    return max(round_half_up(mean, 2), round_half_up(mean + z * spread, 2))


def hop_decayed_mean(pairs: Iterable[tuple[float, int]], cap: float = 100.0) -> float:
    """Average contributions weighted by ``1/hop``, capped.

    Args:
        pairs: (contribution, hop) tuples; hop >= 1

    Returns:
        Weighted mean rounded to 2 places, 0 when there are no pairs
    """
    weighted = 0.0
    weights = 0.0
    for value, hop in pairs:
        w = 1 / max(hop, 1)
        weighted += value * w
        weights += w
    if weights == 0:
        return 0.0
    return min(cap, round_half_up(weighted / weights, 2))


def blend_max_mean(values: Sequence[float], max_weight: float = 0.7) -> float:
    """``max * max_weight + mean * (1 - max_weight)``; 0 for no values."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return max(values) * max_weight + mean * (1 - max_weight)


def coefficient_of_variation(mean: float, spread: float) -> float:
    if mean <= 0 or math.isnan(mean):
        return 0.0
    return spread / mean
