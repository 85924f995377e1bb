"""Synthetic attribute synthesis.

Maps generator draws in ``[0, 1)`` to typed attributes: ranged numbers,
enum picks, bounded counts, dependent counts and ordered instants. ``Stream``
binds the transforms to one seed so each attribute draws from its own named
channel.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Union

from seed import channel_offset, derive_seed, next_value
from util import round_half_up

# Per-hop re-seeding stride for graph synthesis
HOP_STRIDE = 7919

Channel = Union[str, int]


# ---------------------------------------------------------------------------
# Pure transforms
# ---------------------------------------------------------------------------

def linear(draw: float, low: float, high: float, ndigits: Optional[int] = None) -> float:
    """Scale a draw linearly onto ``[low, high)``, optionally rounded half-up."""
    value = low + draw * (high - low)
    if ndigits is not None:
        value = round_half_up(value, ndigits)
    return value


def pick(draw: float, values: Sequence[Any]) -> Any:
    """Pick ``values[floor(draw * len)]``, clamped to the last index.

    Raises:
        ValueError: If values is empty
    """
    if not values:
        raise ValueError("Cannot pick from an empty pool")
    index = min(int(math.floor(draw * len(values))), len(values) - 1)
    return values[max(index, 0)]


def bounded_count(draw: float, max_count: int) -> int:
    """Return an integer in ``[0, max_count]``."""
    if max_count <= 0:
        return 0
    return max(0, min(int(math.floor(draw * (max_count + 1))), max_count))


def capped(value: float, prior: float) -> float:
    """Cap a dependent quantity by the quantity it depends on."""
    return min(value, prior)


def interpolate_instant(draw: float, start: datetime, end: datetime) -> datetime:
    """Interpolate linearly between two instants.

    ``end`` before ``start`` collapses to ``start`` so the result is never
    earlier than ``start``.
    """
    if end <= start:
        return start
    return start + (end - start) * draw


def _offset(channel: Channel) -> int:
    if isinstance(channel, int):
        return channel
    return channel_offset(channel)


# ---------------------------------------------------------------------------
# Seed-bound stream
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Stream:
    """Immutable view of one seed's draws, addressed by channel.

    Attributes:
        seed: Seed from derive_seed()
    """

    seed: int

    @classmethod
    def for_key(cls, *parts: Any) -> Stream:
        return cls(derive_seed(*parts))

    def draw(self, channel: Channel) -> float:
        return next_value(self.seed, _offset(channel))

    def uniform(self, channel: Channel, low: float, high: float, ndigits: Optional[int] = None) -> float:
        return linear(self.draw(channel), low, high, ndigits)

    def integer(self, channel: Channel, low: int, high: int) -> int:
        """Integer in ``[low, high]`` inclusive."""
        return low + bounded_count(self.draw(channel), high - low)

    def count(self, channel: Channel, max_count: int) -> int:
        return bounded_count(self.draw(channel), max_count)

    def choice(self, channel: Channel, values: Sequence[Any]) -> Any:
        return pick(self.draw(channel), values)

    def instant(self, channel: Channel, start: datetime, end: datetime) -> datetime:
        return interpolate_instant(self.draw(channel), start, end)

    def hex(self, channel: str, length: int = 40) -> str:
        """Hex identifier of ``length`` characters, one nibble per draw."""
        return "".join(
            "0123456789abcdef"[int(self.draw(f"{channel}:{i}") * 16)]
            for i in range(length)
        )

    def sample(self, channel: str, values: Sequence[Any], n: int) -> list:
        """Fisher-Yates partial shuffle returning ``n`` distinct items."""
        pool = list(values)
        n = max(0, min(n, len(pool)))
        for i in range(n):
            j = i + int(self.draw(f"{channel}:{i}") * (len(pool) - i))
            pool[i], pool[j] = pool[j], pool[i]
        return pool[:n]

    def distinct(self, channel: str, values: Sequence[Any], n: int) -> list:
        """Pick ``n`` distinct items, probing forward past repeats."""
        n = max(0, min(n, len(values)))
        chosen: list = []
        taken: set[int] = set()
        for i in range(n):
            index = min(int(self.draw(f"{channel}:{i}") * len(values)), len(values) - 1)
            while index in taken:
                index = (index + 1) % len(values)
            taken.add(index)
            chosen.append(values[index])
        return chosen

    def child(self, *parts: Any) -> Stream:
        """Re-seed from this seed plus extra key parts."""
        return Stream(derive_seed(self.seed, *parts))

    def at_hop(self, hop: int) -> Stream:
        return Stream(self.seed + hop * HOP_STRIDE)
