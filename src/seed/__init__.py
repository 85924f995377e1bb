"""Seed derivation and the seeded value generator.

Every synthetic attribute in the services comes from two steps:

1. ``derive_seed(*parts)`` turns an identifying key (address, supplier id,
   jurisdiction + industry, ...) into a stable positive integer.
2. ``next_value(seed, offset)`` maps a seed and a per-attribute offset to a
   float in ``[0, 1)``.

Both are pure. The hash constants below are part of the observable contract:
changing them changes every synthesized response.
"""

from __future__ import annotations

from typing import Any

# Joins key parts so ("ab", "c") and ("a", "bc") hash differently
SEED_SEPARATOR = "\x1f"

DJB2_INIT = 5381
DJB2_FACTOR = 33

# Offset stride (golden-ratio constant) and murmur3 fmix32 multipliers
OFFSET_STRIDE = 0x9E3779B1
MIX_MULTIPLIER_1 = 0x85EBCA6B
MIX_MULTIPLIER_2 = 0xC2B2AE35

_MASK32 = 0xFFFFFFFF
_TWO_32 = float(1 << 32)


def _render(part: Any) -> str:
    if part is None:
        return ""
    return str(part)


def derive_seed(*parts: Any) -> int:
    """Derive a deterministic positive seed from ordered key parts.

    Parts are rendered with ``str()`` (``None`` as empty string), joined with
    SEED_SEPARATOR and hashed with djb2 over their UTF-8 bytes. The 32-bit
    result is read as signed and its absolute value returned; 0 becomes 1.

    Args:
        *parts: Key components, e.g. ``("US", "finance")``

    Returns:
        Integer in ``[1, 2**31]``
    """
    text = SEED_SEPARATOR.join(_render(p) for p in parts)
    h = DJB2_INIT
    for byte in text.encode("utf-8"):
        h = (h * DJB2_FACTOR + byte) & _MASK32
    if h & 0x80000000:
        h -= 1 << 32
    return abs(h) or 1


def channel_offset(label: str) -> int:
    """Map a channel label to the offset used for its draws."""
    return derive_seed(label)


def _fmix32(x: int) -> int:
    x ^= x >> 16
    x = (x * MIX_MULTIPLIER_1) & _MASK32
    x ^= x >> 13
    x = (x * MIX_MULTIPLIER_2) & _MASK32
    x ^= x >> 16
    return x


def next_value(seed: int, offset: int = 0) -> float:
    """Return a deterministic pseudo-random float in ``[0, 1)``.

    Any integer seed is accepted; it is reduced modulo 2**32 before mixing.
    Distinct offsets for the same seed give independent-looking values.
    """
    x = (seed + offset * OFFSET_STRIDE) & _MASK32
    return _fmix32(x) / _TWO_32
