"""Utility helpers shared by the scoring services.

Pure functions with no third-party dependencies for:
- UTC instants and ISO-8601 formatting (millisecond precision)
- Half-up rounding and clamping
- Hex digests and compact base-36 tokens
"""

from __future__ import annotations

import hashlib
import math
import string
from datetime import date, datetime, timedelta, timezone
from typing import Union

HASH_ALGORITHMS = ("sha256", "sha384", "sha512")

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    """Return the current UTC instant, truncated to milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso_millis(value: datetime) -> str:
    """Format an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: Union[str, datetime, date]) -> datetime:
    """Parse an ISO-8601 date or date-time into an aware UTC datetime.

    Accepts a trailing ``Z``. Bare dates are taken as midnight UTC.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def iso_date(value: datetime) -> str:
    """Return the UTC calendar date of an instant as ``YYYY-MM-DD``."""
    return ensure_utc(value).date().isoformat()


def millis_between(start: datetime, end: datetime) -> int:
    """Whole milliseconds from ``start`` to ``end`` (may be negative)."""
    return (ensure_utc(end) - ensure_utc(start)) // timedelta(milliseconds=1)


def epoch_millis(value: datetime) -> int:
    return millis_between(datetime(1970, 1, 1, tzinfo=timezone.utc), value)


def round_half_up(value: float, ndigits: int = 2) -> float:
    """Round with halves going up, matching what API consumers expect.

    ``round()`` uses banker's rounding; 0.125 must become 0.13 here.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def digest_hex(content: Union[str, bytes], algorithm: str = "sha256") -> str:
    """Return the hex digest of content under a supported algorithm.

    Raises:
        ValueError: If the algorithm is not one of HASH_ALGORITHMS
    """
    if algorithm not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.new(algorithm, content).hexdigest()


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("to_base36 expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))
