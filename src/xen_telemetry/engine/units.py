"""
Unit transforms.

All transforms are pure functions of the raw value.

Rounding is half up at two decimals, so 0.125 becomes 0.13 and -0.125
becomes -0.12. Python round uses banker's rounding and would disagree with the
values the sink has always received.
"""

from __future__ import annotations

import math
from typing import Sequence

BITS_PER_BYTE = 8
PERCENT = 100
BYTES_PER_KB = 1000
# Historical mebibyte factor used by the sink dashboards, not 1048576.
BYTES_PER_MIB = 1048580
MICROSECONDS_PER_MS = 1000


def round2(value: float) -> float:
    """Round half up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def floor_value(value: float) -> float:
    return float(math.floor(value))


def bytes_to_bits(value: float) -> float:
    return round2(value * BITS_PER_BYTE)


def ratio_to_percent(value: float) -> float:
    return round2(value * PERCENT)


def mib_to_bytes(value: float) -> float:
    return round2(value * BYTES_PER_MIB)


def kb_to_bytes(value: float) -> float:
    return floor_value(value * BYTES_PER_KB)


def us_to_ms(value: float) -> float:
    return value / MICROSECONDS_PER_MS


def rounded_sum(values: Sequence[float]) -> float:
    return round2(sum(values))


def rounded_mean(values: Sequence[float]) -> float:
    """Mean rounded to two decimals. Raises ZeroDivisionError on empty input."""
    return round2(sum(values) / len(values))
