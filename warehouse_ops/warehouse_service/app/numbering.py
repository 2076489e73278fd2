"""Order-number formatting and parsing."""

from __future__ import annotations

import re
from collections.abc import Iterable

MIN_SEQUENCE_DIGITS = 3


def format_order_number(year: int, sequence: int, *, prefix: str = "ORD") -> str:
    if sequence < 1:
        msg = "order sequence must be positive"
        raise ValueError(msg)
    return f"{prefix}-{year:04d}-{sequence:0{MIN_SEQUENCE_DIGITS}d}"


def year_prefix(year: int, *, prefix: str = "ORD") -> str:
    return f"{prefix}-{year:04d}-"


def parse_sequence(order_number: str, year: int, *, prefix: str = "ORD") -> int | None:
    """Return the numeric suffix of ``order_number`` if it belongs to ``year``."""

    pattern = rf"^{re.escape(year_prefix(year, prefix=prefix))}(\d+)$"
    match = re.match(pattern, order_number)
    if match is None:
        return None
    return int(match.group(1))


def max_sequence(order_numbers: Iterable[str], year: int, *, prefix: str = "ORD") -> int:
    sequences = (parse_sequence(number, year, prefix=prefix) for number in order_numbers)
    return max((value for value in sequences if value is not None), default=0)
