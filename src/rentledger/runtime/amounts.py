# src/rentledger/runtime/amounts.py
from __future__ import annotations

"""Checked fixed-width arithmetic.

Python ints never wrap, so the u64/u128 ranges are enforced explicitly. The checked_*
helpers return None on overflow/underflow; callers decide which error to raise.
"""

from typing import Any, Optional

U64_MAX: int = 2**64 - 1
U128_MAX: int = 2**128 - 1


def checked_add(a: int, b: int, limit: int = U128_MAX) -> Optional[int]:
    out = int(a) + int(b)
    if out < 0 or out > limit:
        return None
    return out


def checked_sub(a: int, b: int) -> Optional[int]:
    out = int(a) - int(b)
    if out < 0:
        return None
    return out


def checked_mul(a: int, b: int, limit: int = U128_MAX) -> Optional[int]:
    out = int(a) * int(b)
    if out < 0 or out > limit:
        return None
    return out


def parse_u128(value: Any) -> int:
    """Parse a u128 amount from an int or a decimal string.

    128-bit amounts travel as decimal strings on the wire (JSON numbers lose
    precision past 2**53 in many clients). bools and floats are rejected.

    Raises:
        ValueError: value is not a non-negative integer within u128 range.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be an integer or decimal string, got bool")
    if isinstance(value, int):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        if not s.isdigit() or not s.isascii():
            raise ValueError(f"amount must be a decimal string, got {value!r}")
        n = int(s)
    else:
        raise ValueError(f"amount must be an integer or decimal string, got {type(value).__name__}")

    if n < 0 or n > U128_MAX:
        raise ValueError(f"amount out of u128 range: {n}")
    return n


__all__ = ["U64_MAX", "U128_MAX", "checked_add", "checked_sub", "checked_mul", "parse_u128"]
