"""
Big-integer fixed-point helpers.

Python ints are arbitrary precision, so there is no overflow anywhere in here.
What matters is rounding:

- `rsh` is an arithmetic shift and rounds toward negative infinity.
- `div` truncates toward zero, like Go's `big.Int.Quo`. Python's `//` floors,
  which differs for negative operands, so never use `//` on signed amounts.
"""

from __future__ import annotations

from .errors import DivisionByZero

# Fractional bits of a sector quality value.
PRECISION_Q = 20
# Fractional bits of reward/power filter estimates.
PRECISION_128 = 128


def lsh(x: int, n: int) -> int:
    return x << n


def rsh(x: int, n: int) -> int:
    return x >> n


def mul(a: int, b: int) -> int:
    return a * b


def div(a: int, b: int) -> int:
    if b == 0:
        raise DivisionByZero(f"division by zero: {a} / 0")
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def big_max(a: int, b: int) -> int:
    return a if a >= b else b


def big_min(a: int, b: int) -> int:
    return a if a <= b else b



def big_sum(*xs: int) -> int:
    total = 0
    for x in xs:
        total += x
    return total
