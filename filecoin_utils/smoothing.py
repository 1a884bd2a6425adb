"""
Alpha-beta filter estimates (position + velocity) and their extrapolation.

The reward actor and the power actor each publish a smoothed estimate of their
series: `ThisEpochRewardSmoothed` and `ThisEpochQAPowerSmoothed`. Both values
are Q.128 fixed point. The projection of "reward per unit of power" over a
future window is the integral of reward(t) / power(t). Dividing two linear
functions has no closed form in these primitives, so the reciprocal of the
denominator is linearised around its current position:

    1 / power(t) ~= (1 / p2) * (1 - v2 / p2 * t)

Multiplying through by reward(t) = p1 + v1 * t gives a quadratic in t that is
integrated term by term over [a, b] (a = offset, b = offset + duration):

    p1 * (b - a) / p2
    + (v1 - p1 * v2 / p2) * (b^2 - a^2) / (2 * p2)
    - (v1 * v2 / p2) * (b^3 - a^3) / (3 * p2)

Each term is lifted by 2^128 before its truncating division. The evaluation
order below is part of the result; reordering changes the low bits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .errors import ActorStateDecodeError
from .fixed_point import PRECISION_128, div, lsh, mul, rsh
from .types import parse_big


@dataclass(frozen=True)
class FilterEstimate:
    position: int
    velocity: int = 0

    def instantaneous(self) -> int:
        return self.position

    def estimate(self) -> int:
        # Q.128 => Q.0
        return rsh(self.position, PRECISION_128)

    @classmethod
    def from_lotus(cls, obj: Any) -> "FilterEstimate":
        if not isinstance(obj, dict) or "PositionEstimate" not in obj or "VelocityEstimate" not in obj:
            raise ActorStateDecodeError(f"unexpected filter estimate: {obj!r}")
        return cls(
            position=parse_big(obj["PositionEstimate"], name="PositionEstimate"),
            velocity=parse_big(obj["VelocityEstimate"], name="VelocityEstimate"),
        )

    def to_json(self) -> Dict[str, str]:
        return {"PositionEstimate": str(self.position), "VelocityEstimate": str(self.velocity)}


def extrapolated_cum_sum_of_ratio(
    numerator: FilterEstimate,
    denominator: FilterEstimate,
    duration: int,
    offset: int = 0,
) -> int:
    """Q.128 integral of numerator(t) / denominator(t) over [offset, offset + duration]."""
    if duration == 0:
        return 0

    p1, v1 = numerator.position, numerator.velocity
    p2, v2 = denominator.position, denominator.velocity
    if p2 == 0:
        return numerator.instantaneous()

    a = offset
    b = offset + duration

    # Q.128 * Q.0 => Q.256 / Q.128 => Q.128
    constant = div(lsh(mul(p1, duration), PRECISION_128), p2)

    linear_coef = v1 - div(mul(p1, v2), p2)
    linear = div(lsh(mul(linear_coef, b * b - a * a), PRECISION_128), mul(2, p2))

    quadratic_coef = div(mul(v1, v2), p2)
    quadratic = div(lsh(mul(quadratic_coef, b * b * b - a * a * a), PRECISION_128), mul(3, p2))

    return constant + linear - quadratic
