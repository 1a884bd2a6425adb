from fractions import Fraction

import pytest

from filecoin_utils.errors import ActorStateDecodeError
from filecoin_utils.smoothing import FilterEstimate, extrapolated_cum_sum_of_ratio

P = 1 << 128


def test_estimate_drops_fractional_bits():
    assert FilterEstimate(position=(5 << 128) | 123).estimate() == 5
    assert FilterEstimate(position=-1).estimate() == -1
    assert FilterEstimate(position=7).instantaneous() == 7


def test_from_lotus():
    fe = FilterEstimate.from_lotus({"PositionEstimate": "340282366920938463463374607431768211456", "VelocityEstimate": "-12"})
    assert fe == FilterEstimate(position=P, velocity=-12)
    assert fe.to_json() == {"PositionEstimate": str(P), "VelocityEstimate": "-12"}


@pytest.mark.parametrize("obj", [None, {}, {"PositionEstimate": "1"}, {"PositionEstimate": "x", "VelocityEstimate": "0"}])
def test_from_lotus_rejects_malformed(obj):
    with pytest.raises(ActorStateDecodeError):
        FilterEstimate.from_lotus(obj)


def test_zero_duration_is_zero():
    assert extrapolated_cum_sum_of_ratio(FilterEstimate(3 * P, P), FilterEstimate(2 * P, P), 0) == 0


def test_zero_denominator_falls_back_to_numerator():
    num = FilterEstimate(3 * P, P)
    assert extrapolated_cum_sum_of_ratio(num, FilterEstimate(0, 5), 100) == 3 * P


def test_constant_ratio():
    # 3/2 per epoch for 10 epochs; offset has no effect without velocities
    num, den = FilterEstimate(3 * P), FilterEstimate(2 * P)
    assert extrapolated_cum_sum_of_ratio(num, den, 10) == 15 << 128
    assert extrapolated_cum_sum_of_ratio(num, den, 10, offset=100) == 15 << 128


def test_growing_numerator():
    # integral of (1 + t) over [0, 4]
    assert extrapolated_cum_sum_of_ratio(FilterEstimate(P, P), FilterEstimate(P), 4) == 12 << 128


def test_growing_denominator_is_linearised():
    # 1 / (1 + t/2) ~= 1 - t/2, integrated over [0, 2]
    assert extrapolated_cum_sum_of_ratio(FilterEstimate(P), FilterEstimate(P, P >> 1), 2) == 1 << 128


def test_quadratic_term():
    # (1 + t)(1 - t/2) = 1 + t/2 - t^2/2, integrated over [0, 3] = 3/4
    assert extrapolated_cum_sum_of_ratio(FilterEstimate(P, P), FilterEstimate(P, P >> 1), 3) == 3 << 126


def _quo(a, b):
    # truncating division, independent of fixed_point.div
    return int(Fraction(a, b))


def _reference(num, den, duration, offset=0):
    p1, v1, p2, v2 = num.position, num.velocity, den.position, den.velocity
    a, b = offset, offset + duration
    term0 = _quo((p1 * duration) << 128, p2)
    term1 = _quo(((v1 - _quo(p1 * v2, p2)) * (b * b - a * a)) << 128, 2 * p2)
    term2 = _quo((_quo(v1 * v2, p2) * (b**3 - a**3)) << 128, 3 * p2)
    return term0 + term1 - term2


REWARD = FilterEstimate(3 * P + 7, -(P // 3))
POWER = FilterEstimate(5 * P + 11, -(P // 7))


def test_truncation_order_is_pinned():
    assert extrapolated_cum_sum_of_ratio(REWARD, POWER, 10080) == -222133225750802309990104157755038510681045436224


@pytest.mark.parametrize("duration,offset", [(10080, 0), (10080, 2880), (1, 7), (518400, 123457)])
def test_negative_velocities_with_offset(duration, offset):
    assert extrapolated_cum_sum_of_ratio(REWARD, POWER, duration, offset) == _reference(REWARD, POWER, duration, offset)


def test_realistic_estimates():
    reward = FilterEstimate(36266252337034982540 << 64, -109525679471 << 64)
    power = FilterEstimate((23 << 60) * P + 12345, -(P * 3_000_000_017) // 11)
    for offset in (0, 2880, 100_000):
        got = extrapolated_cum_sum_of_ratio(reward, power, 10080, offset)
        assert got == _reference(reward, power, 10080, offset)
