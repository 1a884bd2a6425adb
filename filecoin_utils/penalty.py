"""
Termination fee for a set of sectors.

Per sector:

    max(SP(t), BR(activation, 20d) + BR(activation, 1d) * terminationRewardFactor * min(age, 140d))

where SP(t) is the expected reward for the sector's power over 3.5 days,
projected from the smoothed network reward and network QA power estimates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .fixed_point import PRECISION_128, big_max, big_min, big_sum, div, mul, rsh
from .params import DEFAULT_PARAMS, ProtocolParams
from .power import qa_power_for_sector
from .smoothing import FilterEstimate, extrapolated_cum_sum_of_ratio
from .types import SectorRecord


def expected_reward_for_power(
    reward_estimate: FilterEstimate,
    network_qa_power_estimate: FilterEstimate,
    qa_sector_power: int,
    projection_duration: int,
) -> int:
    if network_qa_power_estimate.estimate() == 0:
        return reward_estimate.estimate()
    expected_reward_for_proving_period = extrapolated_cum_sum_of_ratio(
        reward_estimate, network_qa_power_estimate, projection_duration, 0
    )
    br128 = mul(qa_sector_power, expected_reward_for_proving_period)  # Q.0 * Q.128 => Q.128
    br = rsh(br128, PRECISION_128)
    return big_max(br, 0)


def pledge_penalty_for_termination_lower_bound(
    reward_estimate: FilterEstimate,
    network_qa_power_estimate: FilterEstimate,
    qa_sector_power: int,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> int:
    return expected_reward_for_power(
        reward_estimate,
        network_qa_power_estimate,
        qa_sector_power,
        params.termination_penalty_lower_bound_projection_period,
    )


def pledge_penalty_for_termination(
    day_reward: int,
    sector_age: int,
    twenty_day_reward_at_activation: int,
    network_qa_power_estimate: FilterEstimate,
    qa_sector_power: int,
    reward_estimate: FilterEstimate,
    replaced_day_reward: int,
    replaced_sector_age: int,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> int:
    lifetime_cap = params.termination_lifetime_cap
    capped_sector_age = big_min(sector_age, lifetime_cap)
    # epochs * attoFIL/day
    expected_reward = mul(day_reward, capped_sector_age)
    # Credit for a replaced sector only fills the cap left over by this one.
    relevant_replaced_age = big_min(replaced_sector_age, lifetime_cap - capped_sector_age)
    expected_reward += mul(replaced_day_reward, relevant_replaced_age)

    factor = params.termination_reward_factor
    penalized_reward = mul(expected_reward, factor.numerator)

    return big_max(
        pledge_penalty_for_termination_lower_bound(reward_estimate, network_qa_power_estimate, qa_sector_power, params),
        twenty_day_reward_at_activation + div(penalized_reward, mul(params.epochs_per_day, factor.denominator)),
    )


def sector_termination_penalty(
    current_epoch: int,
    reward_estimate: FilterEstimate,
    network_qa_power_estimate: FilterEstimate,
    sector: SectorRecord,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> int:
    sector_power = qa_power_for_sector(sector, params=params)
    return pledge_penalty_for_termination(
        sector.expected_day_reward,
        current_epoch - sector.activation_epoch,
        sector.expected_storage_pledge,
        network_qa_power_estimate,
        sector_power,
        reward_estimate,
        sector.replaced_day_reward,
        sector.replaced_sector_age,
        params,
    )


def termination_penalty(
    current_epoch: int,
    reward_estimate: FilterEstimate,
    network_qa_power_estimate: FilterEstimate,
    sectors: Iterable[SectorRecord],
    params: ProtocolParams = DEFAULT_PARAMS,
) -> int:
    # Summed in input order.
    fees = (sector_termination_penalty(current_epoch, reward_estimate, network_qa_power_estimate, s, params) for s in sectors)
    return big_sum(*fees)


@dataclass(frozen=True)
class SplitPenalty:
    all: int
    cc: int
    dc: int
    cc_count: int
    dc_count: int


def split_cc_dc(sectors: Iterable[SectorRecord]) -> tuple[List[SectorRecord], List[SectorRecord]]:
    cc: List[SectorRecord] = []
    dc: List[SectorRecord] = []
    for s in sectors:
        if s.has_deals:
            dc.append(s)
        else:
            cc.append(s)
    return cc, dc


def split_termination_penalty(
    current_epoch: int,
    reward_estimate: FilterEstimate,
    network_qa_power_estimate: FilterEstimate,
    sectors: Sequence[SectorRecord],
    params: ProtocolParams = DEFAULT_PARAMS,
) -> SplitPenalty:
    """Whole-set fee plus its committed-capacity / deal-carrying split.

    Only the minority subset is priced directly; the majority subset gets the
    remainder, so `cc + dc == all` always holds exactly.
    """
    cc, dc = split_cc_dc(sectors)
    total = termination_penalty(current_epoch, reward_estimate, network_qa_power_estimate, sectors, params)

    if len(dc) > len(cc):
        if not cc:
            cc_fee, dc_fee = 0, total
        else:
            cc_fee = termination_penalty(current_epoch, reward_estimate, network_qa_power_estimate, cc, params)
            dc_fee = total - cc_fee
    else:
        if not dc:
            cc_fee, dc_fee = total, 0
        else:
            dc_fee = termination_penalty(current_epoch, reward_estimate, network_qa_power_estimate, dc, params)
            cc_fee = total - dc_fee

    return SplitPenalty(all=total, cc=cc_fee, dc=dc_fee, cc_count=len(cc), dc_count=len(dc))
