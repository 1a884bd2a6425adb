from __future__ import annotations

from .fixed_point import div, lsh, mul, rsh
from .params import DEFAULT_PARAMS, ProtocolParams
from .types import SectorRecord


def quality_for_weight(
    size: int,
    duration: int,
    deal_weight: int,
    verified_weight: int,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> int:
    """Sector quality multiplier, fixed point with `sector_quality_precision` fractional bits."""
    sector_space_time = mul(size, duration)
    total_deal_space_time = deal_weight + verified_weight

    # Base: size * duration not covered by deals.
    weighted_base_space_time = mul(sector_space_time - total_deal_space_time, params.quality_base_multiplier)
    weighted_deal_space_time = mul(deal_weight, params.deal_weight_multiplier)
    weighted_verified_space_time = mul(verified_weight, params.verified_deal_weight_multiplier)
    weighted_sum_space_time = weighted_base_space_time + weighted_deal_space_time + weighted_verified_space_time

    scaled_up = lsh(weighted_sum_space_time, params.sector_quality_precision)
    # Two truncating divisions, in this order.
    return div(div(scaled_up, sector_space_time), params.quality_base_multiplier)


def qa_power_for_weight(
    size: int,
    duration: int,
    deal_weight: int,
    verified_weight: int,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> int:
    quality = quality_for_weight(size, duration, deal_weight, verified_weight, params)
    return qa_power_for_quality(size, quality, params)


def qa_power_for_quality(size: int, quality: int, params: ProtocolParams = DEFAULT_PARAMS) -> int:
    return rsh(mul(size, quality), params.sector_quality_precision)


def qa_power_for_sector(sector: SectorRecord, size: int | None = None, params: ProtocolParams = DEFAULT_PARAMS) -> int:
    if size is None:
        size = sector.size
    return qa_power_for_weight(size, sector.duration, sector.deal_weight, sector.verified_deal_weight, params)


def raw_power_for_sectors(size: int, count: int) -> int:
    return mul(size, count)
