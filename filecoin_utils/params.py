from __future__ import annotations

from dataclasses import dataclass, replace

from .fixed_point import PRECISION_Q

# Epoch time is 30s => epochs/day = 86400/30 = 2880.
EPOCHS_PER_DAY = 2880


@dataclass(frozen=True)
class BigFrac:
    numerator: int
    denominator: int


@dataclass(frozen=True)
class ProtocolParams:
    """Protocol constants consumed by the power and penalty calculators.

    Passed explicitly so an alternate parameter set (another network version,
    a test fixture) can be swapped in without touching module globals.
    """

    epochs_per_day: int = EPOCHS_PER_DAY
    sector_quality_precision: int = PRECISION_Q
    quality_base_multiplier: int = 1
    deal_weight_multiplier: int = 10
    verified_deal_weight_multiplier: int = 100
    termination_lifetime_cap_days: int = 140
    termination_reward_factor: BigFrac = BigFrac(1, 2)
    # 3.5 days
    termination_penalty_lower_bound_projection_period: int = (EPOCHS_PER_DAY * 35) // 10

    @property
    def termination_lifetime_cap(self) -> int:
        return self.termination_lifetime_cap_days * self.epochs_per_day

    def with_overrides(self, **changes) -> "ProtocolParams":
        return replace(self, **changes)


DEFAULT_PARAMS = ProtocolParams()

# Multipliers as shipped in the builtin-actors bundle (go-state-types `builtin`).
BUILTIN_ACTORS_PARAMS = ProtocolParams(quality_base_multiplier=10)
