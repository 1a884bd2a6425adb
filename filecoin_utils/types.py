"""
Plain data shared by the calculators, the chain query layer and the sink.

Every report value exposes `to_json()`, returning a JSON-ready dict with stable
PascalCase keys (the same names Lotus uses). Big integers are rendered as
decimal strings so nothing downstream rounds them through a float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import ActorStateDecodeError

KIB = 1 << 10
MIB = 1 << 20
GIB = 1 << 30

# RegisteredSealProof -> sector size. Proof ids repeat the same five sizes per
# proof generation (V1, V1_1, V1_1 synthetic PoRep, NI-PoRep).
_SEAL_PROOF_SIZES = (2 * KIB, 8 * MIB, 512 * MIB, 32 * GIB, 64 * GIB)
ALLOWED_SECTOR_SIZES = frozenset(_SEAL_PROOF_SIZES)


def sector_size_for_seal_proof(seal_proof: int) -> int:
    if not isinstance(seal_proof, int) or seal_proof < 0 or seal_proof >= 4 * len(_SEAL_PROOF_SIZES):
        raise ActorStateDecodeError(f"unknown seal proof type: {seal_proof!r}")
    return _SEAL_PROOF_SIZES[seal_proof % len(_SEAL_PROOF_SIZES)]


def parse_big(value: Any, *, name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ActorStateDecodeError(f"{name}: expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s.lstrip("-").isdigit():
            return int(s)
    raise ActorStateDecodeError(f"{name}: expected integer, got {value!r}")


@dataclass(frozen=True)
class SectorRecord:
    size: int
    activation_epoch: int
    expiration_epoch: int
    deal_weight: int = 0
    verified_deal_weight: int = 0
    initial_pledge: int = 0
    expected_day_reward: int = 0
    expected_storage_pledge: int = 0
    replaced_day_reward: int = 0
    replaced_sector_activation_epoch: Optional[int] = None
    sector_number: int = 0
    seal_proof: Optional[int] = None
    deal_ids: Tuple[int, ...] = ()

    @property
    def duration(self) -> int:
        return self.expiration_epoch - self.activation_epoch

    @property
    def has_deals(self) -> bool:
        return len(self.deal_ids) > 0

    @property
    def replaced_sector_age(self) -> int:
        if self.replaced_sector_activation_epoch is None:
            return 0
        return max(self.activation_epoch - self.replaced_sector_activation_epoch, 0)

    @classmethod
    def from_lotus(cls, obj: Dict[str, Any], size: Optional[int] = None) -> "SectorRecord":
        """Decode a Lotus `SectorOnChainInfo` JSON object."""
        if not isinstance(obj, dict):
            raise ActorStateDecodeError(f"unexpected sector object: {obj!r}")
        try:
            seal_proof = obj.get("SealProof")
            if size is None:
                size = sector_size_for_seal_proof(seal_proof)
            elif size not in ALLOWED_SECTOR_SIZES:
                raise ActorStateDecodeError(f"unsupported sector size: {size}")
            activation = int(obj["Activation"])
            expiration = int(obj["Expiration"])
            replaced_age = int(obj.get("ReplacedSectorAge") or 0)
            deal_ids = tuple(int(d) for d in (obj.get("DealIDs") or ()))
            sector_number = int(obj.get("SectorNumber") or 0)
        except (KeyError, TypeError, ValueError) as e:
            raise ActorStateDecodeError(f"malformed sector object: {e}") from e

        return cls(
            size=size,
            activation_epoch=activation,
            expiration_epoch=expiration,
            deal_weight=parse_big(obj.get("DealWeight"), name="DealWeight"),
            verified_deal_weight=parse_big(obj.get("VerifiedDealWeight"), name="VerifiedDealWeight"),
            initial_pledge=parse_big(obj.get("InitialPledge"), name="InitialPledge"),
            expected_day_reward=parse_big(obj.get("ExpectedDayReward"), name="ExpectedDayReward"),
            expected_storage_pledge=parse_big(obj.get("ExpectedStoragePledge"), name="ExpectedStoragePledge"),
            replaced_day_reward=parse_big(obj.get("ReplacedDayReward"), name="ReplacedDayReward"),
            replaced_sector_activation_epoch=(activation - replaced_age) if replaced_age > 0 else None,
            sector_number=sector_number,
            seal_proof=seal_proof if isinstance(seal_proof, int) else None,
            deal_ids=deal_ids,
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "SectorNumber": self.sector_number,
            "SealProof": self.seal_proof,
            "SectorSize": self.size,
            "DealIDs": list(self.deal_ids),
            "Activation": self.activation_epoch,
            "Expiration": self.expiration_epoch,
            "DealWeight": str(self.deal_weight),
            "VerifiedDealWeight": str(self.verified_deal_weight),
            "InitialPledge": str(self.initial_pledge),
            "ExpectedDayReward": str(self.expected_day_reward),
            "ExpectedStoragePledge": str(self.expected_storage_pledge),
            "ReplacedSectorAge": self.replaced_sector_age,
            "ReplacedDayReward": str(self.replaced_day_reward),
        }


@dataclass(frozen=True)
class TipSetRef:
    height: int
    key: Tuple[str, ...] = ()

    def to_param(self) -> Optional[List[Dict[str, str]]]:
        # An empty key means "current head" to Lotus.
        if not self.key:
            return None
        return [{"/": cid} for cid in self.key]


@dataclass(frozen=True)
class ProviderInfo:
    sector_size: int


@dataclass
class PenaltyReport:
    current_epoch: int
    provider_address: str
    total_faulty_or_live_count: int
    terminated_count: int
    lost_power: str
    fine_amount: int
    fine_reward: str
    sectors: List[SectorRecord] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "CurHeight": self.current_epoch,
            "Address": self.provider_address,
            "TotalFaultyCount": self.total_faulty_or_live_count,
            "Terminate": {
                "Count": self.terminated_count,
                "LostPower": self.lost_power,
                "FineAmount": str(self.fine_amount),
                "FineReward": self.fine_reward,
                "Sectors": [s.to_json() for s in self.sectors],
            },
        }


@dataclass(frozen=True)
class ExpirationBucket:
    provider_address: str
    as_of_date: str
    expiration_date: str
    aggregate_power: int
    cc_power: int = 0
    dc_power: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {
            "MinerId": self.provider_address,
            "Time": self.as_of_date,
            "ExpirationTime": self.expiration_date,
            "ExpirationSize": str(self.aggregate_power),
            "ExpirationCCSize": str(self.cc_power),
            "ExpirationDCSize": str(self.dc_power),
        }


@dataclass
class ExpirationReport:
    provider_address: str
    buckets: List[ExpirationBucket]
    total_power: int

    def to_json(self) -> Dict[str, Any]:
        return {
            "MinerId": self.provider_address,
            "Expirations": [b.to_json() for b in self.buckets],
            "MinerPowerSize": str(self.total_power),
        }


@dataclass
class MinerSectorsSummary:
    provider_address: str
    height: int
    all_initial_pledge: int = 0
    all_expected_day_reward: int = 0
    all_expected_storage_pledge: int = 0
    all_replaced_day_reward: int = 0
    sectors: Optional[List[SectorRecord]] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "MinerAddress": self.provider_address,
            "Height": self.height,
            "AllInitialPledge": str(self.all_initial_pledge),
            "AllExpectedDayReward": str(self.all_expected_day_reward),
            "AllExpectedStoragePledge": str(self.all_expected_storage_pledge),
            "AllReplacedDayReward": str(self.all_replaced_day_reward),
            "Sectors": None if self.sectors is None else [s.to_json() for s in self.sectors],
        }


@dataclass
class MinerBalance:
    balance: int = 0
    available_balance: int = 0
    initial_pledge: int = 0
    locked_rewards: int = 0
    pre_commit_deposits: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {
            "Balance": str(self.balance),
            "AvailableBalance": str(self.available_balance),
            "InitialPledge": str(self.initial_pledge),
            "LockedRewards": str(self.locked_rewards),
            "PreCommitDeposits": str(self.pre_commit_deposits),
        }


@dataclass
class MinerSectorCounts:
    live: int = 0
    active: int = 0
    faulty: int = 0
    recoveries: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {"Live": self.live, "Active": self.active, "Faulty": self.faulty, "Recoveries": self.recoveries}


@dataclass
class MinerSectorsState:
    cc_count: int = 0
    dc_count: int = 0
    all_initial_pledge: int = 0
    terminate_all_fine: int = 0
    terminate_cc_fine: int = 0
    terminate_dc_fine: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {
            "CCCount": self.cc_count,
            "DCCount": self.dc_count,
            "AllInitialPledge": str(self.all_initial_pledge),
            "TerminateALLFineReward": str(self.terminate_all_fine),
            "TerminateCCFineReward": str(self.terminate_cc_fine),
            "TerminateDCFineReward": str(self.terminate_dc_fine),
        }


@dataclass
class MinerStateReport:
    provider_address: str
    state_height: int
    balance: MinerBalance
    power: Dict[str, Any]
    sector_counts: MinerSectorCounts
    sectors_state: Optional[MinerSectorsState]
    info: Dict[str, Any]

    def to_json(self) -> Dict[str, Any]:
        return {
            "Address": self.provider_address,
            "StateHeight": self.state_height,
            "MinerBalance": self.balance.to_json(),
            "MinerPower": self.power,
            "MinerSectors": self.sector_counts.to_json(),
            "MinerSectorsState": None if self.sectors_state is None else self.sectors_state.to_json(),
            "MinerInfo": self.info,
        }


@dataclass(frozen=True)
class NetworkPowerReport:
    height: int
    quality_adj_power: int
    power_str: str

    def to_json(self) -> Dict[str, Any]:
        return {"Height": self.height, "Power": str(self.quality_adj_power), "PowerStr": self.power_str}


@dataclass(frozen=True)
class AddressDescription:
    id: str
    filecoin: str
    eth: str
    type: str

    def to_json(self) -> Dict[str, Any]:
        return {"ID": self.id, "Filecoin": self.filecoin, "Eth": self.eth, "Type": self.type}
