from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from filecoin_utils.errors import ActorNotFound
from filecoin_utils.lotus import SectorFilter
from filecoin_utils.smoothing import FilterEstimate
from filecoin_utils.types import GIB, ProviderInfo, SectorRecord, TipSetRef

SECTOR_SIZE = 32 * GIB

# 1 attoFIL per epoch over 2^40 bytes of network QA power.
REWARD = FilterEstimate(position=1 << 128)
POWER = FilterEstimate(position=1 << 168)

HEAD = 3_000_000


def sector(
    number: int = 0,
    *,
    activation: int = 2_000_000,
    expiration: Optional[int] = None,
    deal_ids=(),
    deal_weight: int = 0,
    verified_deal_weight: int = 0,
    day_reward: int = 5760,
    storage_pledge: int = 1000,
    initial_pledge: int = 0,
    replaced_day_reward: int = 0,
    replaced_activation: Optional[int] = None,
    size: int = SECTOR_SIZE,
) -> SectorRecord:
    return SectorRecord(
        size=size,
        activation_epoch=activation,
        expiration_epoch=activation + 518_400 if expiration is None else expiration,
        deal_weight=deal_weight,
        verified_deal_weight=verified_deal_weight,
        initial_pledge=initial_pledge,
        expected_day_reward=day_reward,
        expected_storage_pledge=storage_pledge,
        replaced_day_reward=replaced_day_reward,
        replaced_sector_activation_epoch=replaced_activation,
        sector_number=number,
        deal_ids=tuple(deal_ids),
    )


class FakeChainQuery:
    """In-memory stand-in for LotusChainQuery."""

    def __init__(self, height: int = HEAD):
        self.head = TipSetRef(height=height, key=("bafyhead",))
        self.sector_size = SECTOR_SIZE
        self.reward = REWARD
        self.power = POWER
        self.miners: List[str] = []
        self.sectors: Dict[str, Dict[SectorFilter, List[SectorRecord]]] = {}
        self.failing: Dict[str, Exception] = {}
        self.actors: Dict[str, Dict[str, Any]] = {}
        self.ids: Dict[str, str] = {}
        self.account_keys: Dict[str, str] = {}
        self.total_qa_power = 20 * (1 << 60)

    def add_miner(self, maddr: str, live: List[SectorRecord], faulty: Optional[List[SectorRecord]] = None) -> None:
        self.miners.append(maddr)
        self.sectors[maddr] = {
            SectorFilter.ALL: list(live) + list(faulty or []),
            SectorFilter.LIVE: list(live),
            SectorFilter.FAULTY: list(faulty or []),
        }

    def _check(self, maddr: str) -> None:
        if maddr in self.failing:
            raise self.failing[maddr]

    def chain_head(self) -> TipSetRef:
        return self.head

    def tipset_by_height(self, height: int) -> TipSetRef:
        return TipSetRef(height=height, key=(f"bafy{height}",))

    def get_provider_info(self, maddr: str, ref: TipSetRef) -> ProviderInfo:
        self._check(maddr)
        return ProviderInfo(sector_size=self.sector_size)

    def get_sector_records(self, maddr: str, ref: TipSetRef, sector_filter: SectorFilter = SectorFilter.ALL):
        self._check(maddr)
        return list(self.sectors.get(maddr, {}).get(sector_filter, []))

    def get_network_reward_series(self, ref: TipSetRef) -> FilterEstimate:
        return self.reward

    def get_network_power_series(self, ref: TipSetRef) -> FilterEstimate:
        return self.power

    def list_miners(self, ref: TipSetRef) -> List[str]:
        return list(self.miners)

    def miner_info(self, maddr: str, ref: TipSetRef) -> Dict[str, Any]:
        self._check(maddr)
        return {"SectorSize": self.sector_size, "Owner": "f0100", "Worker": "f0101"}

    def miner_power(self, maddr: str, ref: TipSetRef) -> Dict[str, Any]:
        return {
            "MinerPower": {"RawBytePower": "0", "QualityAdjPower": "0"},
            "TotalPower": {"RawBytePower": str(self.total_qa_power), "QualityAdjPower": str(self.total_qa_power)},
            "HasMinPower": False,
        }

    def wallet_balance(self, maddr: str) -> int:
        return 500

    def miner_available_balance(self, maddr: str, ref: TipSetRef) -> int:
        return 100

    def miner_locked_funds(self, maddr: str, ref: TipSetRef) -> Dict[str, int]:
        return {"InitialPledge": 300, "VestingFunds": 90, "PreCommitDeposits": 10}

    def miner_sector_count(self, maddr: str, ref: TipSetRef) -> Dict[str, int]:
        live = self.sectors.get(maddr, {}).get(SectorFilter.LIVE, [])
        faulty = self.sectors.get(maddr, {}).get(SectorFilter.FAULTY, [])
        return {"Live": len(live) + len(faulty), "Active": len(live), "Faulty": len(faulty)}

    def miner_recoveries(self, maddr: str, ref: TipSetRef) -> int:
        return 0

    def lookup_id(self, address: str, ref: TipSetRef) -> str:
        if address not in self.ids:
            raise ActorNotFound(address)
        return self.ids[address]

    def account_key(self, address: str, ref: TipSetRef) -> str:
        if address not in self.account_keys:
            raise ActorNotFound(address)
        return self.account_keys[address]

    def get_actor(self, address: str, ref: TipSetRef) -> Dict[str, Any]:
        if address not in self.actors:
            raise ActorNotFound(address)
        return self.actors[address]

    def network_version(self, ref: TipSetRef) -> int:
        return 21

    def actor_code_names(self, network_version: int) -> Dict[str, str]:
        return {"bafyminer": "storageminer", "bafyaccount": "account", "bafyevm": "evm"}


@pytest.fixture
def fake_query() -> FakeChainQuery:
    return FakeChainQuery()
