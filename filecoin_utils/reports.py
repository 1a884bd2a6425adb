"""
Report builders.

Each builder reads everything it needs from a chain query object (see
`lotus.LotusChainQuery` for the methods used) against a single `TipSetRef`,
hands the records to the calculators, and returns a plain report value.
Errors propagate unchanged: a single report either completes or fails with the
first error.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Tuple

from .address import (
    ACTOR,
    BLS,
    DELEGATED,
    ID,
    SECP256K1,
    Address,
    eth_from_filecoin,
    parse_address,
    parse_any,
    to_checksum_eth,
)
from .errors import ActorNotFound, QueryFailure
from .expiration import DEFAULT_ANCHOR, CalendarAnchor, aggregate_sector_expirations
from .fixed_point import big_sum
from .lotus import SectorFilter
from .params import DEFAULT_PARAMS, ProtocolParams
from .penalty import split_termination_penalty, termination_penalty
from .power import raw_power_for_sectors
from .types import (
    AddressDescription,
    ExpirationReport,
    MinerBalance,
    MinerSectorCounts,
    MinerSectorsState,
    MinerSectorsSummary,
    MinerStateReport,
    NetworkPowerReport,
    PenaltyReport,
    TipSetRef,
    parse_big,
)
from .units import fil_short, size_str

log = logging.getLogger(__name__)


def _miner_address(address: str) -> str:
    # Validate before touching the node so a typo fails as InvalidAddress.
    return str(parse_address(address.strip()))


def estimate_faulty(
    query: Any,
    address: str,
    ref: TipSetRef,
    pos: int = 0,
    number: Optional[int] = None,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> PenaltyReport:
    """Fee for terminating the provider's faulty sectors `[pos, pos + number)`.

    `number=None` selects everything from `pos` on. A window that does not fit
    inside the faulty set falls back to the whole set.
    """
    maddr = _miner_address(address)
    info = query.get_provider_info(maddr, ref)
    faulty = query.get_sector_records(maddr, ref, SectorFilter.FAULTY)
    reward_estimate = query.get_network_reward_series(ref)
    power_estimate = query.get_network_power_series(ref)

    total = len(faulty)
    if number is None:
        number = total - pos
    selected = faulty
    if 0 <= pos and number >= 0 and pos + number <= total:
        selected = faulty[pos : pos + number]

    fine = termination_penalty(ref.height, reward_estimate, power_estimate, selected, params)
    log.debug("estimate-faulty %s: %d/%d sectors, fine %d", maddr, len(selected), total, fine)

    return PenaltyReport(
        current_epoch=ref.height,
        provider_address=maddr,
        total_faulty_or_live_count=total,
        terminated_count=len(selected),
        lost_power=size_str(raw_power_for_sectors(info.sector_size, len(selected))),
        fine_amount=fine,
        fine_reward=fil_short(fine),
        sectors=list(selected),
    )


def miner_sectors(query: Any, address: str, ref: TipSetRef, pledge_only: bool = False) -> MinerSectorsSummary:
    maddr = _miner_address(address)
    sectors = query.get_sector_records(maddr, ref, SectorFilter.ALL)

    summary = MinerSectorsSummary(provider_address=maddr, height=ref.height)
    for s in sectors:
        summary.all_initial_pledge += s.initial_pledge
        summary.all_expected_day_reward += s.expected_day_reward
        summary.all_expected_storage_pledge += s.expected_storage_pledge
        summary.all_replaced_day_reward += s.replaced_day_reward

    if not pledge_only:
        summary.sectors = sectors
    return summary


def miner_state(
    query: Any,
    address: str,
    ref: TipSetRef,
    calc_terminate: bool = True,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> MinerStateReport:
    maddr = _miner_address(address)

    locked = query.miner_locked_funds(maddr, ref)
    balance = MinerBalance(
        balance=query.wallet_balance(maddr),
        available_balance=query.miner_available_balance(maddr, ref),
        initial_pledge=locked["InitialPledge"],
        locked_rewards=locked["VestingFunds"],
        pre_commit_deposits=locked["PreCommitDeposits"],
    )

    counts = query.miner_sector_count(maddr, ref)
    sector_counts = MinerSectorCounts(
        live=counts["Live"],
        active=counts["Active"],
        faulty=counts["Faulty"],
        recoveries=query.miner_recoveries(maddr, ref),
    )

    sectors_state: Optional[MinerSectorsState] = None
    if calc_terminate:
        reward_estimate = query.get_network_reward_series(ref)
        power_estimate = query.get_network_power_series(ref)
        live = query.get_sector_records(maddr, ref, SectorFilter.LIVE)
        split = split_termination_penalty(ref.height, reward_estimate, power_estimate, live, params)
        sectors_state = MinerSectorsState(
            cc_count=split.cc_count,
            dc_count=split.dc_count,
            all_initial_pledge=big_sum(*(s.initial_pledge for s in live)),
            terminate_all_fine=split.all,
            terminate_cc_fine=split.cc,
            terminate_dc_fine=split.dc,
        )

    return MinerStateReport(
        provider_address=maddr,
        state_height=ref.height,
        balance=balance,
        power=query.miner_power(maddr, ref),
        sector_counts=sector_counts,
        sectors_state=sectors_state,
        info=query.miner_info(maddr, ref),
    )


def collect_miner(
    query: Any,
    address: str,
    ref: TipSetRef,
    as_of: date,
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> ExpirationReport:
    """QA power of the provider's live sectors, bucketed by expiration date."""
    maddr = _miner_address(address)
    info = query.get_provider_info(maddr, ref)
    live = query.get_sector_records(maddr, ref, SectorFilter.LIVE)
    return aggregate_sector_expirations(maddr, as_of, info.sector_size, live, anchor, params)


def network_power(query: Any, ref: TipSetRef) -> NetworkPowerReport:
    miners = query.list_miners(ref)
    if not miners:
        raise QueryFailure("StateListMiners returned no miners")
    power = query.miner_power(miners[0], ref)
    total = power.get("TotalPower") if isinstance(power, dict) else None
    qa = parse_big((total or {}).get("QualityAdjPower"), name="QualityAdjPower")
    return NetworkPowerReport(height=ref.height, quality_adj_power=qa, power_str=size_str(qa))


def _eth_and_filecoin(query: Any, addr: Address, ref: TipSetRef) -> Tuple[bytes, Address]:
    if addr.protocol in (BLS, SECP256K1):
        faddr = parse_address(query.lookup_id(str(addr), ref))
    elif addr.protocol in (ACTOR, ID):
        faddr = parse_address(query.lookup_id(str(addr), ref))
        actor = query.get_actor(str(faddr), ref)
        delegated = actor.get("DelegatedAddress")
        if delegated:
            d = parse_address(delegated)
            if d.protocol == DELEGATED:
                faddr = d
    else:
        faddr = addr
    return eth_from_filecoin(faddr), faddr


def describe_address(query: Any, address: str, ref: TipSetRef) -> AddressDescription:
    """ID / Filecoin / Eth forms of an id, f-address or 0x address, plus its actor type."""
    faddr, eaddr = parse_any(address)
    if eaddr is None:
        eaddr, faddr = _eth_and_filecoin(query, faddr, ref)

    filecoin = str(faddr)
    try:
        filecoin = query.account_key(filecoin, ref)
    except (ActorNotFound, QueryFailure) as e:
        log.debug("no account key for %s: %s", filecoin, e)

    try:
        actor = query.get_actor(filecoin, ref)
    except (ActorNotFound, QueryFailure) as e:
        log.debug("no actor for %s: %s", filecoin, e)
        return AddressDescription(id="unknown", filecoin=filecoin, eth=to_checksum_eth(eaddr), type="unknown")

    try:
        actor_id = query.lookup_id(filecoin, ref)
    except (ActorNotFound, QueryFailure):
        actor_id = "n/a"

    code = (actor.get("Code") or {}).get("/")
    names = query.actor_code_names(query.network_version(ref))
    return AddressDescription(id=actor_id, filecoin=filecoin, eth=to_checksum_eth(eaddr), type=names.get(code, "unknown"))
