"""
Lotus full-node JSON-RPC client and the chain queries the reports consume.

Every query takes a `TipSetRef` so a whole report is read from one chain
snapshot. Transient transport failures are retried here (exponential backoff
with jitter, Retry-After honoured); everything else surfaces as a
`QueryFailure` subclass.
"""

from __future__ import annotations

import enum
import itertools
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from . import bitfield
from .errors import ActorNotFound, ActorStateDecodeError, RpcError
from .smoothing import FilterEstimate
from .types import ProviderInfo, SectorRecord, TipSetRef, parse_big

log = logging.getLogger(__name__)

# Builtin actors (ID addresses)
F_REWARD = "f02"
F_POWER = "f04"

# WPoStPeriodDeadlines
DEADLINES_PER_PROVING_PERIOD = 48

USER_AGENT = "filecoin-utils/0.1"

_RETRYABLE_MESSAGES = (
    "timeout",
    "timed out",
    "too many requests",
    "rate limit",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "connection reset",
    "connection aborted",
)


class SectorFilter(enum.Enum):
    ALL = "all"
    LIVE = "live"
    FAULTY = "faulty"


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        token: Optional[str] = None,
        timeout_s: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.session.headers.update({"content-type": "application/json", "user-agent": USER_AGENT})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})
        self._ids = itertools.count(1)

    def call(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self.session.post(self.rpc_url, json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise RpcError(f"RPC transport error: {e}") from e

        if resp.status_code >= 400:
            retry_after_s: int | None = None
            ra = resp.headers.get("Retry-After")
            if isinstance(ra, str) and ra.strip().isdigit():
                retry_after_s = int(ra.strip())
            raise RpcError(f"HTTP {resp.status_code}: {resp.reason}", status_code=resp.status_code, retry_after_s=retry_after_s)

        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(f"invalid JSON-RPC response: {resp.text[:200]!r}") from e

        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            msg = err.get("message") if isinstance(err, dict) else str(err)
            raise RpcError(f"{method}: {msg}")
        return data.get("result") if isinstance(data, dict) else data


def _is_retryable(e: RpcError) -> bool:
    if e.status_code in (429, 502, 503, 504):
        return True
    msg = str(e).lower()
    return any(s in msg for s in _RETRYABLE_MESSAGES)


def rpc_with_retries(
    client: RpcClient,
    method: str,
    params: list,
    *,
    max_tries: int = 8,
    max_backoff_s: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    for attempt in range(1, max_tries + 1):
        try:
            return client.call(method, params)
        except RpcError as e:
            if not _is_retryable(e) or attempt == max_tries:
                raise

            sleep_s = min(2 ** (attempt - 1), max_backoff_s)
            if isinstance(e.retry_after_s, int) and e.retry_after_s > 0:
                sleep_s = max(sleep_s, float(e.retry_after_s))
            sleep_s = sleep_s * (1 + random.uniform(-0.15, 0.15))
            log.warning("%s failed (%s), retry %d/%d in %.1fs", method, e, attempt, max_tries - 1, sleep_s)
            sleep(max(0.5, sleep_s))


class LotusChainQuery:
    """Chain queries against a Lotus full node, keyed by tipset."""

    def __init__(self, client: RpcClient, *, max_tries: int = 8, sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.max_tries = max_tries
        self._sleep = sleep

    def _call(self, method: str, *params: Any) -> Any:
        return rpc_with_retries(self.client, f"Filecoin.{method}", list(params), max_tries=self.max_tries, sleep=self._sleep)

    def _call_actor(self, address: str, method: str, *params: Any) -> Any:
        try:
            return self._call(method, *params)
        except RpcError as e:
            if "actor not found" in str(e).lower():
                raise ActorNotFound(address) from e
            raise

    # tipsets

    @staticmethod
    def _tipset_ref(ts: Any) -> TipSetRef:
        if not isinstance(ts, dict) or "Height" not in ts:
            raise ActorStateDecodeError(f"unexpected tipset: {ts!r}")
        cids = tuple(c["/"] for c in (ts.get("Cids") or []) if isinstance(c, dict) and "/" in c)
        return TipSetRef(height=int(ts["Height"]), key=cids)

    def chain_head(self) -> TipSetRef:
        return self._tipset_ref(self._call("ChainHead"))

    def tipset_by_height(self, height: int) -> TipSetRef:
        return self._tipset_ref(self._call("ChainGetTipSetByHeight", height, None))

    # actors

    def get_actor(self, address: str, ref: TipSetRef) -> Dict[str, Any]:
        res = self._call_actor(address, "StateGetActor", address, ref.to_param())
        if not isinstance(res, dict):
            raise ActorNotFound(address)
        return res

    def read_state(self, address: str, ref: TipSetRef) -> Dict[str, Any]:
        res = self._call_actor(address, "StateReadState", address, ref.to_param())
        if not isinstance(res, dict) or not isinstance(res.get("State"), dict):
            raise ActorStateDecodeError(f"unexpected StateReadState response for {address}: {res!r}")
        return dict(res["State"])

    def lookup_id(self, address: str, ref: TipSetRef) -> str:
        return str(self._call_actor(address, "StateLookupID", address, ref.to_param()))

    def account_key(self, address: str, ref: TipSetRef) -> str:
        return str(self._call_actor(address, "StateAccountKey", address, ref.to_param()))

    def network_version(self, ref: TipSetRef) -> int:
        return int(self._call("StateNetworkVersion", ref.to_param()))

    def actor_code_names(self, network_version: int) -> Dict[str, str]:
        res = self._call("StateActorCodeCIDs", network_version)
        if not isinstance(res, dict):
            raise ActorStateDecodeError(f"unexpected StateActorCodeCIDs response: {res!r}")
        return {cid["/"]: name for name, cid in res.items() if isinstance(cid, dict) and "/" in cid}

    # network series

    def get_network_reward_series(self, ref: TipSetRef) -> FilterEstimate:
        state = self.read_state(F_REWARD, ref)
        return FilterEstimate.from_lotus(state.get("ThisEpochRewardSmoothed"))

    def get_network_power_series(self, ref: TipSetRef) -> FilterEstimate:
        state = self.read_state(F_POWER, ref)
        return FilterEstimate.from_lotus(state.get("ThisEpochQAPowerSmoothed"))

    # miners

    def list_miners(self, ref: TipSetRef) -> List[str]:
        res = self._call("StateListMiners", ref.to_param())
        return [str(m) for m in (res or [])]

    def miner_info(self, address: str, ref: TipSetRef) -> Dict[str, Any]:
        res = self._call_actor(address, "StateMinerInfo", address, ref.to_param())
        if not isinstance(res, dict) or "SectorSize" not in res:
            raise ActorStateDecodeError(f"unexpected StateMinerInfo response for {address}: {res!r}")
        return res

    def get_provider_info(self, address: str, ref: TipSetRef) -> ProviderInfo:
        info = self.miner_info(address, ref)
        return ProviderInfo(sector_size=int(info["SectorSize"]))

    def miner_power(self, address: str, ref: TipSetRef) -> Dict[str, Any]:
        res = self._call_actor(address, "StateMinerPower", address, ref.to_param())
        if not isinstance(res, dict):
            raise ActorStateDecodeError(f"unexpected StateMinerPower response for {address}: {res!r}")
        return res

    def wallet_balance(self, address: str) -> int:
        return parse_big(self._call("WalletBalance", address), name="WalletBalance")

    def miner_available_balance(self, address: str, ref: TipSetRef) -> int:
        res = self._call_actor(address, "StateMinerAvailableBalance", address, ref.to_param())
        return parse_big(res, name="StateMinerAvailableBalance")

    def miner_locked_funds(self, address: str, ref: TipSetRef) -> Dict[str, int]:
        state = self.read_state(address, ref)
        return {
            "InitialPledge": parse_big(state.get("InitialPledge"), name="InitialPledge"),
            "VestingFunds": parse_big(state.get("LockedFunds"), name="LockedFunds"),
            "PreCommitDeposits": parse_big(state.get("PreCommitDeposits"), name="PreCommitDeposits"),
        }

    def miner_sector_count(self, address: str, ref: TipSetRef) -> Dict[str, int]:
        res = self._call_actor(address, "StateMinerSectorCount", address, ref.to_param())
        if not isinstance(res, dict):
            raise ActorStateDecodeError(f"unexpected StateMinerSectorCount response for {address}: {res!r}")
        return {k: int(res.get(k) or 0) for k in ("Live", "Active", "Faulty")}

    def miner_recoveries(self, address: str, ref: TipSetRef) -> int:
        return bitfield.count(self._call_actor(address, "StateMinerRecoveries", address, ref.to_param()))

    def sector_numbers(self, address: str, ref: TipSetRef, sector_filter: SectorFilter) -> Optional[List[int]]:
        """Bitfield (run-length list) selecting the sectors; None means every sector."""
        if sector_filter is SectorFilter.ALL:
            return None
        if sector_filter is SectorFilter.FAULTY:
            faults = self._call_actor(address, "StateMinerFaults", address, ref.to_param())
            bitfield.count(faults)  # validates the run list
            return faults or []

        live: List[List[int]] = []
        for dl_idx in range(DEADLINES_PER_PROVING_PERIOD):
            partitions = self._call_actor(address, "StateMinerPartitions", address, dl_idx, ref.to_param()) or []
            if not isinstance(partitions, list):
                raise ActorStateDecodeError(f"unexpected StateMinerPartitions response for {address}: {partitions!r}")
            for part in partitions:
                if not isinstance(part, dict):
                    raise ActorStateDecodeError(f"unexpected StateMinerPartitions response for {address}: {part!r}")
                live.append(part.get("LiveSectors") or [])
        return bitfield.union(*live)

    def get_sector_records(
        self,
        address: str,
        ref: TipSetRef,
        sector_filter: SectorFilter = SectorFilter.ALL,
    ) -> List[SectorRecord]:
        selection = self.sector_numbers(address, ref, sector_filter)
        if selection is not None and bitfield.count(selection) == 0:
            return []
        res = self._call_actor(address, "StateMinerSectors", address, selection, ref.to_param())
        return [SectorRecord.from_lotus(obj) for obj in (res or [])]
