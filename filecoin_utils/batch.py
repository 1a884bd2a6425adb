"""
Network-wide expiration collection.

`collect_all` computes the expiration buckets of every provider, with a
bounded thread pool in front of the chain query object. Workers return their
own report; the coordinator merges them once each future completes. A
provider whose queries fail is logged, recorded in `BatchResult.failures`,
and skipped.

`DailyScheduler` repeats a job once per calendar day. A run is submitted as a
future and waited on before the next run is scheduled, so runs never overlap.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .config import DEFAULT_WORKERS
from .errors import ActorNotFound, ActorStateDecodeError, InvalidAddress, QueryFailure
from .expiration import DEFAULT_ANCHOR, CalendarAnchor
from .params import DEFAULT_PARAMS, ProtocolParams
from .reports import collect_miner
from .types import ExpirationReport, TipSetRef

log = logging.getLogger(__name__)

# Per-provider errors that must not abort the rest of the batch.
PROVIDER_ERRORS = (QueryFailure, ActorNotFound, ActorStateDecodeError, InvalidAddress)


@dataclass
class BatchResult:
    height: int
    as_of: str
    reports: List[ExpirationReport] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def provider_count(self) -> int:
        return len(self.reports)

    @property
    def record_count(self) -> int:
        return sum(len(r.buckets) for r in self.reports)

    def to_json(self) -> Dict[str, Any]:
        return {
            "Height": self.height,
            "Time": self.as_of,
            "MinerNumber": self.provider_count,
            "RecordNumber": self.record_count,
            "Miners": [r.to_json() for r in self.reports],
            "Failures": dict(sorted(self.failures.items())),
        }


def collect_all(
    query: Any,
    ref: TipSetRef,
    as_of: date,
    *,
    max_workers: int = DEFAULT_WORKERS,
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
    params: ProtocolParams = DEFAULT_PARAMS,
    providers: Optional[List[str]] = None,
) -> BatchResult:
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if providers is None:
        providers = query.list_miners(ref)

    t0 = time.monotonic()
    result = BatchResult(height=ref.height, as_of=as_of.isoformat())
    by_provider: Dict[str, ExpirationReport] = {}
    total = len(providers)

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_provider = {
            executor.submit(collect_miner, query, maddr, ref, as_of, anchor, params): maddr for maddr in providers
        }
        for done, future in enumerate(concurrent.futures.as_completed(future_to_provider), start=1):
            maddr = future_to_provider[future]
            try:
                by_provider[maddr] = future.result()
            except PROVIDER_ERRORS as e:
                log.warning("skipping %s: %s", maddr, e)
                result.failures[maddr] = str(e)
            if done % 100 == 0 or done == total:
                log.info("[%d/%d] providers collected (%d failed)", done, total, len(result.failures))

    result.reports = [by_provider[m] for m in sorted(by_provider)]
    log.info(
        "collected %d providers, %d expiration records in %.1fs",
        result.provider_count,
        result.record_count,
        time.monotonic() - t0,
    )
    return result


def next_midnight(now: datetime) -> datetime:
    return datetime(now.year, now.month, now.day, tzinfo=now.tzinfo) + timedelta(days=1)


class DailyScheduler:
    """Run `job` now, then at each following local midnight, one run at a time."""

    def __init__(
        self,
        job: Callable[[], Any],
        *,
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.job = job
        self._now = now
        self._sleep = sleep

    def run(self, max_runs: Optional[int] = None) -> int:
        runs = 0
        next_at = self._now()
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            while max_runs is None or runs < max_runs:
                delay = (next_at - self._now()).total_seconds()
                if delay > 0:
                    log.info("next run at %s", next_at.isoformat())
                    self._sleep(delay)

                log.info("executing scheduled run")
                future = executor.submit(self.job)
                try:
                    future.result()
                except Exception:
                    log.exception("scheduled run failed")
                runs += 1
                next_at = next_midnight(self._now())
        return runs
