from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple

from .params import DEFAULT_PARAMS, EPOCHS_PER_DAY, ProtocolParams
from .power import qa_power_for_sector
from .types import ExpirationBucket, ExpirationReport, SectorRecord

DATE_LAYOUT = "%Y-%m-%d"


@dataclass(frozen=True)
class CalendarAnchor:
    epoch: int
    day: date
    epochs_per_day: int = EPOCHS_PER_DAY

    def days_from_anchor(self, epoch: int) -> int:
        # Truncates toward zero, so epochs up to one day *before* the anchor
        # land on the anchor date. Kept for parity with the published reports.
        diff = epoch - self.epoch
        days = abs(diff) // self.epochs_per_day
        return days if diff >= 0 else -days

    def date_for_epoch(self, epoch: int) -> date:
        return self.day + timedelta(days=self.days_from_anchor(epoch))


DEFAULT_ANCHOR = CalendarAnchor(epoch=2706480, day=date(2023, 3, 23))


def aggregate_expirations(
    provider_address: str,
    as_of: date,
    sectors: Iterable[Tuple[SectorRecord, int]],
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
) -> ExpirationReport:
    """Bucket (sector, qa_power) pairs by calendar expiration date.

    Buckets come back sorted by date; the report also carries the summed QA
    power over every sector.
    """
    as_of_str = as_of.strftime(DATE_LAYOUT)
    cc_by_day: Dict[str, int] = {}
    dc_by_day: Dict[str, int] = {}
    total = 0
    for sector, power in sectors:
        key = anchor.date_for_epoch(sector.expiration_epoch).strftime(DATE_LAYOUT)
        cc_by_day.setdefault(key, 0)
        dc_by_day.setdefault(key, 0)
        if sector.has_deals:
            dc_by_day[key] += power
        else:
            cc_by_day[key] += power
        total += power

    buckets: List[ExpirationBucket] = [
        ExpirationBucket(
            provider_address=provider_address,
            as_of_date=as_of_str,
            expiration_date=day,
            aggregate_power=cc_by_day[day] + dc_by_day[day],
            cc_power=cc_by_day[day],
            dc_power=dc_by_day[day],
        )
        for day in sorted(cc_by_day)
    ]
    return ExpirationReport(provider_address=provider_address, buckets=buckets, total_power=total)


def aggregate_sector_expirations(
    provider_address: str,
    as_of: date,
    sector_size: int,
    sectors: Iterable[SectorRecord],
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
    params: ProtocolParams = DEFAULT_PARAMS,
) -> ExpirationReport:
    pairs = ((s, qa_power_for_sector(s, sector_size, params)) for s in sectors)
    return aggregate_expirations(provider_address, as_of, pairs, anchor)
