from datetime import date, datetime, timedelta

import pytest
from conftest import SECTOR_SIZE, sector

from filecoin_utils.batch import DailyScheduler, collect_all, next_midnight
from filecoin_utils.errors import ActorNotFound, QueryFailure

AS_OF = date(2024, 1, 1)


@pytest.fixture
def network(fake_query):
    fake_query.add_miner("f01002", [sector(1)])
    fake_query.add_miner("f01000", [sector(1), sector(2, expiration=2_600_000)])
    fake_query.add_miner("f01001", [sector(1)])
    return fake_query


def test_collect_all_merges_sorted(network):
    result = collect_all(network, network.head, AS_OF, max_workers=2)
    assert [r.provider_address for r in result.reports] == ["f01000", "f01001", "f01002"]
    assert result.provider_count == 3
    assert result.record_count == 4
    assert result.failures == {}
    assert result.reports[0].total_power == 2 * SECTOR_SIZE


def test_collect_all_isolates_failures(network):
    network.failing["f01001"] = QueryFailure("HTTP 504: Gateway Timeout")
    network.failing["f01002"] = ActorNotFound("f01002")
    result = collect_all(network, network.head, AS_OF, max_workers=4)
    assert [r.provider_address for r in result.reports] == ["f01000"]
    assert set(result.failures) == {"f01001", "f01002"}
    assert result.to_json()["MinerNumber"] == 1


def test_collect_all_explicit_providers(network):
    result = collect_all(network, network.head, AS_OF, max_workers=1, providers=["f01001"])
    assert [r.provider_address for r in result.reports] == ["f01001"]


def test_collect_all_programming_errors_propagate(network):
    network.failing["f01000"] = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        collect_all(network, network.head, AS_OF)


def test_collect_all_rejects_zero_workers(network):
    with pytest.raises(ValueError):
        collect_all(network, network.head, AS_OF, max_workers=0)


def test_batch_json(network):
    data = collect_all(network, network.head, AS_OF).to_json()
    assert data["Height"] == network.head.height
    assert data["Time"] == "2024-01-01"
    assert data["RecordNumber"] == 4
    assert [m["MinerId"] for m in data["Miners"]] == ["f01000", "f01001", "f01002"]


def test_next_midnight():
    assert next_midnight(datetime(2024, 1, 1, 13, 5)) == datetime(2024, 1, 2)
    assert next_midnight(datetime(2024, 2, 28, 0, 0)) == datetime(2024, 2, 29)
    assert next_midnight(datetime(2023, 12, 31, 23, 59)) == datetime(2024, 1, 1)


class Clock:
    def __init__(self, start):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def test_scheduler_runs_now_then_daily():
    clock = Clock(datetime(2024, 1, 1, 10))
    started = []

    def job():
        started.append(clock.now)
        clock.now += timedelta(hours=1)

    runs = DailyScheduler(job, now=clock, sleep=clock.sleep).run(max_runs=3)
    assert runs == 3
    assert started == [datetime(2024, 1, 1, 10), datetime(2024, 1, 2), datetime(2024, 1, 3)]
    assert clock.sleeps == [13 * 3600, 23 * 3600]


def test_scheduler_survives_failed_run():
    clock = Clock(datetime(2024, 1, 1, 23))
    calls = []

    def job():
        calls.append(clock.now)
        if len(calls) == 1:
            raise QueryFailure("node down")

    assert DailyScheduler(job, now=clock, sleep=clock.sleep).run(max_runs=2) == 2
    assert calls == [datetime(2024, 1, 1, 23), datetime(2024, 1, 2)]


def test_scheduler_does_not_overlap_long_runs():
    clock = Clock(datetime(2024, 1, 1, 22))

    def job():
        # runs past midnight
        clock.now += timedelta(hours=3)

    DailyScheduler(job, now=clock, sleep=clock.sleep).run(max_runs=2)
    # second run waits for the midnight after the first one finished
    assert clock.sleeps == [23 * 3600]


def test_scheduler_survives_unexpected_errors():
    clock = Clock(datetime(2024, 1, 1, 23))
    calls = []

    def job():
        calls.append(clock.now)
        if len(calls) == 1:
            raise OSError("disk full")

    assert DailyScheduler(job, now=clock, sleep=clock.sleep).run(max_runs=2) == 2
    assert calls == [datetime(2024, 1, 1, 23), datetime(2024, 1, 2)]
