import json

import pytest
from conftest import FakeChainQuery, sector

from filecoin_utils import cli


@pytest.fixture
def fake(monkeypatch):
    for var in ("FULLNODE_API_INFO", "FILECOIN_RPC_URL", "FILECOIN_RPC_TOKEN", "FILECOIN_UTILS_WORKERS"):
        monkeypatch.delenv(var, raising=False)
    query = FakeChainQuery()
    query.add_miner("f01000", [sector(1)], [sector(2)])
    monkeypatch.setattr(cli, "_query", lambda args, settings: query)
    return query


def _run(capsys, *argv):
    code = cli.main(list(argv))
    return code, capsys.readouterr().out


def test_power(fake, capsys):
    code, out = _run(capsys, "power")
    assert code == 0
    assert json.loads(out)["PowerStr"] == "20 EiB"


def test_epoch_flag(fake, capsys):
    code, out = _run(capsys, "--epoch", "1234", "power")
    assert code == 0
    assert json.loads(out)["Height"] == 1234


def test_miner_list(fake, capsys):
    _, out = _run(capsys, "miner", "list")
    assert json.loads(out) == ["f01000"]


def test_estimate_faulty(fake, capsys):
    code, out = _run(capsys, "miner", "estimate-faulty", "f01000", "-p", "0", "-n", "1")
    assert code == 0
    assert json.loads(out)["Terminate"]["Count"] == 1


def test_miner_state_no_terminate(fake, capsys):
    _, out = _run(capsys, "miner", "state", "f01000", "--no-terminate")
    assert json.loads(out)["MinerSectorsState"] is None


def test_collect_sectors_once(fake, capsys):
    code, out = _run(capsys, "miner", "cs", "--once", "--workers", "2")
    assert code == 0
    assert json.loads(out)["MinerNumber"] == 1


def test_out_file(fake, capsys, tmp_path):
    path = tmp_path / "cm.json"
    code, out = _run(capsys, "--out", str(path), "miner", "collect-miner", "f01000")
    assert code == 0
    assert out == ""
    assert json.loads(path.read_text(encoding="utf-8"))["MinerId"] == "f01000"


def test_errors_exit_nonzero(fake, capsys):
    code, out = _run(capsys, "miner", "state", "not-an-address")
    assert code == 1
    assert out == ""


def test_bad_worker_env(monkeypatch, capsys):
    monkeypatch.setenv("FILECOIN_UTILS_WORKERS", "0")
    assert cli.main(["power"]) == 2
