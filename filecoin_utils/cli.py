#!/usr/bin/env python3
"""
filecoin-utils: storage provider economics from a Lotus full node.

Commands
--------
  addr-description ADDRESS          ID / Filecoin / Eth forms and actor type
  power                             network QA power
  miner list                        every storage provider
  miner state ADDRESS               balances, power, sector counts, termination fees
  miner sectors ADDRESS             pledge / reward totals over all sectors
  miner estimate-faulty ADDRESS     termination fee for (a window of) faulty sectors
  miner collect-miner ADDRESS       QA power of live sectors by expiration date
  miner collect-sectors             collect-miner for every provider, once a day

Node access comes from FULLNODE_API_INFO, or FILECOIN_RPC_URL (+ FILECOIN_RPC_TOKEN),
or the --rpc-url / --token flags.
"""

from __future__ import annotations

import argparse
import logging
import sys
import traceback
from datetime import date
from typing import Callable, List, Optional

from . import __version__
from .batch import DailyScheduler, collect_all
from .config import Settings
from .errors import FilecoinUtilsError
from .lotus import LotusChainQuery, RpcClient
from .reports import collect_miner, describe_address, estimate_faulty, miner_sectors, miner_state, network_power
from .sink import JsonSink
from .types import TipSetRef

log = logging.getLogger("filecoin_utils")


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="filecoin-utils", description="Filecoin storage provider economics.")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--rpc-url", default=settings.rpc_url)
    parser.add_argument("--token", default=settings.token)
    parser.add_argument("--epoch", type=int, default=None, help="Read state at this height instead of the head.")
    parser.add_argument("--out", default=None, help="Write the report to this file instead of stdout.")
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--debug", action="store_true", help="Log tracebacks on failure.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("addr-description", aliases=["addrdescription"], help="Get ID/Fil/Eth address from id/fil/eth address")
    p.add_argument("address")
    p.set_defaults(handler=_cmd_addr_description)

    p = sub.add_parser("power", help="Network quality-adjusted power")
    p.set_defaults(handler=_cmd_power)

    miner = sub.add_parser("miner", help="Storage provider reports").add_subparsers(dest="miner_command", required=True)

    p = miner.add_parser("list", help="Miner list")
    p.set_defaults(handler=_cmd_miner_list)

    p = miner.add_parser("state", help="Miner state")
    p.add_argument("address")
    p.add_argument("--no-terminate", action="store_true", help="Skip the termination fee calculation.")
    p.set_defaults(handler=_cmd_miner_state)

    p = miner.add_parser("sectors", aliases=["miner-sectors", "minersectors"], help="Pledge/reward totals over all sectors")
    p.add_argument("address")
    p.add_argument("--pledge", action="store_true", help="Print only the totals, not the sector list.")
    p.set_defaults(handler=_cmd_miner_sectors)

    p = miner.add_parser("estimate-faulty", aliases=["estimatefaulty"], help="Termination fee for faulty sectors")
    p.add_argument("address")
    p.add_argument("-p", "--pos", type=int, default=0, help="Index of the first faulty sector to terminate.")
    p.add_argument("-n", "--number", type=int, default=None, help="Number of faulty sectors to terminate.")
    p.set_defaults(handler=_cmd_estimate_faulty)

    p = miner.add_parser("collect-miner", aliases=["cm"], help="Miner sector expiration by date")
    p.add_argument("address")
    p.set_defaults(handler=_cmd_collect_miner)

    p = miner.add_parser("collect-sectors", aliases=["cs"], help="Sector expiration by date for every miner, daily")
    p.add_argument("--workers", type=int, default=settings.workers)
    p.add_argument("--once", action="store_true", help="Run a single batch and exit.")
    p.set_defaults(handler=_cmd_collect_sectors)

    return parser


def _query(args: argparse.Namespace, settings: Settings) -> LotusChainQuery:
    client = RpcClient(args.rpc_url, token=args.token, timeout_s=settings.timeout_s)
    return LotusChainQuery(client, max_tries=settings.max_tries)


def _tipset(query: LotusChainQuery, args: argparse.Namespace) -> TipSetRef:
    if args.epoch is not None:
        return query.tipset_by_height(args.epoch)
    return query.chain_head()


def _cmd_addr_description(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(describe_address(query, args.address, _tipset(query, args)))


def _cmd_power(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(network_power(query, _tipset(query, args)))


def _cmd_miner_list(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(query.list_miners(_tipset(query, args)))


def _cmd_miner_state(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(miner_state(query, args.address, _tipset(query, args), calc_terminate=not args.no_terminate))


def _cmd_miner_sectors(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(miner_sectors(query, args.address, _tipset(query, args), pledge_only=args.pledge))


def _cmd_estimate_faulty(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(estimate_faulty(query, args.address, _tipset(query, args), pos=args.pos, number=args.number))


def _cmd_collect_miner(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    sink.emit(collect_miner(query, args.address, _tipset(query, args), date.today()))


def _cmd_collect_sectors(query: LotusChainQuery, args: argparse.Namespace, sink: JsonSink) -> None:
    def job() -> None:
        # Fresh head (and fresh estimates) on every run.
        result = collect_all(query, _tipset(query, args), date.today(), max_workers=args.workers)
        sink.emit(result)

    DailyScheduler(job).run(max_runs=1 if args.once else None)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2

    args = _build_parser(settings).parse_args(argv)
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
    )

    handler: Callable[[LotusChainQuery, argparse.Namespace, JsonSink], None] = args.handler
    try:
        handler(_query(args, settings), args, JsonSink(path=args.out))
    except FilecoinUtilsError as e:
        if args.debug:
            log.error(traceback.format_exc())
        else:
            log.error("%s: %s", type(e).__name__, e)
        return 1
    except KeyboardInterrupt:
        log.warning("interrupted")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
