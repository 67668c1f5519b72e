"""
Top-level CLI dispatcher: price-aggregator <command> [args...].

Commands: price, history, compare, status.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, List, Optional

from ..core.errors import SourceExhaustedError
from ..frames import history_to_frame
from ..service import PriceAggregationService

logger = logging.getLogger(__name__)


def _build_service() -> PriceAggregationService:
    return PriceAggregationService()


def _to_jsonable(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, dict):
        return {k: _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    return obj


def _print_json(obj: Any) -> None:
    print(json.dumps(_to_jsonable(obj), indent=2, sort_keys=False, default=str))


def _cmd_price(service: PriceAggregationService, args: argparse.Namespace) -> int:
    price = service.get_current_price(
        args.asset,
        args.currency,
        preferred_api=args.preferred,
        force_refresh=args.refresh,
        timeout_s=args.timeout,
    )
    print(f"{args.asset.upper()}/{args.currency.upper()} {price}")
    return 0


def _cmd_history(service: PriceAggregationService, args: argparse.Namespace) -> int:
    points = service.get_historical_data(
        args.asset,
        args.currency,
        period=args.period,
        interval=args.interval,
        start_date=args.start,
        end_date=args.end,
        preferred_api=args.preferred,
        force_refresh=args.refresh,
    )
    if args.json:
        _print_json(list(points))
    else:
        print(history_to_frame(points).to_string())
    return 0


def _cmd_compare(service: PriceAggregationService, args: argparse.Namespace) -> int:
    result = service.compare_all_sources(args.asset, args.currency, timeout_s=args.timeout)
    _print_json(result)
    return 0


def _cmd_status(service: PriceAggregationService, args: argparse.Namespace) -> int:
    _print_json(service.check_api_status())
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="price-aggregator",
        description="Multi-source crypto price aggregation",
    )
    parser.add_argument("--log-level", default="WARNING", help="logging level (default WARNING)")
    subparsers = parser.add_subparsers(dest="command", help="command")

    p = subparsers.add_parser("price", help="Current price with provider fallback")
    p.add_argument("asset")
    p.add_argument("currency", nargs="?", default="USD")
    p.add_argument("--preferred", default=None, help="provider to try first")
    p.add_argument("--refresh", action="store_true", help="bypass the cache")
    p.add_argument("--timeout", type=float, default=None, help="per-attempt timeout in seconds")
    p.set_defaults(func=_cmd_price)

    h = subparsers.add_parser("history", help="Historical price series")
    h.add_argument("asset")
    h.add_argument("currency", nargs="?", default="USD")
    h.add_argument("--period", default="1M", choices=["1D", "1W", "1M", "3M", "6M", "1Y", "ALL"])
    h.add_argument("--interval", default="daily", choices=["hourly", "daily", "weekly"])
    h.add_argument("--start", default=None, help="ISO start date")
    h.add_argument("--end", default=None, help="ISO end date")
    h.add_argument("--preferred", default=None)
    h.add_argument("--refresh", action="store_true")
    h.add_argument("--json", action="store_true", help="print points as JSON")
    h.set_defaults(func=_cmd_history)

    c = subparsers.add_parser("compare", help="Query every provider and summarise")
    c.add_argument("asset")
    c.add_argument("currency", nargs="?", default="USD")
    c.add_argument("--timeout", type=float, default=None)
    c.set_defaults(func=_cmd_compare)

    s = subparsers.add_parser("status", help="Availability of every registered provider")
    s.set_defaults(func=_cmd_status)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    service = _build_service()
    try:
        return args.func(service, args)
    except SourceExhaustedError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
