"""Command-line entrypoint for querying the housing-market store."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any

from dotenv import load_dotenv

from market.assistant import home_value_trend
from market.compare import compare
from market.errors import MarketDataError
from market.filters import GEOGRAPHY_LEVELS, LEVEL_PRECEDENCE, SeriesFilters
from market.resolver import search
from market.summary import health_score_for, snapshot_or_recompute
from storage.db import connect

logger = logging.getLogger(__name__)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run(args: argparse.Namespace) -> int:
    if args.command == "levels":
        for level in GEOGRAPHY_LEVELS:
            print(f"{LEVEL_PRECEDENCE[level]}: {level}")
        return 0

    conn = connect(args.db, read_only=True)
    try:
        if args.command == "search":
            results = search(conn, args.query, args.level, args.limit)
            _print({"results": [region.to_json() for region in results]})
        elif args.command == "compare":
            filters = SeriesFilters.parse(args.home_type, args.tier, strict=True)
            _print({"data": compare(conn, args.region_ids, filters, args.months).to_json()})
        elif args.command == "summary":
            snapshot = snapshot_or_recompute(conn, args.region_id)
            if snapshot is None:
                raise MarketDataError(f"Unknown region '{args.region_id}'")
            _print({"data": snapshot.to_json()})
        elif args.command == "score":
            _, score = health_score_for(conn, args.region_id)
            _print({"data": score.to_json()})
        elif args.command == "trend":
            _print(home_value_trend(conn, args.location))
    finally:
        conn.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Housing market query runner")
    parser.add_argument("--db", help="DuckDB file (defaults to MARKET_DB_PATH)")
    parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this invocation (e.g. DEBUG, INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Search regions by name")
    search_parser.add_argument("query")
    search_parser.add_argument("--level", choices=GEOGRAPHY_LEVELS)
    search_parser.add_argument("--limit", type=int, default=15)

    compare_parser = subparsers.add_parser("compare", help="Compare up to 8 regions")
    compare_parser.add_argument("region_ids", nargs="+")
    compare_parser.add_argument("--home-type")
    compare_parser.add_argument("--tier")
    compare_parser.add_argument("--months", type=int)

    summary_parser = subparsers.add_parser("summary", help="Show a region's market snapshot")
    summary_parser.add_argument("region_id")

    score_parser = subparsers.add_parser("score", help="Compute a region's market health score")
    score_parser.add_argument("region_id")

    trend_parser = subparsers.add_parser("trend", help="Resolve a place name and show its trend")
    trend_parser.add_argument("location")

    subparsers.add_parser("levels", help="List geography levels in search precedence order")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level or os.getenv("LOG_LEVEL", "INFO"))

    try:
        return _run(args)
    except MarketDataError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
