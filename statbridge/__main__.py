"""
statbridge command line

Usage:
    python -m statbridge get unemployment_rate --geo SE --years 2015 2023
    python -m statbridge get jobless --geo 0180 --prefer eurostat --strict
    python -m statbridge explain "life expectancy" --geo US
    python -m statbridge list

Results are printed as JSON on stdout; logs go to stderr.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .config import configure_logging
from .models import PROVIDER_KEYS
from .services.http_pool import close_http_pool
from .services.series_service import get_series_service

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="statbridge", description="Fetch normalized statistical series")
    parser.add_argument("--log-level", type=str, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Fetch one indicator for one geography")
    get.add_argument("indicator", help="Semantic id or alias")
    get.add_argument("--geo", "-g", type=str, help="Region code (ISO2/ISO3/M49/NUTS/SCB)")
    get.add_argument("--years", "-y", type=int, nargs=2, metavar=("START", "END"), help="Inclusive year range")
    get.add_argument("--prefer", "-p", choices=PROVIDER_KEYS, help="Provider to try first")
    get.add_argument("--strict", action="store_true", help="Only try the preferred provider")

    explain = commands.add_parser("explain", help="Show the provider order for a request")
    explain.add_argument("indicator")
    explain.add_argument("--geo", "-g", type=str)

    commands.add_parser("list", help="List known indicators")
    return parser


async def run(args: argparse.Namespace) -> int:
    service = get_series_service()

    if args.command == "list":
        print(json.dumps(service.list_semantic_ids(), indent=2, ensure_ascii=False))
        return 0

    if args.command == "explain":
        explanation = service.explain_routing(args.indicator, args.geo)
        print(json.dumps(explanation.model_dump(), indent=2, ensure_ascii=False))
        return 0

    try:
        outcome = await service.get_series(
            args.indicator,
            geo=args.geo,
            years=tuple(args.years) if args.years else None,
            prefer=args.prefer,
            strict=args.strict,
        )
    finally:
        await close_http_pool()

    print(outcome.model_dump_json(indent=2))
    if not outcome.found:
        logger.warning(f"No data for '{args.indicator}': {'; '.join(outcome.errors) or 'no provider returned data'}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper() if args.log_level else None)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
