#!/usr/bin/env python
"""Rebuild the daily analytics rollup from the command line.

Runs the same refresher as the cron endpoint, without HTTP. Use it for
manual runs and backfills.

Usage:
    # Refresh today (analytics timezone) for every tenant
    uv run python scripts/run_daily_refresh.py

    # Refresh one day for one tenant
    uv run python scripts/run_daily_refresh.py --date 2024-03-15 --tenant acme

    # Backfill the 30 days ending 2024-03-31
    uv run python scripts/run_daily_refresh.py --date 2024-03-31 --days 30
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date, timedelta

from app.core.config import get_settings
from app.core.database import create_context
from app.core.logging import configure_logging, get_logger
from app.features.etl.service import DailyRefresher
from app.shared.dates import iter_days, today

logger = get_logger(__name__)


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format.

    Raises:
        argparse.ArgumentTypeError: If date format is invalid.
    """
    try:
        return date.fromisoformat(date_str)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date format: {date_str}. Use YYYY-MM-DD") from e


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from e
    if number < 1:
        raise argparse.ArgumentTypeError(f"Must be at least 1: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild the daily analytics rollup.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--date",
        type=parse_date,
        default=None,
        help="Last day to refresh (YYYY-MM-DD). Default: today in ANALYTICS_TIMEZONE.",
    )
    parser.add_argument(
        "--days",
        type=positive_int,
        default=1,
        help="Number of days ending at --date to refresh (default 1).",
    )
    parser.add_argument(
        "--tenant",
        action="append",
        dest="tenants",
        default=None,
        help="Tenant id to refresh; repeat for several. Default: every tenant.",
    )
    return parser


async def run(end_day: date, days: int, tenants: list[str] | None) -> int:
    """Refresh each day in order. Returns the process exit code."""
    context = create_context(get_settings())
    refresher = DailyRefresher(context.settings)
    failed = 0

    try:
        for day in iter_days(end_day - timedelta(days=days - 1), end_day):
            async with context.session_maker() as db:
                results = await refresher.refresh_all(db, day, tenant_ids=tenants)
            for summary in results:
                if not summary.success:
                    status = "FAIL"
                elif summary.is_partial:
                    status = "PARTIAL"
                else:
                    status = "OK"
                if status != "OK":
                    failed += 1
                print(
                    f"[{status}] {day} tenant={summary.tenant_id} "
                    f"styles={summary.styles_processed} written={summary.records_written} "
                    f"failures={len(summary.failures)}"
                    + (f" error={summary.error}" if summary.error else "")
                )
    finally:
        await context.dispose()

    return 1 if failed else 0


def main() -> None:
    args = build_parser().parse_args()
    settings = get_settings()
    configure_logging(settings)

    end_day = args.date or today(settings.tzinfo)
    logger.info(
        "etl.cli_started",
        end_date=str(end_day),
        days=args.days,
        tenants=args.tenants,
    )
    sys.exit(asyncio.run(run(end_day, args.days, args.tenants)))


if __name__ == "__main__":
    main()
