#!/usr/bin/env python3
"""
Roll raw analytics events up into daily per-card summaries.

Usage:
  python scripts/aggregate_daily.py                  # yesterday (UTC)
  python scripts/aggregate_daily.py --date 2024-05-01
  python scripts/aggregate_daily.py --date 2024-05-07 --days 7   # backfill a week ending on --date
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from indi_api.core.config import get_settings
from indi_api.core.logs import configure_logging
from indi_api.core.utils import utcnow
from indi_api.services.aggregation_service import DailyAggregator

logger = logging.getLogger("indi_api.scripts.aggregate_daily")


def _parse_date(value: str | None) -> date:
    if not value:
        return utcnow().date() - timedelta(days=1)
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise SystemExit(f"Invalid date '{value}', expected YYYY-MM-DD")


def main() -> None:
    ap = argparse.ArgumentParser(description="Aggregate analytics events into daily summaries")
    ap.add_argument("--date", help="Last UTC day to aggregate (default: yesterday)")
    ap.add_argument("--days", type=int, default=1, help="Number of days to aggregate, ending on --date")
    args = ap.parse_args()

    configure_logging(get_settings())
    if args.days < 1:
        raise SystemExit("--days must be at least 1")
    last_day = _parse_date(args.date)
    first_day = last_day - timedelta(days=args.days - 1)

    results = DailyAggregator().aggregate_range(first_day, last_day)
    failed = [r for r in results if not r.ok]
    for result in results:
        logger.info(
            "%s: %d/%d summaries written",
            result.day.isoformat(),
            result.summaries_written,
            result.cards_seen,
        )
    if failed:
        raise SystemExit(f"Aggregation finished with failures on {len(failed)} day(s)")


if __name__ == "__main__":
    main()
