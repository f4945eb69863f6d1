#!/usr/bin/env python3
"""
Delete raw analytics events older than EVENT_RETENTION_DAYS and expired sessions.

Daily summaries are kept; aggregate the affected days before purging.

Usage:
  python scripts/purge_events.py [--days 90] [--dry-run]
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from indi_api.core.config import get_settings
from indi_api.core.logs import configure_logging
from indi_api.core.utils import utcnow
from indi_api.repositories.sql_repository import SQLRepository

logger = logging.getLogger("indi_api.scripts.purge_events")


def main() -> None:
    settings = get_settings()
    ap = argparse.ArgumentParser(description="Purge old analytics events")
    ap.add_argument("--days", type=int, default=settings.event_retention_days, help="Retention window in days")
    ap.add_argument("--dry-run", action="store_true", help="Only print the cutoff")
    args = ap.parse_args()

    configure_logging(settings)
    if args.days < 1:
        raise SystemExit("--days must be at least 1")
    now = utcnow()
    cutoff = now - timedelta(days=args.days)
    if args.dry_run:
        print(f"Would delete events created before {cutoff.isoformat()}")
        return

    repo = SQLRepository()
    events = repo.purge_events_before(cutoff)
    sessions = repo.delete_expired_sessions(now)
    logger.info("Purged %d events before %s and %d expired sessions", events, cutoff.isoformat(), sessions)


if __name__ == "__main__":
    main()
