"""Daily rollup of raw analytics events into per-card summary rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from indi_api.domain.analytics import day_window, summarize_by_card
from indi_api.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)


@dataclass
class AggregationResult:
    day: date
    cards_seen: int = 0
    summaries_written: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "cardsSeen": self.cards_seen,
            "summariesWritten": self.summaries_written,
            "failures": dict(self.failures),
        }


class DailyAggregator:
    """Groups one UTC day of events per card and upserts one summary per card.

    Re-running a day overwrites the stored counters, so repeated or concurrent
    runs converge to the same rows. Cards without events that day get no row.
    """

    def __init__(self, repository: SQLRepository | None = None) -> None:
        self.repository = repository or SQLRepository()

    def aggregate(self, day: date) -> AggregationResult:
        start, end = day_window(day)
        events = self.repository.list_events_between(start, end)
        counters_by_card = summarize_by_card(events)
        result = AggregationResult(day=day, cards_seen=len(counters_by_card))
        for card_id in sorted(counters_by_card):
            try:
                self.repository.upsert_daily_summary(card_id, day, counters_by_card[card_id].as_row())
            except Exception as exc:
                logger.exception("Aggregation failed for card %s on %s", card_id, day.isoformat())
                result.failures[card_id] = str(exc) or exc.__class__.__name__
                continue
            result.summaries_written += 1
        logger.info(
            "Aggregated %s: %d cards, %d summaries, %d failures",
            day.isoformat(),
            result.cards_seen,
            result.summaries_written,
            len(result.failures),
        )
        return result

    def aggregate_range(self, first_day: date, last_day: date) -> list[AggregationResult]:
        """Backfill every day in ``[first_day, last_day]``."""
        if last_day < first_day:
            first_day, last_day = last_day, first_day
        results = []
        day = first_day
        while day <= last_day:
            results.append(self.aggregate(day))
            day += timedelta(days=1)
        return results
