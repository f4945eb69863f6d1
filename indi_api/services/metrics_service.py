"""Dashboard metrics: period totals, trends, breakdowns and exports."""

from __future__ import annotations

import csv
import io
import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from indi_api.core.config import get_settings
from indi_api.core.errors import NotFoundError, ValidationError
from indi_api.core.utils import as_utc, utcnow
from indi_api.domain.analytics import (
    DailyCounters,
    EventType,
    conversion_rate,
    day_window,
    distribution,
    format_rate,
    format_trend,
    percent_change,
    period_days,
    summarize_by_card,
)
from indi_api.repositories.sql_repository import SQLRepository
from indi_api.services.event_service import validate_card_id

EXPORT_FORMATS = ("csv", "json")
CSV_COLUMNS = ("timestamp", "event_type", "device", "browser", "os", "source", "country", "city", "referrer")


@dataclass
class MetricsScope:
    """Either one card (optionally checked against its owner) or all cards of an owner."""

    card_id: Optional[str] = None
    owner_id: Optional[str] = None


@dataclass
class OverviewMetrics:
    period: str
    start: date
    end: date
    total_cards: int
    published_cards: int
    totals: DailyCounters
    previous: DailyCounters
    today: DailyCounters
    conversion_rate: float
    previous_conversion_rate: float
    views_trend: float
    contacts_trend: float
    conversion_trend: float
    daily: list[dict] = field(default_factory=list)
    devices: list[dict] = field(default_factory=list)
    sources: list[dict] = field(default_factory=list)
    countries: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat(),
            "totalCards": self.total_cards,
            "publishedCards": self.published_cards,
            "totalViews": self.totals.total_views,
            "uniqueViews": self.totals.unique_views,
            "totalContacts": self.totals.contact_saves,
            "totalSocial": self.totals.social_clicks,
            "totalShares": self.totals.shares,
            "totalQrScans": self.totals.qr_scans,
            "conversionRate": format_rate(self.conversion_rate),
            "todayViews": self.today.total_views,
            "todayUnique": self.today.unique_views,
            "todayContacts": self.today.contact_saves,
            "viewsTrend": format_trend(self.views_trend),
            "contactsTrend": format_trend(self.contacts_trend),
            "conversionTrend": format_trend(self.conversion_trend),
            "previousPeriod": {
                "totalViews": self.previous.total_views,
                "totalContacts": self.previous.contact_saves,
                "conversionRate": format_rate(self.previous_conversion_rate),
            },
            "dailyData": list(self.daily),
            "breakdown": {
                "devices": list(self.devices),
                "trafficSources": list(self.sources),
                "countries": list(self.countries),
            },
        }


def _event_to_dict(event: Any) -> dict:
    return {
        "id": event.id,
        "eventType": event.event_type,
        "createdAt": as_utc(event.created_at).isoformat(),
        "device": event.device_type,
        "browser": event.browser,
        "os": event.os,
        "source": event.source,
        "country": event.country,
        "city": event.city,
        "referrer": event.referrer,
        "metadata": event.event_metadata or {},
    }


def _day_row(day: date, counters: DailyCounters) -> dict:
    return {
        "date": day.isoformat(),
        "views": counters.total_views,
        "uniqueViews": counters.unique_views,
        "contacts": counters.contact_saves,
        "socialClicks": counters.social_clicks,
        "shares": counters.shares,
        "qrScans": counters.qr_scans,
    }


class MetricsComposer:
    """Reads summaries (past days) and raw events (today) to build dashboards.

    Read-only: repeated calls against unchanged data return the same output.
    """

    def __init__(
        self,
        repository: SQLRepository | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository or SQLRepository()
        self.clock = clock

    def _today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def resolve_cards(self, scope: MetricsScope) -> list:
        if scope.card_id:
            card = self.repository.get_card(validate_card_id(scope.card_id))
            if not card or (scope.owner_id and card.user_id != scope.owner_id):
                raise NotFoundError("Card not found")
            return [card]
        if scope.owner_id:
            return self.repository.get_cards_by_owner(scope.owner_id)
        raise ValidationError("A card id or owner id is required", code="invalid_scope")

    def _compose(self, cards: list, period: str) -> tuple[OverviewMetrics, list]:
        days = period_days(period)
        today = self._today()
        start = today - timedelta(days=days - 1)
        previous_start = start - timedelta(days=days)
        card_ids = [card.id for card in cards]

        summaries = self.repository.list_daily_summaries(card_ids, previous_start, today - timedelta(days=1))
        period_start, _ = day_window(start)
        today_start, today_end = day_window(today)
        period_events = self.repository.list_events_between(period_start, today_end, card_ids)

        by_day: dict[date, DailyCounters] = {}
        previous = DailyCounters()
        for summary in summaries:
            row = DailyCounters(
                total_views=summary.total_views or 0,
                unique_views=summary.unique_views or 0,
                contact_saves=summary.contact_saves or 0,
                social_clicks=summary.social_clicks or 0,
                qr_scans=summary.qr_scans or 0,
                shares=summary.shares or 0,
            )
            if summary.date < start:
                previous.add(row)
            else:
                by_day.setdefault(summary.date, DailyCounters()).add(row)

        # Today's summary may not exist yet: count raw events with the aggregator's grouping.
        today_events = [e for e in period_events if as_utc(e.created_at) >= today_start]
        today_counters = DailyCounters()
        for counters in summarize_by_card(today_events).values():
            today_counters.add(counters)
        by_day[today] = today_counters

        totals = DailyCounters()
        daily = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            counters = by_day.get(day, DailyCounters())
            totals.add(counters)
            daily.append(_day_row(day, counters))

        rate = conversion_rate(totals.total_views, totals.contact_saves)
        previous_rate = conversion_rate(previous.total_views, previous.contact_saves)
        metrics = OverviewMetrics(
            period=period,
            start=start,
            end=today,
            total_cards=len(cards),
            published_cards=sum(1 for card in cards if card.is_published),
            totals=totals,
            previous=previous,
            today=today_counters,
            conversion_rate=rate,
            previous_conversion_rate=previous_rate,
            views_trend=percent_change(totals.total_views, previous.total_views),
            contacts_trend=percent_change(totals.contact_saves, previous.contact_saves),
            conversion_trend=round(rate - previous_rate, 2),
            daily=daily,
            devices=distribution(e.device_type for e in period_events),
            sources=distribution(e.source for e in period_events),
            countries=distribution(e.country for e in period_events),
        )
        return metrics, period_events

    def compose(self, scope: MetricsScope, period: str) -> OverviewMetrics:
        period = (period or "7d").strip().lower()
        cards = self.resolve_cards(scope)
        metrics, _events = self._compose(cards, period)
        return metrics

    def card_detail(self, card_id: str, owner_id: str, period: str) -> dict:
        """Overview of one card plus recent activity and audience details."""
        period = (period or "7d").strip().lower()
        cards = self.resolve_cards(MetricsScope(card_id=card_id, owner_id=owner_id))
        card = cards[0]
        metrics, events = self._compose(cards, period)
        limit = get_settings().recent_events_limit
        hourly = Counter(as_utc(e.created_at).hour for e in events)
        platforms = [
            str((e.event_metadata or {}).get("platform") or "").strip().lower() or None
            for e in events
            if e.event_type == EventType.SOCIAL_CLICK.value
        ]
        payload = metrics.to_dict()
        payload.update(
            {
                "cardId": card.id,
                "customSlug": card.custom_slug,
                "cardTitle": " ".join(p for p in (card.first_name, card.last_name) if p) or card.title,
                "hourlyActivity": [{"hour": f"{hour:02d}:00", "activity": hourly.get(hour, 0)} for hour in range(24)],
                "socialPerformance": distribution(platforms),
                "browsers": distribution(e.browser for e in events),
                "recentActivity": [_event_to_dict(e) for e in self.repository.recent_events([card.id], limit)],
            }
        )
        return payload

    def export_events(self, card_id: str, owner_id: str, fmt: str = "json") -> tuple[str, str, str]:
        """Return (body, media type, filename) with every raw event of a card."""
        fmt = (fmt or "json").strip().lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError("format must be csv or json", code="invalid_format")
        card = self.resolve_cards(MetricsScope(card_id=card_id, owner_id=owner_id))[0]
        events = self.repository.list_card_events(card.id)
        filename = f"analytics-{card.id}.{fmt}"
        if fmt == "csv":
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            writer.writerow(CSV_COLUMNS)
            for e in events:
                writer.writerow(
                    [
                        as_utc(e.created_at).isoformat(),
                        e.event_type,
                        e.device_type or "",
                        e.browser or "",
                        e.os or "",
                        e.source or "",
                        e.country or "",
                        e.city or "",
                        e.referrer or "",
                    ]
                )
            return buf.getvalue(), "text/csv", filename
        document = {
            "exportDate": self.clock().isoformat(),
            "cardId": card.id,
            "totalEvents": len(events),
            "events": [_event_to_dict(e) for e in events],
        }
        return json.dumps(document, ensure_ascii=False), "application/json", filename
