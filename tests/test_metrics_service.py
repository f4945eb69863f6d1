from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime, timezone

import pytest

from indi_api.core.errors import NotFoundError, ValidationError
from indi_api.domain.analytics import DailyCounters, conversion_rate, distribution, percent_change
from indi_api.services.metrics_service import CSV_COLUMNS, MetricsComposer, MetricsScope

NOW = datetime(2024, 5, 10, 15, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


@pytest.fixture()
def composer(repo):
    return MetricsComposer(repo, clock=lambda: NOW)


@pytest.fixture()
def owned_card(repo, make_user):
    owner = make_user()
    card = repo.create_card({"user_id": owner.id, "first_name": "Metric", "last_name": "Card", "is_published": True})
    return owner, card


def _summary(repo, card_id, day, views, contacts):
    repo.upsert_daily_summary(card_id, day, DailyCounters(total_views=views, contact_saves=contacts).as_row())


def _event(repo, card_id, event_type, visitor, hour, **extra):
    repo.add_event(
        {
            "card_id": card_id,
            "event_type": event_type,
            "visitor_id": visitor,
            "created_at": datetime(TODAY.year, TODAY.month, TODAY.day, hour, tzinfo=timezone.utc),
            **extra,
        }
    )


def test_derived_metric_helpers():
    assert conversion_rate(0, 0) == 0.0
    assert conversion_rate(200, 25) == 12.5
    assert percent_change(0, 0) == 0.0
    assert percent_change(5, 0) == 100.0
    assert percent_change(150, 100) == 50.0
    assert distribution([]) == []
    assert distribution(["a", None]) == [
        {"label": "a", "count": 1, "percentage": 50.0},
        {"label": "unknown", "count": 1, "percentage": 50.0},
    ]


def test_empty_overview_has_zero_rates(composer, owned_card):
    owner, _card = owned_card
    data = composer.compose(MetricsScope(owner_id=owner.id), "7d").to_dict()
    assert data["totalViews"] == 0
    assert data["conversionRate"] == "0.00"
    assert data["viewsTrend"] == "+0.00%"
    assert len(data["dailyData"]) == 7
    assert data["dailyData"][-1]["date"] == TODAY.isoformat()
    assert data["totalCards"] == 1
    assert data["publishedCards"] == 1


def test_overview_combines_summaries_and_trends(repo, composer, owned_card):
    owner, card = owned_card
    _summary(repo, card.id, date(2024, 5, 8), views=200, contacts=25)
    _summary(repo, card.id, date(2024, 5, 1), views=100, contacts=5)  # previous 7d window

    data = composer.compose(MetricsScope(owner_id=owner.id), "7d").to_dict()
    assert data["totalViews"] == 200
    assert data["totalContacts"] == 25
    assert data["conversionRate"] == "12.50"
    assert data["viewsTrend"] == "+100.00%"
    assert data["contactsTrend"] == "+400.00%"
    assert data["conversionTrend"] == "+7.50%"
    assert data["previousPeriod"] == {"totalViews": 100, "totalContacts": 5, "conversionRate": "5.00"}


def test_today_is_counted_from_raw_events(repo, composer, owned_card):
    owner, card = owned_card
    # a stale summary for today must not be double counted
    _summary(repo, card.id, TODAY, views=99, contacts=0)
    _event(repo, card.id, "view", "v1", 9, device_type="mobile", country="BR")
    _event(repo, card.id, "view", "v2", 10, device_type="mobile", country="BR")
    _event(repo, card.id, "contact_save", "v1", 11, device_type="desktop")

    data = composer.compose(MetricsScope(card_id=card.id, owner_id=owner.id), "1d").to_dict()
    assert data["todayViews"] == 2
    assert data["todayUnique"] == 2
    assert data["todayContacts"] == 1
    assert data["totalViews"] == 2
    assert data["conversionRate"] == "50.00"
    assert data["breakdown"]["devices"] == [
        {"label": "mobile", "count": 2, "percentage": 66.67},
        {"label": "desktop", "count": 1, "percentage": 33.33},
    ]
    assert data["breakdown"]["countries"][0] == {"label": "BR", "count": 2, "percentage": 66.67}


def test_compose_is_read_only_and_repeatable(repo, composer, owned_card):
    owner, card = owned_card
    _event(repo, card.id, "view", "v1", 9)
    scope = MetricsScope(owner_id=owner.id)
    assert composer.compose(scope, "30d").to_dict() == composer.compose(scope, "30d").to_dict()
    assert repo.count_daily_summaries() == 0


def test_rejects_unknown_period(composer, owned_card):
    owner, _card = owned_card
    with pytest.raises(ValidationError) as excinfo:
        composer.compose(MetricsScope(owner_id=owner.id), "2w")
    assert excinfo.value.code == "invalid_period"


def test_card_detail_is_owner_scoped(repo, composer, owned_card, make_user):
    owner, card = owned_card
    _event(repo, card.id, "social_click", "v1", 14, event_metadata={"platform": "LinkedIn"})
    _event(repo, card.id, "view", "v1", 14, browser="Chrome")

    detail = composer.card_detail(card.id, owner.id, "7d")
    assert detail["cardId"] == card.id
    assert detail["cardTitle"] == "Metric Card"
    assert len(detail["hourlyActivity"]) == 24
    assert detail["hourlyActivity"][14] == {"hour": "14:00", "activity": 2}
    assert detail["socialPerformance"] == [{"label": "linkedin", "count": 1, "percentage": 100.0}]
    assert len(detail["recentActivity"]) == 2

    with pytest.raises(NotFoundError):
        composer.card_detail(card.id, make_user().id, "7d")


def test_export_csv_and_json(repo, composer, owned_card):
    owner, card = owned_card
    _event(repo, card.id, "view", "v1", 8, device_type="mobile", browser="Safari", source="direct")

    body, media_type, filename = composer.export_events(card.id, owner.id, "csv")
    rows = list(csv.reader(io.StringIO(body)))
    assert media_type == "text/csv"
    assert filename == f"analytics-{card.id}.csv"
    assert rows[0] == list(CSV_COLUMNS)
    assert rows[1][1:4] == ["view", "mobile", "Safari"]

    body, media_type, _ = composer.export_events(card.id, owner.id, "json")
    document = json.loads(body)
    assert media_type == "application/json"
    assert document["totalEvents"] == 1
    assert document["events"][0]["eventType"] == "view"

    with pytest.raises(ValidationError):
        composer.export_events(card.id, owner.id, "xml")
