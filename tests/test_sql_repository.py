"""
Smoke tests for the SQLRepository against a temporary SQLite database.
"""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from indi_api.core.errors import ConflictError, SlugConflictError
from indi_api.domain.analytics import DailyCounters


def _event(repo, card_id, event_type="view", at=None, visitor="v1"):
    return repo.add_event(
        {
            "card_id": card_id,
            "event_type": event_type,
            "visitor_id": visitor,
            "created_at": at or datetime(2024, 5, 1, 12, tzinfo=timezone.utc),
        }
    )


def test_user_email_is_unique_and_case_insensitive(repo):
    user = repo.create_user("Alice@Example.com", "hash")
    assert user.email == "alice@example.com"
    assert repo.get_user_by_email("ALICE@example.com").id == user.id
    with pytest.raises(ConflictError) as excinfo:
        repo.create_user("alice@example.com", "hash")
    assert excinfo.value.code == "email_taken"


def test_card_and_slug_flow(repo, make_user):
    owner = make_user()
    card = repo.create_card({"user_id": owner.id, "first_name": "Alice", "custom_slug": "alice"})
    assert repo.slug_exists("alice")
    assert repo.slug_exists("ALICE")
    assert not repo.slug_exists("alice", exclude_card_id=card.id)
    assert repo.get_card_by_slug("Alice").id == card.id
    assert [c.id for c in repo.get_cards_by_owner(owner.id)] == [card.id]

    with pytest.raises(SlugConflictError):
        repo.create_card({"first_name": "Other", "custom_slug": "alice"})


def test_cards_without_slug_do_not_collide(repo):
    first = repo.create_card({"first_name": "A"})
    second = repo.create_card({"first_name": "B"})
    assert first.custom_slug is None and second.custom_slug is None


def test_update_card_and_views_counter(repo):
    card = repo.create_card({"first_name": "Bob"})
    updated = repo.update_card(card.id, {"title": "Engineer"})
    assert updated.title == "Engineer"
    assert repo.update_card("missing", {"title": "x"}) is None

    repo.increment_card_views(card.id)
    repo.increment_card_views(card.id)
    assert repo.get_card(card.id).views_count == 2


def test_events_window_is_half_open(repo):
    card = repo.create_card({"first_name": "Eve"})
    _event(repo, card.id, at=datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc))
    _event(repo, card.id, at=datetime(2024, 5, 1, 23, 59, 59, tzinfo=timezone.utc))
    _event(repo, card.id, at=datetime(2024, 5, 2, 0, 0, tzinfo=timezone.utc))

    start = datetime(2024, 5, 1, tzinfo=timezone.utc)
    end = datetime(2024, 5, 2, tzinfo=timezone.utc)
    assert len(repo.list_events_between(start, end)) == 2
    assert repo.list_events_between(start, end, card_ids=[]) == []


def test_upsert_daily_summary_overwrites(repo):
    card = repo.create_card({"first_name": "Sam"})
    day = date(2024, 5, 1)
    repo.upsert_daily_summary(card.id, day, DailyCounters(total_views=3).as_row())
    repo.upsert_daily_summary(card.id, day, DailyCounters(total_views=5, contact_saves=1).as_row())

    summary = repo.get_daily_summary(card.id, day)
    assert summary.total_views == 5
    assert summary.contact_saves == 1
    assert repo.count_daily_summaries(card.id) == 1


def test_delete_card_removes_events_and_summaries(repo):
    card = repo.create_card({"first_name": "Del", "custom_slug": "del"})
    _event(repo, card.id)
    repo.upsert_daily_summary(card.id, date(2024, 5, 1), DailyCounters(total_views=1).as_row())

    assert repo.delete_card(card.id) is True
    assert repo.get_card(card.id) is None
    assert repo.list_card_events(card.id) == []
    assert repo.count_daily_summaries(card.id) == 0
    assert not repo.slug_exists("del")


def test_purge_events_before(repo):
    card = repo.create_card({"first_name": "Old"})
    _event(repo, card.id, at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    _event(repo, card.id, at=datetime(2024, 6, 1, tzinfo=timezone.utc))
    assert repo.purge_events_before(datetime(2024, 3, 1, tzinfo=timezone.utc)) == 1
    assert len(repo.list_card_events(card.id)) == 1
