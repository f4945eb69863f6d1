from __future__ import annotations

import pytest

from indi_api.core.errors import ConflictError, NotFoundError, SlugConflictError, ValidationError
from indi_api.services.card_service import CardService
from indi_api.services.event_service import RequestContext
from indi_api.services.slug_service import SlugService


@pytest.fixture()
def service(repo):
    return CardService(repo)


def test_create_allocates_slug_from_names(service, make_user):
    owner = make_user()
    first = service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})
    second = service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})
    third = service.create_card(owner.id, {"firstName": "JOHN", "lastName": "doe"})

    assert [first["customSlug"], second["customSlug"], third["customSlug"]] == ["john-doe", "john-doe-1", "john-doe-2"]
    assert first["slug"] == "john-doe"
    assert first["publishedUrl"] == "https://indi.test/card/john-doe"
    assert first["userId"] == owner.id


def test_create_requires_a_name(service, make_user):
    with pytest.raises(ValidationError) as excinfo:
        service.create_card(make_user().id, {"title": "No name"})
    assert excinfo.value.code == "missing_name"


def test_create_rejects_wrong_field_types(service, make_user):
    with pytest.raises(ValidationError):
        service.create_card(make_user().id, {"firstName": "Ann", "socialLinks": "nope"})


def test_explicit_slug_is_validated_and_unique(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "Ann", "customSlug": "Ann-Pro"})
    assert card["customSlug"] == "ann-pro"

    with pytest.raises(ConflictError) as excinfo:
        service.create_card(owner.id, {"firstName": "Bob", "customSlug": "ann-pro"})
    assert excinfo.value.code == "slug_taken"

    with pytest.raises(ValidationError):
        service.create_card(owner.id, {"firstName": "Bob", "customSlug": "api"})


def test_slug_regenerates_only_when_names_change(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})

    same = service.update_card(card["id"], owner.id, {"title": "CTO", "firstName": "John"})
    assert same["customSlug"] == "john-doe"
    assert same["title"] == "CTO"

    renamed = service.update_card(card["id"], owner.id, {"firstName": "Jane"})
    assert renamed["customSlug"] == "jane-doe"
    assert service.repository.slug_exists("john-doe") is False


def test_rename_does_not_collide_with_itself(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})
    updated = service.update_card(card["id"], owner.id, {"firstName": "John ", "lastName": "Doe", "bio": "hi"})
    assert updated["customSlug"] == "john-doe"


def test_write_time_collision_retries_with_next_counter(repo, make_user, monkeypatch):
    owner = make_user()
    service = CardService(repo)
    service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})

    # Simulate a concurrent writer: the pre-check misses the existing slug.
    monkeypatch.setattr(repo, "slug_exists", lambda slug, exclude_card_id=None: False)
    card = service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})
    assert card["customSlug"] == "john-doe-1"


def test_allocation_gives_up_after_max_attempts(repo, make_user, monkeypatch):
    owner = make_user()
    service = CardService(repo, slug_service=SlugService(repo, max_attempts=3))
    calls = []

    def always_conflicts(values):
        calls.append(values["custom_slug"])
        raise SlugConflictError("Slug already in use")

    monkeypatch.setattr(repo, "create_card", always_conflicts)
    with pytest.raises(ConflictError) as excinfo:
        service.create_card(owner.id, {"firstName": "John", "lastName": "Doe"})
    assert excinfo.value.code == "slug_allocation_exhausted"
    assert calls == ["john-doe", "john-doe-1", "john-doe-2"]


def test_other_owners_cannot_see_or_change_a_card(service, make_user):
    owner, stranger = make_user(), make_user()
    card = service.create_card(owner.id, {"firstName": "Priv"})
    with pytest.raises(NotFoundError):
        service.get_card(card["id"], stranger.id)
    with pytest.raises(NotFoundError):
        service.update_card(card["id"], stranger.id, {"title": "x"})
    with pytest.raises(NotFoundError):
        service.delete_card(card["id"], stranger.id)
    assert service.list_cards(stranger.id) == []


def test_unpublished_and_missing_slugs_look_the_same(service, make_user):
    owner = make_user()
    service.create_card(owner.id, {"firstName": "Hidden", "lastName": "Card"})
    with pytest.raises(NotFoundError) as hidden:
        service.resolve_public("hidden-card")
    with pytest.raises(NotFoundError) as missing:
        service.resolve_public("nobody-here")
    assert hidden.value.to_dict() == missing.value.to_dict()


def test_publish_then_resolve_records_a_view(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "Pub", "lastName": "Lic"})
    published = service.set_published(card["id"], owner.id, True)
    assert published["isPublished"] is True
    assert published["publishedAt"]

    data = service.resolve_public("PUB-LIC", RequestContext(ip="1.2.3.4", user_agent="Mozilla/5.0 (iPhone)"))
    assert data["id"] == card["id"]
    assert "userId" not in data

    events = service.repository.list_card_events(card["id"])
    assert [e.event_type for e in events] == ["view"]
    assert events[0].device_type == "mobile"
    assert service.repository.get_card(card["id"]).views_count == 1


def test_qr_resolution_records_scan_and_view(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "Qr", "lastName": "Code", "isPublished": True})
    service.resolve_public(card["customSlug"], RequestContext(), via_qr=True)
    kinds = sorted(e.event_type for e in service.repository.list_card_events(card["id"]))
    assert kinds == ["qr_scan", "view"]


def test_publishing_without_usable_name_leaves_slug_empty(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "??", "isPublished": True})
    assert card["customSlug"] is None
    assert card["publishedUrl"] == ""
    assert service.repository.get_card(card["id"]).custom_slug is None
    # still reachable by id
    assert service.find_published(card["id"]).id == card["id"]


def test_publish_flag_must_be_boolean(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "Bool"})
    with pytest.raises(ValidationError):
        service.set_published(card["id"], owner.id, "yes")


def test_delete_card_frees_slug(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "Gone", "isPublished": True})
    service.resolve_public("gone")
    service.delete_card(card["id"], owner.id)
    assert service.repository.list_card_events(card["id"]) == []
    again = service.create_card(owner.id, {"firstName": "Gone"})
    assert again["customSlug"] == "gone"


def test_rename_without_usable_name_keeps_old_slug(service, make_user):
    owner = make_user()
    card = service.create_card(owner.id, {"firstName": "Keep", "lastName": "Me", "isPublished": True})
    renamed = service.update_card(card["id"], owner.id, {"firstName": "!!", "lastName": ""})
    assert renamed["customSlug"] == "keep-me"
