"""
Card use cases: owner CRUD, publishing and public resolution by slug.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from indi_api.core.errors import ConflictError, NotFoundError, ValidationError
from indi_api.core.utils import utcnow
from indi_api.db.models import Card
from indi_api.domain.analytics import EventType
from indi_api.domain.card_fields import from_api, to_api
from indi_api.repositories.sql_repository import SQLRepository, new_id
from indi_api.services.event_service import EventRecorder, RequestContext, validate_card_id
from indi_api.services.slug_service import SlugService

logger = logging.getLogger(__name__)

PRIVATE_PUBLIC_FIELDS = ("userId",)


def _name(value: Optional[str]) -> str:
    return (value or "").strip()


def public_card_dict(entity: Card) -> dict:
    data = to_api(entity)
    for key in PRIVATE_PUBLIC_FIELDS:
        data.pop(key, None)
    return data


class CardService:
    """Owner-facing card operations plus the public slug lookup."""

    def __init__(
        self,
        repository: SQLRepository | None = None,
        slug_service: SlugService | None = None,
        recorder: EventRecorder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository or SQLRepository()
        self.slug_service = slug_service or SlugService(self.repository)
        self.recorder = recorder or EventRecorder(self.repository, clock=clock)
        self.clock = clock

    # -------------------------------------- helpers --------------------------------------
    def _owned(self, card_id: Any, owner_id: str) -> Card:
        card = self.repository.get_card(validate_card_id(card_id))
        if not card or card.user_id != owner_id:
            raise NotFoundError("Card not found")
        return card

    def _explicit_slug(self, value: Optional[str], exclude_card_id: str | None = None) -> str:
        slug = self.slug_service.clean_custom_slug(value)
        if self.repository.slug_exists(slug, exclude_card_id):
            raise ConflictError("Slug already in use", code="slug_taken")
        return slug

    # -------------------------------------- owner CRUD --------------------------------------
    def list_cards(self, owner_id: str) -> list[dict]:
        return [to_api(card) for card in self.repository.get_cards_by_owner(owner_id)]

    def get_card(self, card_id: Any, owner_id: str) -> dict:
        return to_api(self._owned(card_id, owner_id))

    def create_card(self, owner_id: Optional[str], payload: dict) -> dict:
        values = from_api(payload)
        explicit = values.pop("custom_slug", None)
        if not _name(values.get("first_name")) and not _name(values.get("last_name")):
            raise ValidationError("firstName or lastName is required", code="missing_name")
        card_id = new_id()
        values["id"] = card_id
        values["user_id"] = owner_id
        publish = bool(values.get("is_published"))
        if publish:
            values["published_at"] = self.clock()

        if explicit:
            values["custom_slug"] = self._explicit_slug(explicit)
            entity = self.repository.create_card(values)
        else:
            entity = self.slug_service.persist_allocated(
                values.get("first_name"),
                values.get("last_name"),
                lambda slug: self.repository.create_card({**values, "custom_slug": slug}),
            )
        logger.info("Created card %s with slug %s", entity.id, entity.custom_slug)
        return to_api(entity)

    def update_card(self, card_id: Any, owner_id: str, payload: dict) -> dict:
        card = self._owned(card_id, owner_id)
        values = from_api(payload)
        explicit = values.pop("custom_slug", None)

        first_name = values.get("first_name", card.first_name)
        last_name = values.get("last_name", card.last_name)
        names_changed = _name(first_name) != _name(card.first_name) or _name(last_name) != _name(card.last_name)
        publishing = bool(values.get("is_published", card.is_published))
        if publishing and not card.is_published:
            values["published_at"] = self.clock()

        if explicit:
            slug = self.slug_service.normalize(explicit)
            if slug != card.custom_slug:
                slug = self._explicit_slug(explicit, exclude_card_id=card.id)
            values["custom_slug"] = slug
            entity = self.repository.update_card(card.id, values)
        elif names_changed or (publishing and not card.custom_slug):
            entity = self.slug_service.persist_allocated(
                first_name,
                last_name,
                lambda slug: self.repository.update_card(card.id, {**values, "custom_slug": slug}),
                exclude_card_id=card.id,
                fallback=card.custom_slug,
            )
            if entity and entity.custom_slug != card.custom_slug:
                logger.info("Card %s slug changed %s -> %s", card.id, card.custom_slug, entity.custom_slug)
        else:
            entity = self.repository.update_card(card.id, values)
        if not entity:
            raise NotFoundError("Card not found")
        return to_api(entity)

    def set_published(self, card_id: Any, owner_id: str, is_published: Any) -> dict:
        if not isinstance(is_published, bool):
            raise ValidationError("isPublished must be a boolean", code="invalid_field")
        return self.update_card(card_id, owner_id, {"isPublished": is_published})

    def delete_card(self, card_id: Any, owner_id: str) -> None:
        card = self._owned(card_id, owner_id)
        self.repository.delete_card(card.id)
        logger.info("Deleted card %s", card.id)

    # -------------------------------------- public --------------------------------------
    def find_published(self, slug: str) -> Card:
        """Published card by slug (or id); absent and unpublished look the same."""
        value = (slug or "").strip().lower()
        card = self.repository.get_card_by_slug(value) if value else None
        if not card and value:
            try:
                card = self.repository.get_card(validate_card_id(value))
            except ValidationError:
                card = None
        if not card or not card.is_published:
            raise NotFoundError("Card not found")
        return card

    def resolve_public(self, slug: str, context: RequestContext | None = None, *, via_qr: bool = False) -> dict:
        card = self.find_published(slug)
        context = context or RequestContext()
        if via_qr:
            context.metadata = {**(context.metadata or {}), "source": "qr"}
            self.recorder.record_safely(card.id, EventType.QR_SCAN, context)
        self.recorder.record_safely(card.id, EventType.VIEW, context)
        return public_card_dict(card)
