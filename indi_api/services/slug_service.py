"""Slug-related use cases (availability, allocation, conflict-safe persistence)."""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from indi_api.core.config import get_settings
from indi_api.core.errors import ConflictError, SlugConflictError, ValidationError
from indi_api.domain.slugs import allocate_with_counter, is_valid_custom_slug
from indi_api.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlugService:
    """Provides slug availability checks and allocation helpers."""

    def __init__(self, repository: SQLRepository | None = None, max_attempts: int | None = None) -> None:
        self.repository = repository or SQLRepository()
        self.max_attempts = max_attempts or get_settings().slug_max_attempts

    def normalize(self, value: str | None) -> str:
        return (value or "").strip().lower()

    def clean_custom_slug(self, value: str | None) -> str:
        """Validate a slug typed by the owner and return its stored form."""
        candidate = self.normalize(value)
        if not is_valid_custom_slug(candidate):
            raise ValidationError(
                "Invalid slug. Use 2-64 characters [a-z0-9-] and avoid reserved words",
                code="invalid_slug",
            )
        return candidate

    def is_available(self, value: str | None, exclude_card_id: str | None = None) -> bool:
        candidate = self.normalize(value)
        if not is_valid_custom_slug(candidate):
            return False
        return not self.repository.slug_exists(candidate, exclude_card_id)

    def suggest(self, first_name: str | None, last_name: str | None, exclude_card_id: str | None = None) -> str:
        slug, _counter = allocate_with_counter(
            first_name,
            last_name,
            lambda candidate: self.repository.slug_exists(candidate, exclude_card_id),
        )
        return slug

    def persist_allocated(
        self,
        first_name: str | None,
        last_name: str | None,
        write: Callable[[Optional[str]], T],
        *,
        exclude_card_id: str | None = None,
        fallback: Optional[str] = None,
    ) -> T:
        """Allocate a slug from the names and hand it to ``write``.

        ``write`` must persist the slug under the store's unique constraint and
        raise SlugConflictError when another card got there first; the
        allocation is then retried from the next counter value. When the names
        yield no valid slug, ``write(fallback)`` is called once.
        """
        start = 0
        for attempt in range(1, self.max_attempts + 1):
            slug, counter = allocate_with_counter(
                first_name,
                last_name,
                lambda candidate: self.repository.slug_exists(candidate, exclude_card_id),
                start=start,
            )
            if not slug:
                return write(fallback)
            try:
                return write(slug)
            except SlugConflictError:
                logger.info("Slug %s taken at write time (attempt %d), retrying", slug, attempt)
                start = counter + 1
        raise ConflictError(
            f"Could not allocate a unique slug after {self.max_attempts} attempts",
            code="slug_allocation_exhausted",
        )
