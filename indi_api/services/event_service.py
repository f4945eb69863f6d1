"""Analytics event recording (validation, request classification, insert)."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from indi_api.core.errors import NotFoundError, ValidationError
from indi_api.core.rate_limiter import client_ip
from indi_api.core.utils import utcnow
from indi_api.domain.analytics import (
    EventType,
    classify_browser,
    classify_device,
    classify_os,
    classify_source,
    derive_visitor_id,
    parse_event_type,
)
from indi_api.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

MAX_METADATA_KEYS = 32


@dataclass
class RequestContext:
    """Request-derived fields attached to an event.

    Geo fields are only filled when an upstream proxy already resolved them.
    """

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    metadata: dict = field(default_factory=dict)


def validate_card_id(card_id: Any) -> str:
    try:
        return str(uuid.UUID(str(card_id)))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError("cardId must be a UUID", code="invalid_card_id")


class EventRecorder:
    """Persists one immutable analytics event per call."""

    def __init__(
        self,
        repository: SQLRepository | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository or SQLRepository()
        self.clock = clock

    def build_event(self, card_id: str, event_type: EventType, context: RequestContext) -> dict:
        metadata = context.metadata if isinstance(context.metadata, dict) else {}
        if len(metadata) > MAX_METADATA_KEYS:
            raise ValidationError("metadata has too many keys", code="invalid_metadata")
        user_agent = (context.user_agent or "")[:1024]
        country = (context.country or "").strip().upper() or None
        # Cloudflare uses XX for unknown and T1 for Tor exits.
        if country in ("XX", "T1"):
            country = None
        return {
            "card_id": card_id,
            "event_type": event_type.value,
            "visitor_id": derive_visitor_id(context.ip, user_agent),
            "device_type": classify_device(user_agent),
            "browser": classify_browser(user_agent),
            "os": classify_os(user_agent),
            "country": country,
            "city": (context.city or "").strip() or None,
            "referrer": context.referrer or None,
            "source": classify_source(context.referrer, metadata),
            "ip_address": context.ip,
            "user_agent": user_agent or None,
            "event_metadata": metadata,
            "created_at": self.clock(),
        }

    def record(
        self,
        card_id: Any,
        event_type: Any,
        context: RequestContext | None = None,
        *,
        require_published: bool = False,
    ) -> None:
        """Validate and insert one event; raises on invalid input or missing card.

        With ``require_published`` an unpublished card is reported exactly like
        a missing one.
        """
        kind = parse_event_type(event_type)
        card_key = validate_card_id(card_id)
        card = self.repository.get_card(card_key)
        if not card or (require_published and not card.is_published):
            raise NotFoundError("Card not found")
        self.repository.add_event(self.build_event(card_key, kind, context or RequestContext()))
        if kind is EventType.VIEW:
            try:
                self.repository.increment_card_views(card_key)
            except Exception:
                logger.warning("Could not bump views_count for card %s", card_key, exc_info=True)

    def record_safely(self, card_id: Any, event_type: Any, context: RequestContext | None = None) -> bool:
        """Fire-and-forget variant for primary request paths; never raises."""
        try:
            self.record(card_id, event_type, context)
            return True
        except Exception:
            logger.exception("Failed to record %s event for card %s", event_type, card_id)
            return False


def context_from_request(request, metadata: Optional[dict] = None) -> RequestContext:
    """Build a RequestContext from a Starlette request.

    Country/city come from the CDN (CF-IPCountry, X-Geo-City) when present.
    """
    headers = request.headers
    return RequestContext(
        ip=client_ip(request),
        user_agent=headers.get("user-agent"),
        referrer=headers.get("referer"),
        country=headers.get("cf-ipcountry"),
        city=headers.get("x-geo-city"),
        metadata=dict(metadata or {}),
    )
