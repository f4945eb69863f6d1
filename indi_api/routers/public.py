"""
Unauthenticated card resolution: JSON card, vCard download and QR image.

Unknown and unpublished slugs answer with the same 404 body so callers
cannot probe which slugs exist; store failures look the same from outside.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from fastapi import APIRouter, Request
from fastapi.responses import Response

from indi_api.core.errors import IndiError, NotFoundError
from indi_api.domain.analytics import EventType
from indi_api.services.card_display import build_vcard, qr_png, vcard_filename
from indi_api.services.card_service import CardService
from indi_api.services.event_service import context_from_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/public/cards", tags=["public"])

T = TypeVar("T")


def _get_card_service(request: Request) -> CardService:
    svc = getattr(getattr(request.app, "state", None), "card_service", None)
    if not svc:
        raise RuntimeError("CardService not configured")
    return svc


def _public_lookup(slug: str, lookup: Callable[[], T]) -> T:
    try:
        return lookup()
    except NotFoundError:
        raise
    except IndiError as exc:
        logger.error("Public lookup of %r failed: %s", slug, exc.message)
        raise NotFoundError("Card not found") from exc


@router.get("/{slug}")
def public_card(slug: str, request: Request, src: str = ""):
    svc = _get_card_service(request)
    context = context_from_request(request, {"source": src} if src else None)
    return _public_lookup(slug, lambda: svc.resolve_public(slug, context, via_qr=src.strip().lower() == "qr"))


@router.get("/{slug}/vcard")
def public_vcard(slug: str, request: Request):
    svc = _get_card_service(request)
    card = _public_lookup(slug, lambda: svc.find_published(slug))
    svc.recorder.record_safely(card.id, EventType.CONTACT_SAVE, context_from_request(request))
    return Response(
        content=build_vcard(card),
        media_type="text/vcard; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{vcard_filename(card)}"'},
    )


@router.get("/{slug}/qr")
def public_qr(slug: str, request: Request):
    svc = _get_card_service(request)
    card = _public_lookup(slug, lambda: svc.find_published(slug))
    return Response(
        content=qr_png(card),
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=3600"},
    )
