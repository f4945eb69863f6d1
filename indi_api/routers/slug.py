from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from indi_api.services.slug_service import SlugService

router = APIRouter(prefix="/api/slug", tags=["slug"])


def _get_slug_service(request: Request) -> SlugService:
    svc = getattr(getattr(request.app, "state", None), "slug_service", None)
    if not svc:
        raise RuntimeError("SlugService not configured")
    return svc


@router.get("/check")
def slug_check(request: Request, value: str = "", cardId: Optional[str] = None):
    svc = _get_slug_service(request)
    slug = svc.normalize(value)
    return {"slug": slug, "available": svc.is_available(slug, exclude_card_id=cardId)}


@router.get("/suggest")
def slug_suggest(
    request: Request,
    first_name: str = Query("", alias="firstName"),
    last_name: str = Query("", alias="lastName"),
):
    slug = _get_slug_service(request).suggest(first_name, last_name)
    return {"slug": slug or None}
