"""Owner-side card management (JSON API, bearer-authenticated)."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request, Response

from indi_api.services.card_service import CardService
from indi_api.services.session_service import current_user_id

router = APIRouter(prefix="/api/cards", tags=["cards"])


def _get_card_service(request: Request) -> CardService:
    svc = getattr(getattr(request.app, "state", None), "card_service", None)
    if not svc:
        raise RuntimeError("CardService not configured")
    return svc


@router.get("")
def list_cards(request: Request, user_id: str = Depends(current_user_id)):
    return {"cards": _get_card_service(request).list_cards(user_id)}


@router.post("", status_code=201)
def create_card(request: Request, payload: dict = Body(...), user_id: str = Depends(current_user_id)):
    return _get_card_service(request).create_card(user_id, payload)


@router.get("/{card_id}")
def get_card(card_id: str, request: Request, user_id: str = Depends(current_user_id)):
    return _get_card_service(request).get_card(card_id, user_id)


@router.put("/{card_id}")
def update_card(card_id: str, request: Request, payload: dict = Body(...), user_id: str = Depends(current_user_id)):
    return _get_card_service(request).update_card(card_id, user_id, payload)


@router.patch("/{card_id}/publish")
def publish_card(card_id: str, request: Request, payload: dict = Body(...), user_id: str = Depends(current_user_id)):
    return _get_card_service(request).set_published(card_id, user_id, payload.get("isPublished"))


@router.delete("/{card_id}", status_code=204)
def delete_card(card_id: str, request: Request, user_id: str = Depends(current_user_id)):
    _get_card_service(request).delete_card(card_id, user_id)
    return Response(status_code=204)
