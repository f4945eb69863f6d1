"""Event ingestion, dashboard metrics and the daily aggregation trigger."""

from __future__ import annotations

import secrets
from datetime import date, timedelta

from fastapi import APIRouter, Body, Depends, Header, Query, Request
from fastapi.responses import Response

from indi_api.core.config import get_settings
from indi_api.core.errors import AuthenticationError, ValidationError
from indi_api.core.rate_limiter import rate_limit_ip
from indi_api.core.utils import utcnow
from indi_api.domain.analytics import DEFAULT_PERIOD
from indi_api.services.aggregation_service import DailyAggregator
from indi_api.services.event_service import EventRecorder, context_from_request
from indi_api.services.metrics_service import MetricsComposer, MetricsScope
from indi_api.services.session_service import current_user_id

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def _state(request: Request, name: str):
    svc = getattr(getattr(request.app, "state", None), name, None)
    if not svc:
        raise RuntimeError(f"{name} not configured")
    return svc


@router.post("/track")
def track(request: Request, payload: dict = Body(...)):
    settings = get_settings()
    rate_limit_ip(
        request,
        "track",
        limit=settings.track_rate_limit,
        window_seconds=settings.track_rate_window_seconds,
    )
    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object", code="invalid_metadata")
    recorder: EventRecorder = _state(request, "recorder")
    recorder.record(
        payload.get("cardId"),
        payload.get("eventType"),
        context_from_request(request, metadata),
        require_published=True,
    )
    return {"success": True}


@router.get("/dashboard/overview")
def dashboard_overview(request: Request, period: str = DEFAULT_PERIOD, user_id: str = Depends(current_user_id)):
    metrics: MetricsComposer = _state(request, "metrics")
    return metrics.compose(MetricsScope(owner_id=user_id), period).to_dict()


@router.get("/cards/{card_id}")
def card_analytics(
    card_id: str,
    request: Request,
    period: str = DEFAULT_PERIOD,
    user_id: str = Depends(current_user_id),
):
    metrics: MetricsComposer = _state(request, "metrics")
    return metrics.card_detail(card_id, user_id, period)


@router.get("/cards/{card_id}/export")
def export_card_analytics(
    card_id: str,
    request: Request,
    fmt: str = Query("json", alias="format"),
    user_id: str = Depends(current_user_id),
):
    metrics: MetricsComposer = _state(request, "metrics")
    body, media_type, filename = metrics.export_events(card_id, user_id, fmt)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/aggregate")
def aggregate(
    request: Request,
    day: str = Query("", alias="date"),
    x_job_token: str = Header("", alias="X-Job-Token"),
):
    """Roll up one UTC day (default: yesterday). Guarded by the JOB_TOKEN secret."""
    expected = get_settings().job_token
    if not expected or not secrets.compare_digest(x_job_token or "", expected):
        raise AuthenticationError("Invalid job token", code="invalid_job_token")
    target = _parse_day(day)
    aggregator: DailyAggregator = _state(request, "aggregator")
    result = aggregator.aggregate(target)
    return {"success": result.ok, **result.to_dict()}


def _parse_day(value: str) -> date:
    if not value:
        return utcnow().date() - timedelta(days=1)
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")
