"""
HTTP entry point: builds the FastAPI app, wires services onto app.state and
maps IndiError subclasses to JSON error responses.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from indi_api.core.config import get_settings
from indi_api.core.errors import IndiError
from indi_api.core.logs import configure_logging
from indi_api.core.rate_limiter import RateLimiter
from indi_api.repositories.sql_repository import SQLRepository
from indi_api.routers import analytics as analytics_router
from indi_api.routers import auth as auth_router
from indi_api.routers import cards as cards_router
from indi_api.routers import public as public_router
from indi_api.routers import slug as slug_router
from indi_api.services.aggregation_service import DailyAggregator
from indi_api.services.auth_service import AuthService
from indi_api.services.card_service import CardService
from indi_api.services.event_service import EventRecorder
from indi_api.services.metrics_service import MetricsComposer
from indi_api.services.slug_service import SlugService

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers on every JSON/binary response."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


def _allowed_origins(settings) -> list[str]:
    allowed = {settings.public_base_url, *settings.cors_origins}
    if settings.app_env != "prod":
        allowed.update(
            {
                "http://localhost:3000",
                "http://127.0.0.1:3000",
                "http://localhost:5173",
                "http://127.0.0.1:5173",
            }
        )
    return sorted(origin for origin in allowed if origin)


async def _indi_error_handler(request: Request, exc: IndiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Factory compatible with uvicorn/gunicorn (``indi_api.app:create_app``)."""
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title="INDI Cards API")
    origins = _allowed_origins(settings)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")
    app.add_exception_handler(IndiError, _indi_error_handler)

    repository = SQLRepository()
    recorder = EventRecorder(repository)
    slug_service = SlugService(repository)
    app.state.rate_limiter = RateLimiter()
    app.state.auth_service = AuthService(repository)
    app.state.slug_service = slug_service
    app.state.recorder = recorder
    app.state.card_service = CardService(repository, slug_service, recorder)
    app.state.aggregator = DailyAggregator(repository)
    app.state.metrics = MetricsComposer(repository)

    app.include_router(auth_router.router)
    app.include_router(cards_router.router)
    app.include_router(slug_router.router)
    app.include_router(public_router.router)
    app.include_router(analytics_router.router)

    @app.get("/api/health", tags=["health"])
    def health():
        return {"status": "ok"}

    return app


app = create_app()
