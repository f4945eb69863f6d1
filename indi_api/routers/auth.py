from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request, Response

from indi_api.core.config import get_settings
from indi_api.core.rate_limiter import rate_limit_ip
from indi_api.services.auth_service import AuthResult, AuthService
from indi_api.services.session_service import SESSION_COOKIE_NAME, bearer_token, current_user_id

router = APIRouter(prefix="/api/auth", tags=["auth"])

LOGIN_RATE_LIMIT = 10
LOGIN_RATE_WINDOW_SECONDS = 60


def _get_auth_service(request: Request) -> AuthService:
    svc = getattr(getattr(request.app, "state", None), "auth_service", None)
    if not svc:
        raise RuntimeError("AuthService not configured")
    return svc


def _session_response(response: Response, result: AuthResult) -> dict:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        result.session_token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.app_env == "prod",
        samesite="lax",
    )
    return {
        "token": result.session_token,
        "user": {"id": result.user_id, "email": result.email, "fullName": result.full_name},
    }


@router.post("/register", status_code=201)
def register(request: Request, response: Response, payload: dict = Body(...)):
    rate_limit_ip(request, "register", limit=LOGIN_RATE_LIMIT, window_seconds=LOGIN_RATE_WINDOW_SECONDS)
    result = _get_auth_service(request).register(
        str(payload.get("email") or ""),
        str(payload.get("password") or ""),
        payload.get("fullName"),
    )
    return _session_response(response, result)


@router.post("/login")
def login(request: Request, response: Response, payload: dict = Body(...)):
    rate_limit_ip(request, "login", limit=LOGIN_RATE_LIMIT, window_seconds=LOGIN_RATE_WINDOW_SECONDS)
    result = _get_auth_service(request).login(str(payload.get("email") or ""), str(payload.get("password") or ""))
    return _session_response(response, result)


@router.post("/logout")
def logout(request: Request, response: Response):
    _get_auth_service(request).logout(bearer_token(request))
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"success": True}


@router.get("/me")
def me(request: Request, user_id: str = Depends(current_user_id)):
    return _get_auth_service(request).profile(user_id)
