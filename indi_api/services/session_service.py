"""Session helpers (issue bearer tokens, resolve them to a user id)."""
from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Request

from indi_api.core.config import get_settings
from indi_api.core.errors import AuthenticationError
from indi_api.core.utils import as_utc, utcnow
from indi_api.repositories.sql_repository import SQLRepository

SESSION_COOKIE_NAME = "session"

_repo = SQLRepository()


def issue_session(user_id: str) -> str:
    """Create a new session token and persist it in the SQL store."""
    token = secrets.token_urlsafe(32)
    settings = get_settings()
    ttl = max(60, settings.session_ttl_seconds)
    _repo.create_user_session(token, user_id, utcnow() + timedelta(seconds=ttl))
    return token


def user_id_for_token(token: Optional[str]) -> Optional[str]:
    """Return the user id bound to a live session token, if any."""
    if not token:
        return None
    entity = _repo.get_user_session(token)
    if not entity:
        return None
    expires_at = as_utc(entity.expires_at)
    if expires_at and expires_at < utcnow():
        _repo.delete_user_session(token)
        return None
    return entity.user_id


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


def current_user_id(request: Request) -> str:
    """FastAPI dependency: the authenticated user id or a 401."""
    user_id = user_id_for_token(bearer_token(request))
    if not user_id:
        raise AuthenticationError("Missing or invalid credentials")
    return user_id


def delete_session(token: str) -> None:
    """Remove a session token from the store."""
    if not token:
        return
    _repo.delete_user_session(token)
