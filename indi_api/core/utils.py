"""
Utility helpers shared across routers/services.
"""

from datetime import datetime, timezone
from typing import Optional

from .config import get_settings


def utcnow() -> datetime:
    """Default clock: current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def absolute_url(path: str, base: Optional[str] = None) -> str:
    """
    Turn relative paths into absolute URLs using PUBLIC_BASE_URL.
    """
    settings = get_settings()
    base_url = (base or settings.public_base_url).rstrip("/")
    if not path:
        return base_url + "/"
    if path.startswith("http://") or path.startswith("https://"):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base_url + path


def published_url(slug: Optional[str]) -> str:
    """Public URL of a card slug, or empty string when there is no slug."""
    if not slug:
        return ""
    settings = get_settings()
    return absolute_url(f"{settings.public_card_path}/{slug}")
