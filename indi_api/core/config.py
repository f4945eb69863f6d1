"""
Configuration helpers for the INDI cards backend.

Exposes a frozen Settings object built from environment variables (database,
public base URL, slug allocation bounds, analytics knobs) so that routers and
services do not fetch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    public_base_url: str
    public_card_path: str
    session_ttl_seconds: int
    slug_max_attempts: int
    track_rate_limit: int
    track_rate_window_seconds: int
    event_retention_days: int
    recent_events_limit: int
    job_token: str
    log_level: str
    cors_origins: tuple[str, ...]


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _list(value: str | None) -> tuple[str, ...]:
        if not value:
            return ()
        return tuple(item.strip().rstrip("/") for item in value.split(",") if item.strip())

    card_path = "/" + (os.getenv("PUBLIC_CARD_PATH", "/card") or "/card").strip("/")

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", ""),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "https://indi.cards").rstrip("/"),
        public_card_path=card_path,
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
        slug_max_attempts=max(1, _int(os.getenv("SLUG_MAX_ATTEMPTS", "20"), 20)),
        track_rate_limit=_int(os.getenv("TRACK_RATE_LIMIT", "120"), 120),
        track_rate_window_seconds=_int(os.getenv("TRACK_RATE_WINDOW_SECONDS", "60"), 60),
        event_retention_days=_int(os.getenv("EVENT_RETENTION_DAYS", "90"), 90),
        recent_events_limit=_int(os.getenv("RECENT_EVENTS_LIMIT", "20"), 20),
        job_token=os.getenv("JOB_TOKEN", ""),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        cors_origins=_list(os.getenv("CORS_ORIGINS")),
    )
