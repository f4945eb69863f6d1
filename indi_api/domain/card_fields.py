"""Single mapping between API (camelCase) and storage (snake_case) card fields."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from indi_api.core.errors import ValidationError
from indi_api.core.utils import as_utc, published_url

# (api name, column name, writable by the owner)
CARD_FIELDS: tuple[tuple[str, str, bool], ...] = (
    ("id", "id", False),
    ("userId", "user_id", False),
    ("firstName", "first_name", True),
    ("lastName", "last_name", True),
    ("title", "title", True),
    ("company", "company", True),
    ("position", "position", True),
    ("email", "email", True),
    ("phone", "phone", True),
    ("website", "website", True),
    ("location", "location", True),
    ("bio", "bio", True),
    ("avatarUrl", "avatar_url", True),
    ("coverUrl", "cover_url", True),
    ("socialLinks", "social_links", True),
    ("contactFields", "contact_fields", True),
    ("themeConfig", "theme_config", True),
    ("customSlug", "custom_slug", True),
    ("isPublished", "is_published", True),
    ("viewsCount", "views_count", False),
    ("publishedAt", "published_at", False),
    ("createdAt", "created_at", False),
    ("updatedAt", "updated_at", False),
)

API_TO_COLUMN = {api: column for api, column, _writable in CARD_FIELDS}
COLUMN_TO_API = {column: api for api, column, _writable in CARD_FIELDS}
WRITABLE_API_FIELDS = frozenset(api for api, _column, writable in CARD_FIELDS if writable)

_TEXT_LIMITS = {
    "first_name": 100,
    "last_name": 100,
    "phone": 50,
}
_UNBOUNDED_TEXT = {"bio", "avatar_url", "cover_url"}
_JSON_TYPES = {
    "social_links": list,
    "contact_fields": dict,
    "theme_config": dict,
}


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value


def to_api(entity: Any) -> dict:
    """Serialize a Card row into the API shape, including derived fields."""
    data = {api: _serialize(getattr(entity, column, None)) for api, column, _writable in CARD_FIELDS}
    data["customSlug"] = entity.custom_slug or None
    data["slug"] = data["customSlug"]
    data["publishedUrl"] = published_url(entity.custom_slug)
    data["socialLinks"] = data["socialLinks"] or []
    data["contactFields"] = data["contactFields"] or {}
    data["themeConfig"] = data["themeConfig"] or {}
    data["viewsCount"] = int(data["viewsCount"] or 0)
    data["isPublished"] = bool(data["isPublished"])
    return data


def from_api(payload: Mapping[str, Any]) -> dict:
    """Translate a (partial) API payload into column values.

    Unknown and read-only keys are ignored; present keys are type-checked.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Card payload must be a JSON object", code="invalid_payload")
    values: dict[str, Any] = {}
    for api_name in WRITABLE_API_FIELDS:
        if api_name not in payload:
            continue
        column = API_TO_COLUMN[api_name]
        value = payload[api_name]
        if column in _JSON_TYPES:
            expected = _JSON_TYPES[column]
            if value is None:
                value = expected()
            if not isinstance(value, expected):
                raise ValidationError(f"{api_name} must be a JSON {expected.__name__}", code="invalid_field")
        elif column == "is_published":
            if not isinstance(value, bool):
                raise ValidationError("isPublished must be a boolean", code="invalid_field")
        elif value is not None:
            if not isinstance(value, str):
                raise ValidationError(f"{api_name} must be a string", code="invalid_field")
            value = value.strip()
            limit = None if column in _UNBOUNDED_TEXT else _TEXT_LIMITS.get(column, 255)
            if limit and len(value) > limit:
                raise ValidationError(f"{api_name} is longer than {limit} characters", code="invalid_field")
        values[column] = value
    return values
