"""Domain helpers for slug normalization, validation and allocation."""
from __future__ import annotations

import re
import unicodedata
from typing import Callable, Iterator

SLUG_PATTERN = re.compile(r"[a-z0-9-]+")
CUSTOM_SLUG_MAX_LENGTH = 64
RESERVED_SLUGS = {
    "api",
    "app",
    "auth",
    "card",
    "cards",
    "dashboard",
    "edit",
    "login",
    "logout",
    "public",
    "register",
    "slug",
    "static",
}

# Letters that NFD does not decompose into base letter + combining mark.
_SPECIAL_CHARS = {
    "ñ": "n",
    "æ": "ae",
    "ø": "o",
    "ß": "ss",
    "ð": "d",
    "þ": "th",
    "ç": "c",
    "œ": "oe",
    "ł": "l",
    "đ": "d",
}
_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_RE = re.compile(r"[^a-z0-9-]")
_HYPHENS_RE = re.compile(r"-{2,}")


def normalize(name: str | None) -> str:
    """Turn arbitrary display text into a slug candidate.

    Pure and idempotent: ``normalize(normalize(x)) == normalize(x)``.
    """
    if not name:
        return ""
    value = name.lower()
    value = "".join(_SPECIAL_CHARS.get(ch, ch) for ch in value)
    value = unicodedata.normalize("NFD", value)
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = _WHITESPACE_RE.sub("-", value)
    value = _INVALID_RE.sub("", value)
    value = _HYPHENS_RE.sub("-", value)
    return value.strip("-")


def is_valid_slug(value: str | None) -> bool:
    """Return True when slug is longer than one char and only uses [a-z0-9-]."""
    if not value or len(value) <= 1:
        return False
    return bool(SLUG_PATTERN.fullmatch(value))


def is_reserved_slug(value: str | None) -> bool:
    return (value or "").lower() in RESERVED_SLUGS


def is_valid_custom_slug(value: str | None) -> bool:
    """Rules for slugs typed by the owner (stricter than allocated ones)."""
    if not is_valid_slug(value):
        return False
    return len(value) <= CUSTOM_SLUG_MAX_LENGTH and not is_reserved_slug(value)


def base_slug(first_name: str | None, last_name: str | None) -> str:
    full_name = f"{(first_name or '').strip()} {(last_name or '').strip()}".strip()
    return normalize(full_name)


def slug_candidate(base: str, counter: int) -> str:
    return base if counter <= 0 else f"{base}-{counter}"


def iter_candidates(base: str, start: int = 0) -> Iterator[tuple[int, str]]:
    counter = max(0, start)
    while True:
        yield counter, slug_candidate(base, counter)
        counter += 1


def allocate_with_counter(
    first_name: str | None,
    last_name: str | None,
    exists: Callable[[str], bool],
    start: int = 0,
) -> tuple[str, int]:
    """Like ``allocate`` but also returns the counter of the chosen candidate.

    Returns ``("", -1)`` when the names do not produce a valid slug.
    """
    base = base_slug(first_name, last_name)
    if not is_valid_slug(base):
        return "", -1
    for counter, candidate in iter_candidates(base, start):
        if is_reserved_slug(candidate):
            continue
        if not exists(candidate):
            return candidate, counter
    return "", -1  # pragma: no cover


def allocate(
    first_name: str | None,
    last_name: str | None,
    exists: Callable[[str], bool],
    start: int = 0,
) -> str:
    """Find the first free slug among ``base``, ``base-1``, ``base-2``...

    ``exists`` answers whether a slug is already taken. The search is a
    best-effort pre-check; the unique constraint on the store decides.
    Returns an empty string when the names normalize to nothing usable.
    """
    slug, _counter = allocate_with_counter(first_name, last_name, exists, start)
    return slug
