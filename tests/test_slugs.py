from __future__ import annotations

import pytest

from indi_api.domain.slugs import (
    CUSTOM_SLUG_MAX_LENGTH,
    allocate,
    allocate_with_counter,
    base_slug,
    is_valid_custom_slug,
    is_valid_slug,
    normalize,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("José María", "jose-maria"),
        ("François Müller", "francois-muller"),
        ("  Ñandú   Øre ", "nandu-ore"),
        ("Straße", "strasse"),
        ("Hello---World!!", "hello-world"),
        ("--Ana__Luiza--", "analuiza"),
        ("", ""),
        (None, ""),
        ("!!!", ""),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


def test_normalize_is_idempotent():
    for raw in ("José María", "A  B  C", "Zoë-Ærø", "x--y"):
        once = normalize(raw)
        assert normalize(once) == once


def test_is_valid_slug():
    assert is_valid_slug("ab")
    assert is_valid_slug("john-doe-2")
    assert not is_valid_slug("a")
    assert not is_valid_slug("")
    assert not is_valid_slug("John")
    assert not is_valid_slug("a_b")


def test_custom_slug_rules_reject_reserved_and_long_values():
    assert is_valid_custom_slug("my-card")
    assert not is_valid_custom_slug("dashboard")
    assert not is_valid_custom_slug("a" * (CUSTOM_SLUG_MAX_LENGTH + 1))


def test_base_slug_joins_first_and_last_name():
    assert base_slug(" John ", "Doe") == "john-doe"
    assert base_slug("Cher", None) == "cher"
    assert base_slug(None, None) == ""


def test_allocate_appends_first_free_counter():
    taken = {"john-doe", "john-doe-1"}
    assert allocate("John", "Doe", taken.__contains__) == "john-doe-2"


def test_allocate_returns_base_when_free():
    assert allocate("John", "Doe", lambda _slug: False) == "john-doe"


def test_allocate_without_usable_name_returns_empty():
    assert allocate("", "", lambda _slug: False) == ""
    assert allocate("?", "!", lambda _slug: False) == ""
    assert allocate_with_counter("", "", lambda _slug: False) == ("", -1)


def test_allocate_skips_reserved_words():
    assert allocate("API", None, lambda _slug: False) == "api-1"


def test_allocate_with_counter_resumes_from_start():
    assert allocate_with_counter("John", "Doe", lambda _slug: False, start=3) == ("john-doe-3", 3)


def test_titles_and_accents_are_flattened():
    assert normalize("Dra. Élena Núñez") == "dra-elena-nunez"
    taken = {"elena-castillo", "elena-castillo-1"}
    assert allocate("Elena", "Castillo", taken.__contains__) == "elena-castillo-2"
