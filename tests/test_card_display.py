from __future__ import annotations

from indi_api.db.models import Card
from indi_api.services.card_display import build_vcard, qr_png, vcard_filename


def _card(**fields) -> Card:
    values = {"id": "00000000-0000-4000-8000-000000000001", "custom_slug": "ana-souza", "social_links": []}
    values.update(fields)
    return Card(**values)


def test_vcard_escapes_and_uses_crlf(temp_db):
    card = _card(
        first_name="Ana",
        last_name="Souza",
        company="Acme, Inc; Ltd",
        bio="line one\nline two",
        social_links=[
            {"platform": "linkedin", "url": "https://linkedin.com/in/ana"},
            {"platform": "x", "url": "https://x.com/ana", "active": False},
        ],
    )
    text = build_vcard(card)
    lines = text.split("\r\n")
    assert lines[0] == "BEGIN:VCARD"
    assert "N:Souza;Ana;;;" in lines
    assert "ORG:Acme\\, Inc\\; Ltd" in lines
    assert "NOTE:line one\\nline two" in lines
    assert "URL;TYPE=LINKEDIN:https://linkedin.com/in/ana" in lines
    assert not any("x.com" in line for line in lines)
    assert "URL;TYPE=CARD:https://indi.test/card/ana-souza" in lines
    assert text.endswith("END:VCARD\r\n")
    assert vcard_filename(card) == "ana-souza.vcf"


def test_qr_png_is_an_image(temp_db):
    assert qr_png(_card()).startswith(b"\x89PNG\r\n\x1a\n")
