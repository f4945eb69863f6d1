"""
Downloadable renditions of a published card: vCard text and QR code image.
"""

from __future__ import annotations

import io

import qrcode

from indi_api.core.utils import published_url
from indi_api.db.models import Card

QR_SOURCE_PARAM = "src=qr"


def _escape(value: str | None) -> str:
    text = (value or "").strip()
    return (
        text.replace("\\", "\\\\")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
        .replace(";", "\\;")
        .replace(",", "\\,")
    )


def card_url(card: Card) -> str:
    return published_url(card.custom_slug or card.id)


def build_vcard(card: Card) -> str:
    """vCard 3.0 document with CRLF line endings."""
    first = _escape(card.first_name)
    last = _escape(card.last_name)
    full_name = " ".join(p for p in (first, last) if p) or _escape(card.title)
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"N:{last};{first};;;",
        f"FN:{full_name}",
    ]
    if card.company:
        lines.append(f"ORG:{_escape(card.company)}")
    if card.title or card.position:
        lines.append(f"TITLE:{_escape(card.position or card.title)}")
    if card.email:
        lines.append(f"EMAIL;TYPE=INTERNET:{_escape(card.email)}")
    if card.phone:
        lines.append(f"TEL;TYPE=CELL:{_escape(card.phone)}")
    if card.location:
        lines.append(f"ADR;TYPE=WORK:;;{_escape(card.location)};;;;")
    if card.bio:
        lines.append(f"NOTE:{_escape(card.bio)}")
    if card.website:
        lines.append(f"URL:{_escape(card.website)}")
    for link in card.social_links or []:
        if not isinstance(link, dict) or not link.get("url") or link.get("active") is False:
            continue
        platform = _escape(str(link.get("platform") or "other")).upper()
        lines.append(f"URL;TYPE={platform}:{_escape(link['url'])}")
    lines.append(f"URL;TYPE=CARD:{card_url(card)}")
    lines.append("END:VCARD")
    return "\r\n".join(lines) + "\r\n"


def vcard_filename(card: Card) -> str:
    return f"{card.custom_slug or card.id}.vcf"


def qr_png(card: Card) -> bytes:
    """PNG QR code pointing at the public URL, tagged so scans can be counted."""
    target = f"{card_url(card)}?{QR_SOURCE_PARAM}"
    qr = qrcode.QRCode(version=None, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=4)
    qr.add_data(target)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
