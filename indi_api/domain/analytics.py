"""Pure analytics helpers shared by the recorder, the aggregator and the dashboard.

Nothing here touches the database: functions operate on event-like objects
exposing ``event_type``, ``visitor_id``, ``device_type``, ``country``,
``referrer``, ``source`` and ``created_at`` attributes (ORM rows in production,
simple namespaces in tests).
"""
from __future__ import annotations

import hashlib
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlparse

from indi_api.core.errors import ValidationError

TOP_N = 5
UNKNOWN = "unknown"
DIRECT = "direct"


class EventType(str, Enum):
    VIEW = "view"
    CONTACT_SAVE = "contact_save"
    SOCIAL_CLICK = "social_click"
    SHARE = "share"
    QR_SCAN = "qr_scan"


EVENT_TYPES = frozenset(item.value for item in EventType)

PERIODS = {
    "1d": 1,
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}
DEFAULT_PERIOD = "7d"


def parse_event_type(value: Any) -> EventType:
    raw = value.value if isinstance(value, EventType) else str(value or "").strip()
    if raw not in EVENT_TYPES:
        raise ValidationError(f"Unsupported event type: {raw!r}", code="unsupported_event_type")
    return EventType(raw)


def period_days(period: Optional[str]) -> int:
    key = (period or DEFAULT_PERIOD).strip().lower()
    if key not in PERIODS:
        raise ValidationError(
            f"Unsupported period {key!r}; use one of {', '.join(PERIODS)}",
            code="invalid_period",
        )
    return PERIODS[key]


def day_window(day: date) -> tuple[datetime, datetime]:
    """UTC half-open window ``[day 00:00, day+1 00:00)``."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


# -------------------------- request classification --------------------------
def classify_device(user_agent: Optional[str]) -> str:
    ua = user_agent or ""
    if "iPad" in ua or "Tablet" in ua:
        return "tablet"
    if "Mobile" in ua or "iPhone" in ua or "Android" in ua:
        return "mobile"
    return "desktop"


def classify_browser(user_agent: Optional[str]) -> str:
    ua = user_agent or ""
    # Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari.
    if "Edg/" in ua or "Edge/" in ua:
        return "Edge"
    if "OPR/" in ua or "Opera" in ua:
        return "Opera"
    if "Firefox/" in ua or "FxiOS" in ua:
        return "Firefox"
    if "Chrome/" in ua or "CriOS" in ua:
        return "Chrome"
    if "Safari/" in ua:
        return "Safari"
    return "Other"


def classify_os(user_agent: Optional[str]) -> str:
    ua = user_agent or ""
    if "Windows" in ua:
        return "Windows"
    if "Android" in ua:
        return "Android"
    if "iPhone" in ua or "iPad" in ua or "iOS" in ua:
        return "iOS"
    if "Mac OS X" in ua or "Macintosh" in ua:
        return "macOS"
    if "Linux" in ua:
        return "Linux"
    return "Other"


def derive_visitor_id(ip: Optional[str], user_agent: Optional[str]) -> str:
    """Approximate visitor identity; same (ip, user agent) gives the same id."""
    raw = f"{ip or ''}|{user_agent or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def referrer_host(referrer: Optional[str]) -> str:
    if not referrer:
        return ""
    try:
        host = (urlparse(referrer).hostname or "").lower()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def classify_source(referrer: Optional[str], metadata: Optional[Mapping[str, Any]] = None) -> str:
    """Traffic source label: explicit utm/source tag, else referrer host, else direct."""
    meta = metadata or {}
    for key in ("utm_source", "source"):
        tagged = str(meta.get(key) or "").strip().lower()
        if tagged:
            return tagged[:100]
    return referrer_host(referrer) or DIRECT


# -------------------------- grouping and counting --------------------------
def top_n(values: Iterable[Optional[str]], limit: int = TOP_N) -> list[dict]:
    """Most frequent non-empty labels, count descending then label ascending."""
    counts = Counter(v for v in values if v)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"label": label, "count": count} for label, count in ordered[:limit]]


def distribution(values: Iterable[Optional[str]]) -> list[dict]:
    """Percentage share of every label (missing labels count as ``unknown``)."""
    counts = Counter((v or UNKNOWN) for v in values)
    total = sum(counts.values())
    if not total:
        return []
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        {"label": label, "count": count, "percentage": round(count * 100.0 / total, 2)}
        for label, count in ordered
    ]


@dataclass
class DailyCounters:
    total_views: int = 0
    unique_views: int = 0
    contact_saves: int = 0
    social_clicks: int = 0
    qr_scans: int = 0
    shares: int = 0
    top_countries: list = field(default_factory=list)
    top_devices: list = field(default_factory=list)
    top_referrers: list = field(default_factory=list)

    def as_row(self) -> dict:
        return asdict(self)

    def add(self, other: "DailyCounters") -> None:
        """Sum the counters of another day (breakdowns are left untouched)."""
        self.total_views += other.total_views
        self.unique_views += other.unique_views
        self.contact_saves += other.contact_saves
        self.social_clicks += other.social_clicks
        self.qr_scans += other.qr_scans
        self.shares += other.shares


def count_events(events: Iterable[Any]) -> DailyCounters:
    """Counters for one group of events (typically one card, one day)."""
    counters = DailyCounters()
    visitors: set[str] = set()
    countries: list[Optional[str]] = []
    devices: list[Optional[str]] = []
    referrers: list[str] = []
    for event in events:
        kind = event.event_type
        if kind == EventType.VIEW.value:
            counters.total_views += 1
            if event.visitor_id:
                visitors.add(event.visitor_id)
        elif kind == EventType.CONTACT_SAVE.value:
            counters.contact_saves += 1
        elif kind == EventType.SOCIAL_CLICK.value:
            counters.social_clicks += 1
        elif kind == EventType.QR_SCAN.value:
            counters.qr_scans += 1
        elif kind == EventType.SHARE.value:
            counters.shares += 1
        countries.append(event.country)
        devices.append(event.device_type)
        host = referrer_host(event.referrer)
        if host:
            referrers.append(host)
    counters.unique_views = len(visitors)
    counters.top_countries = top_n(countries)
    counters.top_devices = top_n(devices)
    counters.top_referrers = top_n(referrers)
    return counters


def group_by_card(events: Iterable[Any]) -> dict[str, list]:
    groups: dict[str, list] = {}
    for event in events:
        groups.setdefault(event.card_id, []).append(event)
    return groups


def summarize_by_card(events: Iterable[Any]) -> dict[str, DailyCounters]:
    return {card_id: count_events(group) for card_id, group in group_by_card(events).items()}


# -------------------------- derived metrics --------------------------
def conversion_rate(total_views: int, total_contacts: int) -> float:
    """Contacts per hundred views, two decimals; 0.0 when there are no views."""
    if not total_views:
        return 0.0
    return round(total_contacts * 100.0 / total_views, 2)


def percent_change(current: float, previous: float) -> float:
    if not previous:
        return 0.0 if not current else 100.0
    return round((current - previous) * 100.0 / previous, 2)


def format_rate(value: float) -> str:
    return f"{value:.2f}"


def format_trend(value: float) -> str:
    return f"{value:+.2f}%"
