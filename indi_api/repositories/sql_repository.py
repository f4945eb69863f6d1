"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from indi_api.core.errors import ConflictError, SlugConflictError
from indi_api.core.utils import utcnow
from indi_api.db.models import (
    AnalyticsEvent,
    Card,
    DailySummary,
    User,
    UserSession,
)
from indi_api.db.session import get_session


def new_id() -> str:
    return str(uuid.uuid4())


def _conflict_from(exc: IntegrityError) -> ConflictError:
    message = str(getattr(exc, "orig", exc)).lower()
    if "custom_slug" in message:
        return SlugConflictError("Slug already in use")
    if "email" in message:
        return ConflictError("Email already registered", code="email_taken")
    return ConflictError("Conflicting record")


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- users --------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        email_value = (email or "").strip().lower()
        if not email_value:
            return None
        with get_session() as session:
            stmt = select(User).where(User.email == email_value)
            return session.execute(stmt).scalar_one_or_none()

    def create_user(self, email: str, password_hash: str, full_name: str | None = None) -> User:
        now = utcnow()
        user = User(
            id=new_id(),
            email=(email or "").strip().lower(),
            password_hash=password_hash,
            full_name=full_name,
            created_at=now,
            updated_at=now,
        )
        try:
            with get_session() as session:
                session.add(user)
                session.commit()
                return user
        except IntegrityError as exc:
            raise _conflict_from(exc) from exc

    def update_user_password(self, user_id: str, password_hash: str) -> None:
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, updated_at=utcnow())
            )
            session.execute(stmt)
            session.commit()

    # -------------------------- sessions --------------------------
    def create_user_session(self, token: str, user_id: str, expires_at: datetime) -> UserSession:
        entity = UserSession(token=token, user_id=user_id, expires_at=expires_at, created_at=utcnow())
        with get_session() as session:
            session.add(entity)
            session.commit()
            return entity

    def get_user_session(self, token: str) -> Optional[UserSession]:
        with get_session() as session:
            return session.get(UserSession, token)

    def delete_user_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()

    def delete_expired_sessions(self, now: datetime) -> int:
        with get_session() as session:
            result = session.execute(delete(UserSession).where(UserSession.expires_at < now))
            session.commit()
            return int(result.rowcount or 0)

    # -------------------------- cards --------------------------
    def get_card(self, card_id: str) -> Optional[Card]:
        with get_session() as session:
            return session.get(Card, card_id)

    def get_card_by_slug(self, slug: str) -> Optional[Card]:
        slug_value = (slug or "").strip().lower()
        if not slug_value:
            return None
        with get_session() as session:
            stmt = select(Card).where(Card.custom_slug == slug_value)
            return session.execute(stmt).scalar_one_or_none()

    def get_cards_by_owner(self, user_id: str) -> list[Card]:
        with get_session() as session:
            stmt = select(Card).where(Card.user_id == user_id).order_by(Card.created_at.desc(), Card.id)
            return list(session.execute(stmt).scalars().all())

    def slug_exists(self, slug: str, exclude_card_id: str | None = None) -> bool:
        """Count-based, case-insensitive check, optionally ignoring one card."""
        slug_value = (slug or "").strip().lower()
        if not slug_value:
            return False
        with get_session() as session:
            stmt = select(func.count()).select_from(Card).where(Card.custom_slug == slug_value)
            if exclude_card_id:
                stmt = stmt.where(Card.id != exclude_card_id)
            return int(session.execute(stmt).scalar_one()) > 0

    def create_card(self, values: dict) -> Card:
        now = utcnow()
        entity = Card(
            id=values.get("id") or new_id(),
            social_links=[],
            contact_fields={},
            theme_config={},
            is_published=False,
            views_count=0,
            created_at=now,
            updated_at=now,
        )
        for key, value in values.items():
            setattr(entity, key, value)
        try:
            with get_session() as session:
                session.add(entity)
                session.commit()
                return entity
        except IntegrityError as exc:
            raise _conflict_from(exc) from exc

    def update_card(self, card_id: str, values: dict) -> Optional[Card]:
        try:
            with get_session() as session:
                card = session.get(Card, card_id)
                if not card:
                    return None
                for key, value in values.items():
                    setattr(card, key, value)
                card.updated_at = utcnow()
                session.commit()
                return card
        except IntegrityError as exc:
            raise _conflict_from(exc) from exc

    def delete_card(self, card_id: str) -> bool:
        """Delete a card together with its events and summaries."""
        with get_session() as session:
            session.execute(delete(AnalyticsEvent).where(AnalyticsEvent.card_id == card_id))
            session.execute(delete(DailySummary).where(DailySummary.card_id == card_id))
            result = session.execute(delete(Card).where(Card.id == card_id))
            session.commit()
            return bool(result.rowcount)

    def increment_card_views(self, card_id: str) -> None:
        with get_session() as session:
            stmt = (
                update(Card)
                .where(Card.id == card_id)
                .values(views_count=Card.views_count + 1)
            )
            session.execute(stmt)
            session.commit()

    # -------------------------- analytics events --------------------------
    def add_event(self, values: dict) -> AnalyticsEvent:
        entity = AnalyticsEvent(id=values.get("id") or new_id(), **{k: v for k, v in values.items() if k != "id"})
        with get_session() as session:
            session.add(entity)
            session.commit()
            return entity

    def list_events_between(
        self,
        start: datetime,
        end: datetime,
        card_ids: Iterable[str] | None = None,
    ) -> list[AnalyticsEvent]:
        """Events with ``start <= created_at < end``, optionally for some cards."""
        with get_session() as session:
            stmt = select(AnalyticsEvent).where(
                AnalyticsEvent.created_at >= start,
                AnalyticsEvent.created_at < end,
            )
            if card_ids is not None:
                ids = list(card_ids)
                if not ids:
                    return []
                stmt = stmt.where(AnalyticsEvent.card_id.in_(ids))
            stmt = stmt.order_by(AnalyticsEvent.created_at, AnalyticsEvent.id)
            return list(session.execute(stmt).scalars().all())

    def recent_events(self, card_ids: Iterable[str], limit: int) -> list[AnalyticsEvent]:
        ids = list(card_ids)
        if not ids or limit <= 0:
            return []
        with get_session() as session:
            stmt = (
                select(AnalyticsEvent)
                .where(AnalyticsEvent.card_id.in_(ids))
                .order_by(AnalyticsEvent.created_at.desc(), AnalyticsEvent.id)
                .limit(limit)
            )
            return list(session.execute(stmt).scalars().all())

    def list_card_events(self, card_id: str) -> list[AnalyticsEvent]:
        with get_session() as session:
            stmt = (
                select(AnalyticsEvent)
                .where(AnalyticsEvent.card_id == card_id)
                .order_by(AnalyticsEvent.created_at, AnalyticsEvent.id)
            )
            return list(session.execute(stmt).scalars().all())

    def purge_events_before(self, cutoff: datetime) -> int:
        with get_session() as session:
            result = session.execute(delete(AnalyticsEvent).where(AnalyticsEvent.created_at < cutoff))
            session.commit()
            return int(result.rowcount or 0)

    # -------------------------- daily summaries --------------------------
    def upsert_daily_summary(self, card_id: str, day: date, counters: dict) -> DailySummary:
        """Insert or overwrite the summary row of (card, day)."""
        for _attempt in range(2):
            now = utcnow()
            try:
                with get_session() as session:
                    stmt = select(DailySummary).where(
                        DailySummary.card_id == card_id,
                        DailySummary.date == day,
                    )
                    summary = session.execute(stmt).scalar_one_or_none()
                    if not summary:
                        summary = DailySummary(id=new_id(), card_id=card_id, date=day, created_at=now)
                        session.add(summary)
                    for key, value in counters.items():
                        setattr(summary, key, value)
                    summary.updated_at = now
                    session.commit()
                    return summary
            except IntegrityError:
                # Another run inserted (card, day) first: retry as an update.
                continue
        raise ConflictError(f"Could not upsert summary for card {card_id} on {day.isoformat()}")

    def get_daily_summary(self, card_id: str, day: date) -> Optional[DailySummary]:
        with get_session() as session:
            stmt = select(DailySummary).where(DailySummary.card_id == card_id, DailySummary.date == day)
            return session.execute(stmt).scalar_one_or_none()

    def list_daily_summaries(self, card_ids: Iterable[str], start: date, end: date) -> list[DailySummary]:
        """Summaries with ``start <= date <= end`` for the given cards."""
        ids = list(card_ids)
        if not ids:
            return []
        with get_session() as session:
            stmt = (
                select(DailySummary)
                .where(
                    DailySummary.card_id.in_(ids),
                    DailySummary.date >= start,
                    DailySummary.date <= end,
                )
                .order_by(DailySummary.date, DailySummary.card_id)
            )
            return list(session.execute(stmt).scalars().all())

    def count_daily_summaries(self, card_id: str | None = None) -> int:
        with get_session() as session:
            stmt = select(func.count()).select_from(DailySummary)
            if card_id:
                stmt = stmt.where(DailySummary.card_id == card_id)
            return int(session.execute(stmt).scalar_one())
