"""SQLAlchemy models for users, cards and analytics."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    JSON,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    cards = relationship("Card", back_populates="owner", cascade="all,delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all,delete-orphan")


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="sessions")


class Card(Base):
    __tablename__ = "cards"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    title = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    position = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    cover_url = Column(Text, nullable=True)
    social_links = Column(JSON, default=list, nullable=False)
    contact_fields = Column(JSON, default=dict, nullable=False)
    theme_config = Column(JSON, default=dict, nullable=False)
    # Stored lowercase only; the unique constraint is the final uniqueness guarantee.
    custom_slug = Column(String(255), unique=True, nullable=True)
    is_published = Column(Boolean, default=False, nullable=False, index=True)
    views_count = Column(Integer, default=0, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("User", back_populates="cards")
    events = relationship("AnalyticsEvent", back_populates="card", cascade="all,delete-orphan", passive_deletes=True)
    daily_summaries = relationship("DailySummary", back_populates="card", cascade="all,delete-orphan", passive_deletes=True)


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"
    __table_args__ = (
        Index("idx_analytics_events_card_created", "card_id", "created_at"),
    )

    id = Column(String(36), primary_key=True)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String(50), nullable=False, index=True)
    visitor_id = Column(String(100), nullable=True, index=True)
    device_type = Column(String(20), nullable=True)
    browser = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    referrer = Column(Text, nullable=True)
    source = Column(String(100), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    event_metadata = Column("metadata", JSON, default=dict, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    card = relationship("Card", back_populates="events")


class DailySummary(Base):
    __tablename__ = "analytics_daily_summary"
    __table_args__ = (
        UniqueConstraint("card_id", "date", name="uq_analytics_daily_card_date"),
    )

    id = Column(String(36), primary_key=True)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    total_views = Column(Integer, default=0, nullable=False)
    unique_views = Column(Integer, default=0, nullable=False)
    contact_saves = Column(Integer, default=0, nullable=False)
    social_clicks = Column(Integer, default=0, nullable=False)
    qr_scans = Column(Integer, default=0, nullable=False)
    shares = Column(Integer, default=0, nullable=False)
    top_countries = Column(JSON, default=list, nullable=False)
    top_devices = Column(JSON, default=list, nullable=False)
    top_referrers = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    card = relationship("Card", back_populates="daily_summaries")
