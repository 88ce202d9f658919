from __future__ import annotations

import uuid
from typing import Any, Optional
from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Text, UniqueConstraint, Uuid, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB

from .db import Base

# JSONB on Supabase Postgres, plain JSON on the sqlite test engine.
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Business(Base):
    __tablename__ = "businesses"
    __table_args__ = (
        Index("businesses_published_idx", "is_published"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[Optional[str]] = mapped_column(Text)
    service_area: Mapped[Optional[list]] = mapped_column(JSONType)
    primary_category: Mapped[Optional[str]] = mapped_column(Text)
    seo_title: Mapped[Optional[str]] = mapped_column(Text)
    seo_description: Mapped[Optional[str]] = mapped_column(Text)
    og_image_url: Mapped[Optional[str]] = mapped_column(Text)
    facebook_url: Mapped[Optional[str]] = mapped_column(Text)
    google_maps_url: Mapped[Optional[str]] = mapped_column(Text)
    brand_color: Mapped[Optional[str]] = mapped_column(Text)
    final_title: Mapped[Optional[str]] = mapped_column(Text)
    final_description: Mapped[Optional[str]] = mapped_column(Text)
    final_canonical_url: Mapped[Optional[str]] = mapped_column(Text)
    final_og_image: Mapped[Optional[str]] = mapped_column(Text)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    members: Mapped[list[BusinessMember]] = relationship("BusinessMember", back_populates="business", cascade="all, delete-orphan")


class BusinessMember(Base):
    __tablename__ = "business_members"
    __table_args__ = (
        UniqueConstraint("user_id", "business_id", name="business_members_user_business_uidx"),
        Index("business_members_business_idx", "business_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    business_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="admin")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    business: Mapped[Business] = relationship("Business", back_populates="members")


class SmallBusinessProfile(Base):
    """Everything the public page renders. One row per business."""

    __tablename__ = "small_business_profiles"
    __table_args__ = (
        Index("small_business_profiles_email_idx", "email"),
        Index("small_business_profiles_auth_idx", "auth_id"),
        Index("small_business_profiles_customer_idx", "stripe_customer_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), unique=True)
    auth_id: Mapped[Optional[str]] = mapped_column(Text)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    business_name: Mapped[Optional[str]] = mapped_column(Text)
    seo_business_name: Mapped[Optional[str]] = mapped_column(Text)
    owner_name: Mapped[Optional[str]] = mapped_column(Text)

    email: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[str]] = mapped_column(Text)
    website: Mapped[Optional[str]] = mapped_column(Text)
    google_place_id: Mapped[Optional[str]] = mapped_column(Text)
    primary_category: Mapped[Optional[str]] = mapped_column(Text)
    logo_url: Mapped[Optional[str]] = mapped_column(Text)

    hero_headline: Mapped[Optional[str]] = mapped_column(Text)
    hero_tagline: Mapped[Optional[str]] = mapped_column(Text)
    about: Mapped[Optional[str]] = mapped_column(Text)
    why_choose_us: Mapped[Optional[str]] = mapped_column(Text)
    services_intro: Mapped[Optional[str]] = mapped_column(Text)
    seo_title: Mapped[Optional[str]] = mapped_column(Text)
    seo_description: Mapped[Optional[str]] = mapped_column(Text)

    services: Mapped[Optional[Any]] = mapped_column(JSONType)
    faqs: Mapped[Optional[Any]] = mapped_column(JSONType)
    trust_badges: Mapped[Optional[Any]] = mapped_column(JSONType)
    testimonials: Mapped[Optional[Any]] = mapped_column(JSONType)
    attachments: Mapped[Optional[Any]] = mapped_column(JSONType)
    service_area: Mapped[Optional[Any]] = mapped_column(JSONType)
    town_sections: Mapped[Optional[Any]] = mapped_column(JSONType)
    images: Mapped[Optional[Any]] = mapped_column(JSONType)

    primary_cta_label: Mapped[Optional[str]] = mapped_column(Text)
    primary_cta_type: Mapped[Optional[str]] = mapped_column(Text)
    primary_cta_value: Mapped[Optional[str]] = mapped_column(Text)

    is_open_now: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    accepting_clients: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    offers_emergency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    stripe_customer_id: Mapped[Optional[str]] = mapped_column(Text)
    subscription_status: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[Optional[DateTime]] = mapped_column(DateTime(timezone=True))


class Profile(Base):
    """Personal identity profile, keyed by username."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    type: Mapped[Optional[str]] = mapped_column(Text)
    profile_image: Mapped[Optional[str]] = mapped_column(Text)
    display_name: Mapped[Optional[str]] = mapped_column(Text)
    headline: Mapped[Optional[str]] = mapped_column(Text)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    expertise: Mapped[Optional[Any]] = mapped_column(JSONType)
    timeline: Mapped[Optional[Any]] = mapped_column(JSONType)
    contact: Mapped[Optional[dict]] = mapped_column(JSONType)
    social: Mapped[Optional[dict]] = mapped_column(JSONType)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[Optional[DateTime]] = mapped_column(DateTime(timezone=True))


class PageEvent(Base):
    __tablename__ = "page_events"
    __table_args__ = (
        Index("page_events_slug_event_created_idx", "slug", "event", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    event: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[Any]] = mapped_column("metadata", JSONType)
    referrer: Mapped[Optional[str]] = mapped_column(Text)
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    ip: Mapped[Optional[str]] = mapped_column(Text)
    is_internal: Mapped[Optional[bool]] = mapped_column(Boolean)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    stripe_customer_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[Optional[DateTime]] = mapped_column(DateTime(timezone=True))


def row_to_dict(row: Base) -> dict[str, Any]:
    """Column values keyed by column name, the shape PostgREST returned."""
    return {
        attr.columns[0].name: getattr(row, attr.key)
        for attr in inspect(type(row)).column_attrs
    }
