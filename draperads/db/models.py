from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from draperads.db.base import Base
from draperads.db.enums import AdStatusEnum, OAuthProviderEnum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


ad_status_enum = Enum(
    AdStatusEnum,
    name="ad_status",
    native_enum=False,
    validate_strings=True,
    values_callable=lambda members: [member.value for member in members],
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    username: Mapped[str] = mapped_column(String(length=255), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Template(Base):
    __tablename__ = "templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)


class AdAccount(Base):
    __tablename__ = "ad_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(length=64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class Ad(Base):
    __tablename__ = "ads"
    __table_args__ = (sa.Index("idx_ads_status_updated", "status", "updated_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("templates.id", ondelete="SET NULL"), nullable=True
    )
    media_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary_text: Mapped[str] = mapped_column(Text, nullable=False)
    headline: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cta: Mapped[str] = mapped_column(String(length=64), nullable=False)
    website_url: Mapped[str] = mapped_column(Text, nullable=False)
    brand_name: Mapped[str] = mapped_column(Text, nullable=False)
    brand_logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ad_type: Mapped[Optional[str]] = mapped_column(String(length=64), nullable=True)
    ad_format: Mapped[Optional[str]] = mapped_column(String(length=64), nullable=True)
    customize_placements: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    status: Mapped[AdStatusEnum] = mapped_column(ad_status_enum, nullable=False, default=AdStatusEnum.draft)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    meta_ad_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    statistics: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False, default=dict)
    targeting: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True)

    ad_sets: Mapped[list["AdSet"]] = relationship(
        back_populates="ad", cascade="all, delete-orphan", passive_deletes=True
    )


class AdSet(Base):
    __tablename__ = "ad_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    account_id: Mapped[str] = mapped_column(String(length=64), nullable=False)
    campaign_objective: Mapped[str] = mapped_column(String(length=64), nullable=False)
    placements: Mapped[list[str]] = mapped_column(sa.JSON, nullable=False, default=list)
    ad_id: Mapped[int] = mapped_column(ForeignKey("ads.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(length=128), nullable=True)
    meta_ad_set_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AdStatusEnum] = mapped_column(ad_status_enum, nullable=False, default=AdStatusEnum.draft)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    ad: Mapped[Ad] = relationship(back_populates="ad_sets")


class WebSession(Base):
    __tablename__ = "sessions"

    sid: Mapped[str] = mapped_column(String(length=128), primary_key=True)
    sess: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False, default=dict)
    expire: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class OAuthState(Base):
    __tablename__ = "oauth_states"

    state: Mapped[str] = mapped_column(String(length=128), primary_key=True)
    session_id: Mapped[str] = mapped_column(String(length=128), nullable=False, index=True)
    provider: Mapped[OAuthProviderEnum] = mapped_column(
        Enum(OAuthProviderEnum, name="oauth_provider", native_enum=False), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
