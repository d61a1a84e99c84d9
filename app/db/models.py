"""
Database Models for the Link Analytics Service

This module defines the SQLModel database schemas for:
- User: Account owning URLs, with an optional timezone preference
- ShortURL: A shortened URL with its lifecycle fields (is_active, expiry_date)
- Click: One redirect through a short URL
- Impression: One view/exposure of a short URL

Design Decisions:
- Click and Impression rows are immutable once written; the engine only reads them
- Indexes on url_id and the event timestamps: every aggregate filters on both
- user_id indexed on urls so "all URLs of user X" joins stay cheap
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """
    Account table (owned by the auth service).

    Only the columns read by the analytics engine are mapped here.
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    timezone: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )


class ShortURL(SQLModel, table=True):
    """
    URL table.

    Fields:
    - is_active: Manual activation flag (a deactivated URL is always 'inactive')
    - expiry_date: Optional expiry; lifecycle status is derived from it per request
    - deleted_at: Soft-delete marker; deleted URLs are excluded from leaderboards
    """
    __tablename__ = "urls"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True, index=True)
    )
    short_code: str = Field(
        sa_column=Column(String(20), nullable=False, unique=True, index=True),
        max_length=20
    )
    original_url: str = Field(sa_column=Column(Text, nullable=False))
    title: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True)
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True)
    )
    expiry_date: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    deleted_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class Click(SQLModel, table=True):
    """
    Click log, written by the redirect path.

    country is resolved by a pluggable geo-IP lookup and may be null.
    """
    __tablename__ = "clicks"

    id: Optional[int] = Field(default=None, primary_key=True)
    url_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    clicked_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True)  # IPv6 max length
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True)
    )
    referrer: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True)
    )
    country: Optional[str] = Field(
        default=None,
        sa_column=Column(String(2), nullable=True)
    )
    device_type: Optional[str] = Field(
        default=None,
        sa_column=Column(String(50), nullable=True)
    )
    browser: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True)
    )


class Impression(SQLModel, table=True):
    """
    Impression log.

    is_unique is decided at write time: false when the same IP already
    produced an impression for the same URL within the dedup window.
    source is the referrer hostname (or the literal referrer, or '').
    """
    __tablename__ = "impressions"

    id: Optional[int] = Field(default=None, primary_key=True)
    url_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True)
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True)
    )
    referrer: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True)
    )
    is_unique: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False)
    )
    source: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True)
    )
