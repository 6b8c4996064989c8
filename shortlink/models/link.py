"""Short link data models.

This module defines the Link table and the schemas derived from it.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

OWNER_ID_MAX_LENGTH = 64


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp column.

    Naive values are taken to be UTC. SQLite hands timestamps back without
    an offset, so results are tagged with UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_link_id() -> str:
    return str(uuid.uuid4())


class LinkBase(SQLModel):
    """Fields supplied when a link is created."""

    domain: str = Field(
        max_length=253,
        description="Short link host the keyword lives under"
    )
    keyword: str = Field(
        max_length=64,
        description="Short code, unique within its domain"
    )
    url: str = Field(
        max_length=2048,
        description="Destination the short link redirects to"
    )
    title: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Optional human readable label"
    )


class Link(LinkBase, table=True):
    """
    A short link.

    ``(domain, keyword)`` is unique across every row, including inactive and
    soft-deleted ones, so a code is never handed out twice. ``clicks`` is
    only ever changed by click accounting.
    """

    __tablename__ = "links"

    id: str = Field(default_factory=new_link_id, primary_key=True, max_length=36)
    active: bool = Field(default=True)
    owner_id: Optional[str] = Field(
        default=None,
        max_length=OWNER_ID_MAX_LENGTH,
        description="Creating user; NULL for anonymous links"
    )
    clicks: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    last_clicked_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    __table_args__ = (
        UniqueConstraint("domain", "keyword", name="uq_links_domain_keyword"),
        Index("ix_links_owner_created", "owner_id", "created_at"),
        Index("ix_links_deleted_at", "deleted_at"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class LinkCreate(LinkBase):
    """Schema for creating a new link."""
    owner_id: Optional[str] = None
    active: bool = True
