"""Click event model: one row per recorded visit of a short link."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from shortlink.models.link import UTCDateTime, utcnow


class ClickEventBase(SQLModel):
    """Request metadata captured for a visit."""

    link_id: str = Field(foreign_key="links.id", ondelete="CASCADE", max_length=36)
    clicked_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    remote_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=512)
    referer: Optional[str] = Field(default=None, max_length=2048)


class ClickEvent(ClickEventBase, table=True):
    __tablename__ = "click_events"

    id: Optional[int] = Field(default=None, primary_key=True)

    __table_args__ = (
        Index("ix_click_events_link_clicked", "link_id", "clicked_at"),
        Index("ix_click_events_clicked_at", "clicked_at"),
    )


class ClickEventCreate(ClickEventBase):
    pass
