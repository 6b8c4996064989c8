"""
Data models for the link service.

Importing this package registers every table on SQLModel metadata.
"""

from shortlink.models.link import Link, LinkBase, LinkCreate, UTCDateTime, new_link_id, utcnow
from shortlink.models.click import ClickEvent, ClickEventBase, ClickEventCreate

__all__ = [
    "Link",
    "LinkBase",
    "LinkCreate",
    "ClickEvent",
    "ClickEventBase",
    "ClickEventCreate",
    "UTCDateTime",
    "new_link_id",
    "utcnow",
]
