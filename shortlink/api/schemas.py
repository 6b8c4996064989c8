"""API request and response schemas.

This module contains Pydantic models for API request validation
and response serialization.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LinkCreateRequest(BaseModel):
    """Request schema for creating a short link."""
    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., description="Destination URL (absolute http or https)")
    domain: Optional[str] = Field(None, description="Short link domain; defaults to the primary domain")
    keyword: Optional[str] = Field(None, description="Custom keyword; generated when omitted")
    title: Optional[str] = Field(None, description="Optional label")


class LinkUpdateRequest(BaseModel):
    """Partial update; domain and keyword cannot be changed."""
    model_config = ConfigDict(extra="forbid")

    url: Optional[str] = None
    title: Optional[str] = None
    active: Optional[bool] = None


class LinkResponse(BaseModel):
    """A link as returned to clients. The owner is never exposed."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    domain: str
    keyword: str
    url: str
    title: Optional[str] = None
    active: bool
    clicks: int
    short_url: str
    created_at: datetime
    updated_at: datetime
    last_clicked_at: Optional[datetime] = None


class LinkEnvelope(BaseModel):
    data: LinkResponse


class LinkListResponse(BaseModel):
    """One page of links plus the paging metadata."""
    data: List[LinkResponse]
    limit: int
    page: int
    sort: str
    total: int
    pages: int


class ClickData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    clicked_at: datetime
    remote_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


class LinkClicksResponse(BaseModel):
    data: List[ClickData]
    total: int


class ErrorResponse(BaseModel):
    """Error envelope used for every failed request."""
    id: str
    url: str
    status: int
    message: str
    errors: Optional[Dict[str, List[str]]] = None
