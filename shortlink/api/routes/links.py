"""Link management endpoints under /api/v1/links."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.api import schemas
from shortlink.api.dependencies import (
    build_short_url,
    get_current_identity,
    get_link_service,
    require_identity,
)
from shortlink.api.params import LimitParam, PageParam
from shortlink.core.security import Identity
from shortlink.db.session import get_db
from shortlink.models.link import Link
from shortlink.services.links import LinkService

router = APIRouter(prefix="/links", tags=["links"])

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse, "description": "Invalid input"},
    401: {"model": schemas.ErrorResponse, "description": "Missing or invalid token"},
    403: {"model": schemas.ErrorResponse, "description": "Not the owner of the link"},
    404: {"model": schemas.ErrorResponse, "description": "Link not found"},
}


def to_response(link: Link) -> schemas.LinkResponse:
    return schemas.LinkResponse(
        id=link.id,
        domain=link.domain,
        keyword=link.keyword,
        url=link.url,
        title=link.title,
        active=link.active,
        clicks=link.clicks,
        short_url=build_short_url(link.domain, link.keyword),
        created_at=link.created_at,
        updated_at=link.updated_at,
        last_clicked_at=link.last_clicked_at,
    )


def _user_id(identity: Optional[Identity]) -> Optional[str]:
    return identity.user_id if identity else None


@router.post(
    "",
    response_model=schemas.LinkEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={
        **ERROR_RESPONSES,
        409: {"model": schemas.ErrorResponse, "description": "Keyword already taken"},
        503: {"model": schemas.ErrorResponse, "description": "No free keyword could be allocated"},
    },
)
async def create_link(
    payload: schemas.LinkCreateRequest,
    db: AsyncSession = Depends(get_db),
    identity: Optional[Identity] = Depends(get_current_identity),
    link_service: LinkService = Depends(get_link_service),
):
    link = await link_service.create_link(
        db,
        url=payload.url,
        domain=payload.domain,
        keyword=payload.keyword,
        title=payload.title,
        owner_id=_user_id(identity),
    )
    return schemas.LinkEnvelope(data=to_response(link))


@router.get("", response_model=schemas.LinkListResponse, responses=ERROR_RESPONSES)
async def list_links(
    page: int = PageParam(),
    limit: int = LimitParam(),
    q: Optional[str] = Query(None, description="Search url, title and keyword"),
    sort: Optional[str] = Query(None, description="field, field:asc, field:desc or -field"),
    active: Optional[bool] = Query(None, description="Only active or only inactive links"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_identity),
    link_service: LinkService = Depends(get_link_service),
):
    """List the caller's links, newest first unless ``sort`` says otherwise."""
    result = await link_service.list_links(
        db,
        owner_id=identity.user_id,
        page=page,
        limit=limit,
        q=q,
        sort=sort,
        active=active,
    )
    return schemas.LinkListResponse(
        data=[to_response(link) for link in result.items],
        limit=result.limit,
        page=result.page,
        sort=result.sort,
        total=result.total,
        pages=result.pages,
    )


@router.get("/{link_id}", response_model=schemas.LinkEnvelope, responses=ERROR_RESPONSES)
async def get_link(
    link_id: str = Path(..., description="Link id"),
    db: AsyncSession = Depends(get_db),
    identity: Optional[Identity] = Depends(get_current_identity),
    link_service: LinkService = Depends(get_link_service),
):
    link = await link_service.get_link(db, link_id, _user_id(identity))
    return schemas.LinkEnvelope(data=to_response(link))


@router.patch("/{link_id}", response_model=schemas.LinkEnvelope, responses=ERROR_RESPONSES)
async def update_link(
    payload: schemas.LinkUpdateRequest,
    link_id: str = Path(..., description="Link id"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_identity),
    link_service: LinkService = Depends(get_link_service),
):
    """Change url, title or active. Fields left out of the body are kept."""
    changes = payload.model_dump(exclude_unset=True)
    link = await link_service.update_link(db, link_id, identity.user_id, changes)
    return schemas.LinkEnvelope(data=to_response(link))


@router.delete(
    "/{link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERROR_RESPONSES,
)
async def delete_link(
    link_id: str = Path(..., description="Link id"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_identity),
    link_service: LinkService = Depends(get_link_service),
):
    await link_service.delete_link(db, link_id, identity.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{link_id}/clicks", response_model=schemas.LinkClicksResponse, responses=ERROR_RESPONSES)
async def get_link_clicks(
    link_id: str = Path(..., description="Link id"),
    limit: int = Query(50, ge=1, le=500, description="Number of recent clicks"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_identity),
    link_service: LinkService = Depends(get_link_service),
):
    events, total = await link_service.get_link_clicks(db, link_id, identity.user_id, limit)
    return schemas.LinkClicksResponse(
        data=[schemas.ClickData.model_validate(event) for event in events],
        total=total,
    )
