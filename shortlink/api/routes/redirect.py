"""Short link redirection with background click accounting."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import RedirectResponse

from shortlink.api.dependencies import get_click_accounting, get_redirect_resolver
from shortlink.core.access_log import log_link_access
from shortlink.core.rate_limit.auth import client_ip_from_scope
from shortlink.db.session import get_db
from shortlink.models.link import utcnow
from shortlink.services.accounting import ClickAccounting
from shortlink.services.exceptions import LinkNotFoundError, UnavailableError
from shortlink.services.resolver import RedirectResolver

router = APIRouter(tags=["redirect"])


def _client_ip(request: Request) -> Optional[str]:
    client_ip = client_ip_from_scope(request.scope)
    return None if client_ip == "unknown" else client_ip


def _request_host(request: Request) -> str:
    host = request.headers.get("host", "")
    return host.rsplit(":", 1)[0] if not host.endswith("]") else host


async def _redirect(
    request: Request,
    background_tasks: BackgroundTasks,
    domain: str,
    keyword: str,
    db: AsyncSession,
    resolver: RedirectResolver,
    accounting: ClickAccounting,
) -> RedirectResponse:
    ip_address = _client_ip(request)
    user_agent = request.headers.get("user-agent")
    try:
        target = await resolver.resolve(db, domain, keyword)
    except LinkNotFoundError:
        log_link_access(domain, keyword, ip_address, "not_found", user_agent)
        raise
    except UnavailableError:
        log_link_access(domain, keyword, ip_address, "unavailable", user_agent)
        raise

    # Runs after the response is sent
    background_tasks.add_task(
        accounting.record,
        target.link_id,
        utcnow(),
        ip_address,
        user_agent,
        request.headers.get("referer"),
    )
    log_link_access(domain, keyword, ip_address, "redirect", user_agent)
    return RedirectResponse(url=target.url, status_code=status.HTTP_302_FOUND)


@router.get(
    "/{domain}/{keyword}",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
)
async def redirect_by_domain(
    request: Request,
    background_tasks: BackgroundTasks,
    domain: str,
    keyword: str,
    db: AsyncSession = Depends(get_db),
    resolver: RedirectResolver = Depends(get_redirect_resolver),
    accounting: ClickAccounting = Depends(get_click_accounting),
):
    """Redirect ``/{domain}/{keyword}`` to the link destination."""
    return await _redirect(request, background_tasks, domain, keyword, db, resolver, accounting)


@router.get(
    "/{keyword}",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
)
async def redirect_by_host(
    request: Request,
    background_tasks: BackgroundTasks,
    keyword: str,
    db: AsyncSession = Depends(get_db),
    resolver: RedirectResolver = Depends(get_redirect_resolver),
    accounting: ClickAccounting = Depends(get_click_accounting),
):
    """Redirect ``/{keyword}`` when the service is reached through a short domain."""
    return await _redirect(
        request, background_tasks, _request_host(request), keyword, db, resolver, accounting
    )
