"""API dependencies for FastAPI.

This module provides dependency injection functions for FastAPI endpoints
to access the caller identity, the redirect cache and service instances.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from shortlink.core.cache import LinkCache
from shortlink.core.config import settings
from shortlink.core.redis import redis_manager
from shortlink.core.security import Identity, TokenError, decode_access_token
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository
from shortlink.services.accounting import ClickAccounting
from shortlink.services.codegen import KeywordGenerator
from shortlink.services.exceptions import UnauthorizedError
from shortlink.services.links import LinkService
from shortlink.services.resolver import RedirectResolver

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Identity]:
    """Identity from the bearer token or the auth cookie; None if neither is sent."""
    token = credentials.credentials if credentials else request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return None
    try:
        return decode_access_token(token)
    except TokenError as e:
        raise UnauthorizedError(str(e))


async def require_identity(
    identity: Optional[Identity] = Depends(get_current_identity),
) -> Identity:
    if identity is None:
        raise UnauthorizedError()
    return identity


async def get_link_repository() -> LinkRepository:
    return LinkRepository()


async def get_click_repository() -> ClickRepository:
    return ClickRepository()


async def get_link_cache() -> LinkCache:
    """Redirect cache over the shared Redis pool, or a disabled cache."""
    if not settings.CACHE_ENABLED:
        return LinkCache(None)
    try:
        client = await redis_manager.get_client()
    except ConnectionError as e:
        logger.warning("Redis unavailable, serving without the link cache", error=str(e))
        return LinkCache(None)
    return LinkCache(client)


async def get_keyword_generator() -> KeywordGenerator:
    return KeywordGenerator()


async def get_link_service(
    link_repo: LinkRepository = Depends(get_link_repository),
    click_repo: ClickRepository = Depends(get_click_repository),
    cache: LinkCache = Depends(get_link_cache),
    generator: KeywordGenerator = Depends(get_keyword_generator),
) -> LinkService:
    return LinkService(
        link_repository=link_repo,
        cache=cache,
        generator=generator,
        click_repository=click_repo,
    )


async def get_redirect_resolver(
    link_repo: LinkRepository = Depends(get_link_repository),
    cache: LinkCache = Depends(get_link_cache),
) -> RedirectResolver:
    return RedirectResolver(link_repository=link_repo, cache=cache)


async def get_click_accounting() -> ClickAccounting:
    """Click accounting on the application session factory."""
    return ClickAccounting()


def build_short_url(domain: str, keyword: str) -> str:
    return f"{settings.SHORT_URL_SCHEME}://{domain}/{keyword}"
