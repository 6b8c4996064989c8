"""Routes package initialization.

The API routers are registered before the redirect routes, whose
catch-all paths would otherwise shadow them.
"""

from fastapi import APIRouter

from shortlink.api.routes import health, links, redirect
from shortlink.core.config import settings

api_router = APIRouter()

api_router.include_router(links.router, prefix=settings.API_V1_PREFIX)

api_router.include_router(health.router, prefix=settings.API_PREFIX)

# Short links live at the root: /{domain}/{keyword} and /{keyword}
api_router.include_router(redirect.router)

__all__ = ["api_router"]
