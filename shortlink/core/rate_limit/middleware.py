"""FastAPI rate limiting middleware setup."""

from typing import Dict, List, Optional

from fastapi import FastAPI
from loguru import logger
from ratelimit import RateLimitMiddleware, Rule

from shortlink.core.config import settings
from shortlink.core.rate_limit.auth import client_ip_auth, on_blocked
from shortlink.core.rate_limit.backends import ResilientRateLimitBackend

rate_limit_backend: Optional[ResilientRateLimitBackend] = None


def build_rate_limit_rules() -> Dict[str, List[Rule]]:
    """Per-path rules; the first matching pattern wins."""
    v1 = settings.API_V1_PREFIX
    return {
        rf"^{v1}/links$": [
            Rule(minute=settings.RATE_LIMIT_CREATE_PER_MINUTE, group="default"),
            Rule(group="admin"),
        ],
        rf"^{v1}/": [
            Rule(minute=settings.RATE_LIMIT_API_PER_MINUTE, group="default"),
            Rule(group="admin"),
        ],
        # Redirects: /{domain}/{keyword} and /{keyword}
        r"^/(?!api/)[^/]+(/[^/]+)?$": [
            Rule(second=settings.RATE_LIMIT_REDIRECT_PER_SECOND, group="default"),
            Rule(group="admin"),
        ],
    }


def setup_rate_limiting(app: FastAPI) -> ResilientRateLimitBackend:
    """Add the rate limiting middleware.

    Returns:
        The backend, which still has to be initialized on startup
    """
    global rate_limit_backend

    backend = ResilientRateLimitBackend(settings.REDIS_URI)
    rate_limit_backend = backend

    app.add_middleware(
        RateLimitMiddleware,
        authenticate=client_ip_auth,
        backend=backend,
        config=build_rate_limit_rules(),
        on_blocked=on_blocked,
    )
    logger.info("Rate limiting middleware added")
    return backend


async def initialize_rate_limiting() -> None:
    if rate_limit_backend:
        await rate_limit_backend.initialize()


async def close_rate_limiting() -> None:
    if rate_limit_backend:
        await rate_limit_backend.close()
        logger.info("Rate limiting backend closed")
