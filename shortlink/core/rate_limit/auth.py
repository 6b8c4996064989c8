"""Client identification and blocked-request handling for rate limiting."""

import ipaddress
import uuid
from typing import Tuple

from fastapi.responses import JSONResponse
from loguru import logger
from ratelimit.types import ASGIApp, Receive, Scope, Send

from shortlink.core.config import settings


def client_ip_from_scope(scope: Scope) -> str:
    """First valid X-Forwarded-For address, else the socket peer."""
    for name, value in scope.get("headers", []):
        if name == b"x-forwarded-for":
            forwarded_for = value.decode("latin1").split(",")[0].strip()
            try:
                ipaddress.ip_address(forwarded_for)
                return forwarded_for
            except ValueError:
                break
    client = scope.get("client")
    return client[0] if client else "unknown"


async def client_ip_auth(scope: Scope) -> Tuple[str, str]:
    """Identify callers by IP address; configured admin IPs are not limited.

    Returns:
        Tuple of (user, group)
    """
    client_ip = client_ip_from_scope(scope)
    group = "admin" if client_ip in settings.RATE_LIMIT_ADMIN_IPS else "default"
    return client_ip, group


def on_blocked(retry_after: int) -> ASGIApp:
    """Build the 429 response in the service error envelope."""

    async def blocked_response(scope: Scope, receive: Receive, send: Send) -> None:
        path = scope.get("path", "")
        logger.warning(
            "Rate limit exceeded",
            ip=client_ip_from_scope(scope),
            path=path,
            method=scope.get("method", ""),
            retry_after=retry_after,
        )
        response = JSONResponse(
            status_code=429,
            content={
                "id": str(uuid.uuid4()),
                "url": path,
                "status": 429,
                "message": f"rate limit exceeded, retry in {retry_after} seconds",
            },
            headers={"Retry-After": str(retry_after)},
        )
        await response(scope, receive, send)

    return blocked_response
