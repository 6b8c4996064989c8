"""
Request logging middleware.

Assigns every request an id, exposes it through a context variable and the
``X-Request-ID`` response header, and logs one REQUEST record per request.
"""

import time
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from shortlink.core.logging import register_request_level

# Context variable to store request ID across async context
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Current request id, or a fresh one outside a request."""
    return request_id_var.get() or str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency of every request."""

    def __init__(self, app):
        super().__init__(app)
        register_request_level()

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)

        client_ip = request.client.host if request.client else "unknown"
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

        logger.log(
            "REQUEST",
            "{method} {path} {status_code} {process_time_ms}ms",
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_ms=process_time_ms,
        )
        return response
