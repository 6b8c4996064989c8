"""HTTP middleware for the link service."""

from shortlink.middleware.logging import RequestLoggingMiddleware, get_request_id, request_id_var
from shortlink.middleware.tracing import TracingMiddleware

__all__ = ["RequestLoggingMiddleware", "TracingMiddleware", "get_request_id", "request_id_var"]
