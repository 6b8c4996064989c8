"""Redis-backed rate limiting with memory fallback."""

from shortlink.core.rate_limit.auth import client_ip_auth, client_ip_from_scope, on_blocked
from shortlink.core.rate_limit.backends import ResilientRateLimitBackend
from shortlink.core.rate_limit.middleware import (
    build_rate_limit_rules,
    close_rate_limiting,
    initialize_rate_limiting,
    setup_rate_limiting,
)

__all__ = [
    "ResilientRateLimitBackend",
    "client_ip_auth",
    "client_ip_from_scope",
    "on_blocked",
    "build_rate_limit_rules",
    "setup_rate_limiting",
    "initialize_rate_limiting",
    "close_rate_limiting",
]
