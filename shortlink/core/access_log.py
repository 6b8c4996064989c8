"""Redirect access logging using Loguru's built-in async features."""

import os
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from shortlink.core.config import settings

link_access_logger = None
_sink_ids = []


def _is_access_record(record) -> bool:
    return record["extra"].get("event_type") == "link_access"


def setup_access_logging():
    """Add the enqueued access-log sinks and return the bound logger.

    Calling it again is a no-op, so the startup hook and the first
    redirect can both trigger it.
    """
    global link_access_logger

    if link_access_logger is not None:
        return link_access_logger

    os.makedirs(settings.LOG_DIR, exist_ok=True)

    _sink_ids.append(logger.add(
        os.path.join(settings.LOG_DIR, "link_access.log"),
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | IP:{extra[ip]} | "
            "Link:{extra[domain]}/{extra[keyword]} | {extra[outcome]} | {message}"
        ),
        rotation="10 MB",
        retention="7 days",
        enqueue=True,
        level="INFO",
        backtrace=False,
        diagnose=False,
        filter=_is_access_record,
    ))
    _sink_ids.append(logger.add(
        os.path.join(settings.LOG_DIR, "link_access.json"),
        serialize=True,
        enqueue=True,
        level="INFO",
        filter=_is_access_record,
    ))

    link_access_logger = logger.bind(event_type="link_access")
    return link_access_logger


def close_access_logging() -> None:
    """Remove the access-log sinks, flushing their queues."""
    global link_access_logger
    while _sink_ids:
        logger.remove(_sink_ids.pop())
    link_access_logger = None


def log_link_access(
    domain: str,
    keyword: str,
    ip_address: Optional[str],
    outcome: str,
    user_agent: Optional[str] = None,
) -> None:
    """
    Record one redirect attempt.

    Args:
        domain: Short link domain from the request
        keyword: Short link keyword from the request
        ip_address: Client IP address
        outcome: "redirect", "not_found" or "unavailable"
        user_agent: Optional user agent string
    """
    if not settings.ACCESS_LOG_ENABLED:
        return
    access_logger = link_access_logger or setup_access_logging()

    access_logger.bind(
        ip=ip_address or "unknown",
        domain=domain,
        keyword=keyword,
        outcome=outcome,
        user_agent=user_agent or "",
        timestamp=datetime.now(timezone.utc).isoformat(),
    ).info(f"Link accessed: {domain}/{keyword}")
