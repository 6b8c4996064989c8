"""Click accounting.

Runs after the redirect response has been sent, in its own session, and
never lets a failure reach the visitor.
"""

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from shortlink.core.config import settings
from shortlink.db.session import SessionManager
from shortlink.models.link import utcnow
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository


class ClickAccounting:
    """
    Records visits at least once.

    Each attempt increments the link counter and appends a click event in
    one transaction. Failed attempts are retried with a linear backoff;
    after the last attempt the click is logged and dropped.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        link_repository: Optional[LinkRepository] = None,
        click_repository: Optional[ClickRepository] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.link_repository = link_repository or LinkRepository()
        self.click_repository = click_repository or ClickRepository()
        self.max_attempts = max_attempts or settings.CLICK_RECORD_MAX_ATTEMPTS
        self.retry_delay = retry_delay if retry_delay is not None else settings.CLICK_RECORD_RETRY_DELAY

    async def record(
        self,
        link_id: str,
        clicked_at: Optional[datetime] = None,
        remote_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> bool:
        """
        Record one visit.

        Args:
            link_id: Id of the visited link
            clicked_at: Time of the visit, defaults to now
            remote_address: Client IP address
            user_agent: Client user agent
            referer: Referer header

        Returns:
            True if the click was stored, False if it was dropped
        """
        clicked_at = clicked_at or utcnow()
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with SessionManager.transaction_context(self.session_factory) as db:
                    updated = await self.link_repository.increment_clicks(db, link_id, clicked_at)
                    if not updated:
                        logger.warning("Click for unknown link dropped", link_id=link_id)
                        return False
                    await self.click_repository.create_click_event(db, {
                        "link_id": link_id,
                        "clicked_at": clicked_at,
                        "remote_address": remote_address,
                        "user_agent": (user_agent or "")[:512] or None,
                        "referer": (referer or "")[:2048] or None,
                    })
                return True
            except Exception as e:
                # Accounting must never fail the redirect that triggered it
                logger.warning(
                    "Recording click failed",
                    link_id=link_id,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=repr(e),
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay * attempt)

        logger.error("Click dropped after retries", link_id=link_id, clicked_at=clicked_at.isoformat())
        return False
