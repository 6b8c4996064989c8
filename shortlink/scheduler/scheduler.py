"""Scheduler implementation for the link service.

This module provides a scheduler service that runs the periodic
maintenance job with APScheduler.
"""

import logging
from typing import Any, Dict, List, Optional

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from shortlink.core.config import settings
from shortlink.db.session import SessionManager
from shortlink.models.link import utcnow
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository
from shortlink.services.cleanup import CleanupService
from shortlink.services.exceptions import CleanupError

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "cleanup_links"


async def cleanup_job(session_factory: Optional[async_sessionmaker] = None) -> Dict[str, Any]:
    """
    Prune old click events and purge long-deleted links.

    Creates its own session; errors are logged and reported in the result
    so a failed run does not stop the schedule.
    """
    logger.info("Starting scheduled cleanup")
    try:
        async with SessionManager.transaction_context(session_factory) as session:
            cleanup_service = CleanupService(LinkRepository(), ClickRepository())
            result = await cleanup_service.run(session)
        logger.info(
            f"Scheduled cleanup completed: click_events={result['click_events_deleted']}, "
            f"links={result['links_purged']}"
        )
        return {"status": "ok", **result}
    except CleanupError as e:
        logger.error(f"Error in scheduled cleanup job: {e}", exc_info=True)
        return {
            "status": "error",
            "error": str(e),
            "timestamp": utcnow().isoformat(),
        }


class SchedulerService:
    """
    Wrapper around APScheduler for the maintenance jobs.
    """

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.jobs: List[Dict[str, Any]] = []

    def initialize(self) -> None:
        """Create the scheduler with its job store; does not start it."""
        if self.scheduler:
            logger.warning("Scheduler already initialized")
            return

        jobstores = {
            "default": SQLAlchemyJobStore(url=settings.SCHEDULER_JOBSTORE_URL)
        }
        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            job_defaults={
                "coalesce": settings.SCHEDULER_JOB_COALESCE,
                "max_instances": settings.SCHEDULER_JOB_MAX_INSTANCES,
                "misfire_grace_time": settings.SCHEDULER_MISFIRE_GRACE_TIME,
            },
        )
        logger.info("Scheduler initialized")

    def start(self) -> None:
        """Register the cleanup job and start the scheduler."""
        if not self.scheduler:
            self.initialize()

        if self.is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.add_job(
            cleanup_job,
            trigger=IntervalTrigger(hours=settings.CLEANUP_INTERVAL_HOURS, timezone="UTC"),
            id=CLEANUP_JOB_ID,
            name="Prune click events and purge deleted links",
            replace_existing=True,
        )
        self.jobs = [{
            "id": CLEANUP_JOB_ID,
            "interval": f"{settings.CLEANUP_INTERVAL_HOURS} hours",
            "function": "cleanup_job",
        }]

        if settings.CLEANUP_START_ON_STARTUP:
            self.scheduler.add_job(cleanup_job, id="cleanup_startup", replace_existing=True)

        self.scheduler.start()
        self.is_running = True
        logger.info(f"Scheduler started with {len(self.jobs)} jobs")

    def shutdown(self) -> None:
        if not self.scheduler or not self.is_running:
            logger.debug("Scheduler not running, nothing to shut down")
            return

        self.scheduler.shutdown(wait=True)
        self.is_running = False
        self.scheduler = None
        logger.info("Scheduler shut down")

    def get_status(self) -> Dict[str, Any]:
        """Running flag, registered jobs and their next run times."""
        job_details = []
        if self.scheduler and self.is_running:
            for job in self.scheduler.get_jobs():
                job_details.append({
                    "job_id": job.id,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                })
        return {
            "running": self.is_running,
            "jobs": self.jobs,
            "scheduler_jobs_status": job_details,
        }


scheduler_service = SchedulerService()
