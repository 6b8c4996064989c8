"""Scheduled maintenance jobs, run with APScheduler."""

from shortlink.scheduler.scheduler import SchedulerService, cleanup_job, scheduler_service

__all__ = ["SchedulerService", "cleanup_job", "scheduler_service"]
