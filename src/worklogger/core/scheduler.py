from __future__ import annotations

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def job_executed_listener(event: JobExecutionEvent) -> None:
    logger.info("Job %s executed successfully", event.job_id)


def job_error_listener(event: JobExecutionEvent) -> None:
    logger.error("Job %s failed: %s", event.job_id, event.exception)


def create_scheduler() -> AsyncIOScheduler:
    """Create scheduler with in-memory jobstore.

    The daily job is registered again on every startup, so persistence is not
    required.
    """
    scheduler = AsyncIOScheduler(
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 300},
    )
    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
    return scheduler


def get_scheduler() -> AsyncIOScheduler:
    """Return application-wide scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = create_scheduler()
    return _scheduler


def reset_scheduler() -> None:
    """Reset global scheduler (for tests)."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None
