from __future__ import annotations

import logging

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from worklogger.configs.store import WorkConfigRepository
from worklogger.reconcile.engine import Reconciler
from worklogger.reconcile.models import ReconcileOutcome
from worklogger.reconcile.sink import ResultSink

logger = logging.getLogger(__name__)

JOB_ID = "daily-job"
TIMEZONE = "Etc/UTC"
# Tuesday through Saturday so that, one day back, Monday to Friday get covered.
DAY_OF_WEEK = "tue-sat"
HOUR = 6
MINUTE = 0
DAYS_AGO = 1


def daily_trigger() -> CronTrigger:
    return CronTrigger(day_of_week=DAY_OF_WEEK, hour=HOUR, minute=MINUTE, timezone=TIMEZONE)


class DailyReconcileJob:
    """Reconciles yesterday's work for every active configuration."""

    def __init__(
        self,
        reconciler: Reconciler,
        repository: WorkConfigRepository,
        sink: ResultSink,
        *,
        concurrency: int = 1,
    ) -> None:
        self._reconciler = reconciler
        self._repository = repository
        self._sink = sink
        self._concurrency = concurrency

    def schedule(self, scheduler: AsyncIOScheduler) -> Job:
        existing = scheduler.get_job(JOB_ID)
        if existing is not None:
            logger.debug("Daily reconcile job already scheduled")
            return existing
        job = scheduler.add_job(self.run, trigger=daily_trigger(), id=JOB_ID)
        logger.info(
            "Scheduled daily reconcile job (%s %02d:%02d %s)", DAY_OF_WEEK, HOUR, MINUTE, TIMEZONE
        )
        return job

    async def run(self) -> list[ReconcileOutcome]:
        day = self._reconciler.target_day(DAYS_AGO)
        configs = [c for c in await self._repository.list_active() if not c.paused]
        if not configs:
            logger.info("No active work configurations for %s", day.isoformat())
            return []

        logger.info("Reconciling %s for %d users", day.isoformat(), len(configs))
        outcomes = await self._reconciler.reconcile_all(
            configs, day, DAYS_AGO, concurrency=self._concurrency
        )
        for outcome in outcomes:
            try:
                await self._sink.publish(outcome)
            except Exception:
                logger.exception(
                    "Failed to publish outcome for %s",
                    outcome.user_id,
                    extra={"user_id": outcome.user_id, "operation": "publish"},
                )
        return outcomes


__all__ = [
    "DAYS_AGO",
    "DailyReconcileJob",
    "JOB_ID",
    "daily_trigger",
]
