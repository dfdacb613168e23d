from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from worklogger.configs.models import WorkConfig
from worklogger.errors import InvalidInput
from worklogger.reconcile.engine import Reconciler
from worklogger.reconcile.models import (
    AllocatedItem,
    ExistingEntry,
    OutcomeKind,
    ReconcileOutcome,
)
from worklogger.resilience.rate_limit import RateLimiter
from worklogger.tracker.models import WorkItem
from worklogger.validation import validate_daily_hours, validate_int

logger = logging.getLogger(__name__)

RATE_LIMIT_ACTION = "time"
MIN_DAYS_AGO = 1
MAX_DAYS_AGO = 50
WEEKEND_MESSAGE = "You can't check your work on weekends."


@dataclass
class DayReview:
    """Result of an interactive look at one day, before anything is posted.

    ``kind`` is ``None`` when a plan was proposed.
    """

    config: WorkConfig
    day: date
    days_ago: int
    hours: int
    kind: OutcomeKind | None
    items: list[WorkItem] = field(default_factory=list)
    existing_entries: list[ExistingEntry] = field(default_factory=list)
    plan: list[AllocatedItem] = field(default_factory=list)

    @property
    def has_plan(self) -> bool:
        return bool(self.plan)


class OnDemandReview:
    """Engine half of the interactive "what did I work on" command.

    ``review`` reads the day and proposes a plan without writing anything.
    The caller confirms by passing the review back to ``submit``; a review
    that is never submitted leaves the tracker untouched.
    """

    def __init__(self, reconciler: Reconciler, rate_limiter: RateLimiter) -> None:
        self._reconciler = reconciler
        self._rate_limiter = rate_limiter

    async def review(
        self,
        config: WorkConfig,
        *,
        actor_id: str,
        days_ago: int = 1,
        hours: int | None = None,
    ) -> DayReview:
        self._rate_limiter.check(actor_id, RATE_LIMIT_ACTION)

        days_ago = validate_int(days_ago, "Days ago", minimum=MIN_DAYS_AGO, maximum=MAX_DAYS_AGO)
        if hours is None:
            hours = validate_daily_hours(config.daily_hours)
        else:
            hours = validate_int(hours, "Hours", minimum=1, maximum=24)

        day = self._reconciler.target_day(days_ago)
        if day.weekday() >= 5:
            raise InvalidInput(WEEKEND_MESSAGE)

        survey = await self._reconciler.survey(config, day, days_ago)
        review = DayReview(
            config=config,
            day=day,
            days_ago=days_ago,
            hours=hours,
            kind=None,
            items=survey.items,
            existing_entries=survey.existing_entries,
        )
        if not survey.items:
            review.kind = OutcomeKind.NO_WORK
            return review
        if survey.already_logged:
            review.kind = OutcomeKind.ALREADY_LOGGED
            return review

        review.plan = self._reconciler.plan(survey.items, hours)
        logger.debug(
            "Proposed %d-item plan for %s",
            len(review.plan),
            day.isoformat(),
            extra={"user_id": config.user_id, "operation": "review"},
        )
        return review

    async def submit(self, review: DayReview) -> ReconcileOutcome:
        if not review.has_plan:
            raise InvalidInput("There is no proposed plan to submit")
        await self._reconciler.submit(review.config, review.day, review.plan)
        return self._reconciler.conclude(review.config, review.day, review.plan)


__all__ = ["DayReview", "OnDemandReview", "WEEKEND_MESSAGE"]
