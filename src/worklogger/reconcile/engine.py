"""Per-user reconciliation of worked issues against logged time.

For one (user, day) the :class:`Reconciler` walks a short state machine::

    FETCH_WORK -> NO_WORK
               -> FETCH_EXISTING_LOGS -> ALREADY_LOGGED
                                      -> ALLOCATE -> SUBMIT -> LOGGED
                                                           -> PARTIAL_FAILURE
                                                           -> FAILED

Any entry authored by the user on any worked item suppresses the whole day.
Errors raised for one user end in a ``FAILED`` outcome and never abort a batch.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable

from worklogger.allocation import RandomSource, fair_distribution
from worklogger.configs.models import WorkConfig
from worklogger.errors import WorkloggerError
from worklogger.reconcile.models import (
    AllocatedItem,
    DaySurvey,
    ExistingEntry,
    OutcomeKind,
    ReconcileOutcome,
    SubmissionStatus,
)
from worklogger.tracker.client import TrackerClient
from worklogger.tracker.models import WorkItem
from worklogger.tracker.query import worked_issues_query
from worklogger.validation import (
    MAX_WORKLOG_SECONDS,
    MIN_WORKLOG_SECONDS,
    validate_api_token,
    validate_daily_hours,
    validate_email,
    validate_host,
    validate_jql,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    host: str
    username: str
    token: str
    query_template: str | None
    daily_hours: int


def validated_credentials(config: WorkConfig) -> Credentials:
    """Validate a stored configuration before any tracker call is made."""
    return Credentials(
        host=validate_host(config.host),
        username=validate_email(config.username),
        token=validate_api_token(config.token),
        query_template=validate_jql(config.custom_query_template),
        daily_hours=validate_daily_hours(config.daily_hours),
    )


class Reconciler:
    def __init__(
        self,
        tracker: TrackerClient,
        *,
        rng: RandomSource = random.random,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._tracker = tracker
        self._rng = rng
        self._now = now

    def target_day(self, days_ago: int) -> date:
        """UTC calendar day ``days_ago`` days before the injected clock."""
        current = self._now()
        if current.tzinfo is not None:
            current = current.astimezone(timezone.utc)
        return (current - timedelta(days=days_ago)).date()

    async def survey(self, config: WorkConfig, day: date, days_ago: int) -> DaySurvey:
        creds = validated_credentials(config)
        query = worked_issues_query(days_ago, creds.query_template)
        items = await self._tracker.find_worked_issues(
            creds.host, creds.username, creds.token, query
        )
        if not items:
            return DaySurvey(day=day, items=[], existing_entries=[])

        existing: list[ExistingEntry] = []
        for item in items:
            entries = await self._tracker.list_worklogs_for_day(
                creds.host, creds.username, creds.token, item.key, day
            )
            existing.extend(
                ExistingEntry(item=item, entry=entry)
                for entry in entries
                if entry.is_authored_by(creds.username)
            )
        return DaySurvey(day=day, items=list(items), existing_entries=existing)

    def plan(self, items: list[WorkItem], hours: int) -> list[AllocatedItem]:
        """Fairly spread ``hours`` over ``items``; out-of-range slots are skipped."""
        seconds = fair_distribution(hours * 3600, len(items), self._rng)
        allocation = []
        for item, value in zip(items, seconds):
            allocated = AllocatedItem(item=item, seconds=value)
            if not MIN_WORKLOG_SECONDS <= value <= MAX_WORKLOG_SECONDS:
                allocated.status = SubmissionStatus.SKIPPED
            allocation.append(allocated)
        return allocation

    async def submit(
        self, config: WorkConfig, day: date, allocation: list[AllocatedItem]
    ) -> list[AllocatedItem]:
        creds = validated_credentials(config)
        pending = [a for a in allocation if a.status is SubmissionStatus.PENDING]
        results = await asyncio.gather(
            *(
                self._tracker.create_worklog(
                    creds.host,
                    creds.username,
                    creds.token,
                    allocated.item.key,
                    allocated.seconds,
                    day,
                    notify=False,
                )
                for allocated in pending
            ),
            return_exceptions=True,
        )
        for allocated, result in zip(pending, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                allocated.status = SubmissionStatus.FAILED
                allocated.error = str(result)
                logger.warning(
                    "Worklog submission failed for %s: %s",
                    allocated.item.key,
                    result,
                    extra={
                        "user_id": config.user_id,
                        "guild_id": config.guild_id,
                        "operation": "create_worklog",
                        "issue_key": allocated.item.key,
                    },
                )
            else:
                allocated.status = SubmissionStatus.SUBMITTED
        return allocation

    def conclude(
        self, config: WorkConfig, day: date, allocation: list[AllocatedItem]
    ) -> ReconcileOutcome:
        submitted = [a for a in allocation if a.status is SubmissionStatus.SUBMITTED]
        failed = [a for a in allocation if a.status is SubmissionStatus.FAILED]
        if not failed:
            kind, reason = OutcomeKind.LOGGED, None
        elif submitted:
            kind = OutcomeKind.PARTIAL_FAILURE
            reason = f"{len(failed)} of {len(submitted) + len(failed)} worklogs failed"
        else:
            kind = OutcomeKind.FAILED
            reason = f"All {len(failed)} worklog submissions failed"
        return ReconcileOutcome(
            user_id=config.user_id,
            guild_id=config.guild_id,
            day=day,
            kind=kind,
            allocation=allocation,
            reason=reason,
        )

    async def reconcile(
        self, config: WorkConfig, day: date, days_ago: int
    ) -> ReconcileOutcome:
        context = {
            "user_id": config.user_id,
            "guild_id": config.guild_id,
            "operation": "reconcile",
        }
        try:
            survey = await self.survey(config, day, days_ago)
            if not survey.items:
                outcome = self._outcome(config, day, OutcomeKind.NO_WORK)
            elif survey.already_logged:
                outcome = self._outcome(
                    config,
                    day,
                    OutcomeKind.ALREADY_LOGGED,
                    existing_entries=survey.existing_entries,
                )
            else:
                hours = validate_daily_hours(config.daily_hours)
                allocation = self.plan(survey.items, hours)
                await self.submit(config, day, allocation)
                outcome = self.conclude(config, day, allocation)
        except WorkloggerError as exc:
            logger.warning("Reconciliation failed: %s", exc, extra=context)
            return self._outcome(config, day, OutcomeKind.FAILED, reason=str(exc))
        except Exception as exc:
            logger.exception("Unexpected reconciliation error", extra=context)
            return self._outcome(
                config, day, OutcomeKind.FAILED, reason=f"Unexpected error: {exc}"
            )

        logger.info(
            "Reconciled %s for %s",
            day.isoformat(),
            config.user_id,
            extra={**context, "outcome": outcome.kind.value},
        )
        return outcome

    async def reconcile_all(
        self,
        configs: Iterable[WorkConfig],
        day: date,
        days_ago: int,
        *,
        concurrency: int = 1,
    ) -> list[ReconcileOutcome]:
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _one(config: WorkConfig) -> ReconcileOutcome:
            async with semaphore:
                return await self.reconcile(config, day, days_ago)

        return list(await asyncio.gather(*(_one(config) for config in configs)))

    @staticmethod
    def _outcome(
        config: WorkConfig,
        day: date,
        kind: OutcomeKind,
        *,
        existing_entries: list[ExistingEntry] | None = None,
        reason: str | None = None,
    ) -> ReconcileOutcome:
        return ReconcileOutcome(
            user_id=config.user_id,
            guild_id=config.guild_id,
            day=day,
            kind=kind,
            existing_entries=existing_entries or [],
            reason=reason,
        )


__all__ = ["Credentials", "Reconciler", "validated_credentials"]
