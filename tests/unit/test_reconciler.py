import asyncio
import logging
from datetime import date, datetime, timezone

import pytest

from worklogger.errors import RemoteUnavailable
from worklogger.reconcile.engine import Reconciler
from worklogger.reconcile.models import OutcomeKind, SubmissionStatus
from worklogger.tracker.models import WorkItem, WorklogEntry

DAY = date(2024, 3, 4)


def _item(key: str) -> WorkItem:
    return WorkItem(id=key.split("-")[-1], key=key, summary=f"Work on {key}")


def _reconciler(tracker, rng=lambda: 0.3) -> Reconciler:
    return Reconciler(
        tracker,
        rng=rng,
        now=lambda: datetime(2024, 3, 5, 6, 0, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_two_issues_with_six_hours_submits_two_worklogs(tracker, work_config):
    tracker.issues = [_item("PROJ-1"), _item("PROJ-2")]
    config = work_config.model_copy(update={"daily_hours": 6})

    outcome = await _reconciler(tracker).reconcile(config, DAY, 1)

    assert outcome.kind is OutcomeKind.LOGGED
    assert len(tracker.created) == 2
    assert sum(call["seconds"] for call in tracker.created) == 21600
    assert {call["issue_key"] for call in tracker.created} == {"PROJ-1", "PROJ-2"}
    assert all(call["day"] == DAY and call["notify"] is False for call in tracker.created)
    assert outcome.submitted_seconds == 21600


@pytest.mark.asyncio
async def test_existing_entry_by_user_means_already_logged(tracker, work_config):
    tracker.issues = [_item("PROJ-1")]
    tracker.worklogs["PROJ-1"] = [
        WorklogEntry(author_email="DEV@acme.io", time_spent_seconds=3600, time_spent_display="1h")
    ]

    outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.ALREADY_LOGGED
    assert tracker.created == []
    assert [e.item.key for e in outcome.existing_entries] == ["PROJ-1"]


@pytest.mark.asyncio
async def test_entries_by_other_authors_are_ignored(tracker, work_config):
    tracker.issues = [_item("PROJ-1")]
    tracker.worklogs["PROJ-1"] = [WorklogEntry(author_email="someone@acme.io", time_spent_seconds=600)]

    outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.LOGGED
    assert tracker.created[0]["seconds"] == 8 * 3600


@pytest.mark.asyncio
async def test_one_logged_item_suppresses_the_whole_day(tracker, work_config):
    tracker.issues = [_item("PROJ-1"), _item("PROJ-2")]
    tracker.worklogs["PROJ-2"] = [WorklogEntry(author_email="dev@acme.io", time_spent_seconds=600)]

    outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.ALREADY_LOGGED
    assert tracker.created == []
    assert [key for key, _ in tracker.listed] == ["PROJ-1", "PROJ-2"]


@pytest.mark.asyncio
async def test_reconciling_twice_is_idempotent(tracker, work_config):
    tracker.issues = [_item("PROJ-1"), _item("PROJ-2"), _item("PROJ-3")]
    reconciler = _reconciler(tracker)

    first = await reconciler.reconcile(work_config, DAY, 1)
    second = await reconciler.reconcile(work_config, DAY, 1)

    assert first.kind is OutcomeKind.LOGGED
    assert second.kind is OutcomeKind.ALREADY_LOGGED
    assert len(tracker.created) == 3


@pytest.mark.asyncio
async def test_no_worked_issues(tracker, work_config):
    outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.NO_WORK
    assert tracker.listed == []
    assert tracker.created == []


@pytest.mark.asyncio
async def test_default_and_custom_queries(tracker, work_config):
    reconciler = _reconciler(tracker)
    await reconciler.reconcile(work_config, DAY, 1)

    custom = work_config.model_copy(
        update={"custom_query_template": "project = PROJ AND updated >= -{0}d"}
    )
    await reconciler.reconcile(custom, DAY, 3)

    assert tracker.queries == [
        'assignee WAS currentUser() ON -1d AND status WAS "In Progress" ON -1d',
        "project = PROJ AND updated >= -3d",
    ]


@pytest.mark.asyncio
async def test_partial_failure_keeps_successful_submissions(tracker, work_config):
    tracker.issues = [_item("PROJ-1"), _item("PROJ-2")]
    tracker.fail_keys = {"PROJ-2"}

    outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.PARTIAL_FAILURE
    assert [a.item.key for a in outcome.submitted] == ["PROJ-1"]
    assert [a.item.key for a in outcome.failed] == ["PROJ-2"]
    assert "Access denied" in outcome.failed[0].error
    assert outcome.reason == "1 of 2 worklogs failed"


@pytest.mark.asyncio
async def test_all_submissions_failing_is_a_failure(tracker, work_config):
    tracker.issues = [_item("PROJ-1")]
    tracker.fail_keys = {"PROJ-1"}

    outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.FAILED
    assert outcome.reason == "All 1 worklog submissions failed"


@pytest.mark.asyncio
async def test_slots_below_tracker_minimum_are_skipped(tracker, work_config):
    tracker.issues = [_item(f"PROJ-{n}") for n in range(1, 21)]
    config = work_config.model_copy(update={"daily_hours": 1})

    outcome = await _reconciler(tracker, rng=lambda: 0.0).reconcile(config, DAY, 1)

    skipped = [a for a in outcome.allocation if a.status is SubmissionStatus.SKIPPED]
    assert outcome.kind is OutcomeKind.LOGGED
    assert len(tracker.created) == 12
    assert len(skipped) == 8
    assert all(a.seconds == 0 for a in skipped)
    assert outcome.submitted_seconds == 3600


@pytest.mark.asyncio
async def test_remote_errors_become_failed_outcomes(tracker, work_config, caplog):
    tracker.search_error = RemoteUnavailable("find_worked_issues: tracker server error (HTTP 503)", 503)

    with caplog.at_level(logging.WARNING, logger="worklogger.reconcile.engine"):
        outcome = await _reconciler(tracker).reconcile(work_config, DAY, 1)

    assert outcome.kind is OutcomeKind.FAILED
    assert "HTTP 503" in outcome.reason
    record = caplog.records[-1]
    assert record.user_id == "U1"
    assert record.operation == "reconcile"


@pytest.mark.asyncio
async def test_invalid_configuration_fails_before_calling_tracker(tracker, work_config):
    config = work_config.model_copy(update={"host": "localhost"})

    outcome = await _reconciler(tracker).reconcile(config, DAY, 1)

    assert outcome.kind is OutcomeKind.FAILED
    assert "Jira host" in outcome.reason
    assert tracker.queries == []


@pytest.mark.asyncio
async def test_reconcile_all_isolates_failures_and_preserves_order(tracker, work_config):
    tracker.issues = [_item("PROJ-1")]
    broken = work_config.model_copy(update={"user_id": "U0", "token": "short"})

    outcomes = await _reconciler(tracker).reconcile_all([broken, work_config], DAY, 1)

    assert [(o.user_id, o.kind) for o in outcomes] == [
        ("U0", OutcomeKind.FAILED),
        ("U1", OutcomeKind.LOGGED),
    ]


@pytest.mark.asyncio
async def test_reconcile_all_respects_concurrency(tracker, work_config):
    active = 0
    peak = 0

    async def slow_search(host, user, token, query):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return []

    tracker.find_worked_issues = slow_search
    configs = [work_config.model_copy(update={"user_id": f"U{n}"}) for n in range(6)]

    outcomes = await _reconciler(tracker).reconcile_all(configs, DAY, 1, concurrency=2)

    assert peak == 2
    assert all(o.kind is OutcomeKind.NO_WORK for o in outcomes)


def test_target_day_is_counted_back_from_the_clock(tracker):
    assert _reconciler(tracker).target_day(1) == date(2024, 3, 4)
    assert _reconciler(tracker).target_day(7) == date(2024, 2, 27)


@pytest.mark.asyncio
async def test_out_of_range_daily_hours_fail_only_that_user(tracker, work_config):
    tracker.issues = [_item("PROJ-1")]
    broken = work_config.model_copy(update={"user_id": "U9", "daily_hours": 30})

    outcomes = await _reconciler(tracker).reconcile_all([broken, work_config], DAY, 1)

    assert [o.kind for o in outcomes] == [OutcomeKind.FAILED, OutcomeKind.LOGGED]
    assert "Daily hours" in outcomes[0].reason
    assert [call["seconds"] for call in tracker.created] == [8 * 3600]
