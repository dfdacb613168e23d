import logging
from datetime import date

import pytest

pytest.importorskip("slack_sdk")

from worklogger.reconcile.models import (
    AllocatedItem,
    ExistingEntry,
    OutcomeKind,
    ReconcileOutcome,
    SubmissionStatus,
)
from worklogger.reconcile.sink import LoggingResultSink, SlackResultSink, render_outcome
from worklogger.tracker.models import WorkItem, WorklogEntry

DAY = date(2024, 3, 4)


class DummyClient:
    def __init__(self):
        self.opened = []
        self.posted = []

    async def conversations_open(self, **payload):
        self.opened.append(payload)
        return {"ok": True, "channel": {"id": "D1"}}

    async def chat_postMessage(self, **payload):
        self.posted.append(payload)
        return {"ok": True, "ts": "1"}


def _allocated(key, seconds, status=SubmissionStatus.SUBMITTED):
    return AllocatedItem(
        item=WorkItem(id="1", key=key, summary=f"<{key}> summary"), seconds=seconds, status=status
    )


def _outcome(kind, **kwargs):
    return ReconcileOutcome(user_id="U1", guild_id="G1", day=DAY, kind=kind, **kwargs)


def test_render_logged_outcome_lists_each_issue():
    text = render_outcome(
        _outcome(
            OutcomeKind.LOGGED,
            allocation=[_allocated("PROJ-1", 5400), _allocated("PROJ-2", 23400)],
        )
    )

    assert text.splitlines() == [
        "You worked on 2 issues on Monday 04 March 2024.",
        "• PROJ-1 PROJ-1 summary: 1h 30m",
        "• PROJ-2 PROJ-2 summary: 6h 30m",
        "Total: 8h",
    ]


def test_render_partial_failure_names_failed_issues():
    text = render_outcome(
        _outcome(
            OutcomeKind.PARTIAL_FAILURE,
            allocation=[
                _allocated("PROJ-1", 3600),
                _allocated("PROJ-2", 3600, SubmissionStatus.FAILED),
            ],
        )
    )

    assert "You worked on 1 issues" in text
    assert text.endswith("Failed to log: PROJ-2")


def test_render_already_logged_and_failed():
    existing = ExistingEntry(
        item=WorkItem(id="1", key="PROJ-1"),
        entry=WorklogEntry(author_email="dev@acme.io", time_spent_seconds=7200),
    )
    assert render_outcome(
        _outcome(OutcomeKind.ALREADY_LOGGED, existing_entries=[existing])
    ).endswith("• PROJ-1: 2h")
    assert render_outcome(_outcome(OutcomeKind.FAILED, reason="bad token")) == (
        "Could not log your time for Monday 04 March 2024: bad token"
    )


@pytest.mark.asyncio
async def test_slack_sink_opens_dm_and_posts_summary():
    client = DummyClient()
    sink = SlackResultSink(client)  # type: ignore[arg-type]

    await sink.publish(_outcome(OutcomeKind.LOGGED, allocation=[_allocated("PROJ-1", 28800)]))

    assert client.opened == [{"users": ["U1"]}]
    assert client.posted[0]["channel"] == "D1"
    assert client.posted[0]["text"].startswith("You worked on 1 issues")


@pytest.mark.asyncio
async def test_slack_sink_stays_quiet_for_uneventful_days():
    client = DummyClient()
    sink = SlackResultSink(client)  # type: ignore[arg-type]

    await sink.publish(_outcome(OutcomeKind.NO_WORK))
    await sink.publish(_outcome(OutcomeKind.ALREADY_LOGGED))

    assert client.opened == []
    assert client.posted == []


@pytest.mark.asyncio
async def test_logging_sink_logs_failures_as_warnings(caplog):
    with caplog.at_level(logging.INFO, logger="worklogger.reconcile.sink"):
        await LoggingResultSink().publish(_outcome(OutcomeKind.FAILED, reason="bad token"))

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.outcome == "FAILED"
    assert "bad token" in record.getMessage()
