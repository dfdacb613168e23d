from datetime import date

import pytest
import pytest_asyncio

from worklogger.configs.models import WorkConfig
from worklogger.core.scheduler import get_scheduler, reset_scheduler
from worklogger.errors import RemoteRejected
from worklogger.tracker.models import WorklogEntry


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTracker:
    """In-memory tracker; created worklogs show up in later listings."""

    def __init__(self, issues=None, worklogs=None, fail_keys=()):
        self.issues = list(issues or [])
        self.worklogs: dict[str, list[WorklogEntry]] = {
            key: list(entries) for key, entries in (worklogs or {}).items()
        }
        self.fail_keys = set(fail_keys)
        self.search_error: Exception | None = None
        self.queries: list[str] = []
        self.listed: list[tuple[str, date]] = []
        self.created: list[dict] = []

    async def find_worked_issues(self, host, user, token, query):
        self.queries.append(query)
        if self.search_error is not None:
            raise self.search_error
        return list(self.issues)

    async def list_worklogs_for_day(self, host, user, token, issue_key, day):
        self.listed.append((issue_key, day))
        return list(self.worklogs.get(issue_key, []))

    async def create_worklog(self, host, user, token, issue_key, seconds, day, notify=False):
        if issue_key in self.fail_keys:
            raise RemoteRejected(
                "Jira (create_worklog): Access denied. Check your permissions or API token!",
                403,
            )
        self.created.append(
            {"host": host, "user": user, "issue_key": issue_key, "seconds": seconds, "day": day, "notify": notify}
        )
        self.worklogs.setdefault(issue_key, []).append(
            WorklogEntry(author_email=user, time_spent_seconds=seconds)
        )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def work_config():
    return WorkConfig(
        user_id="U1",
        guild_id="G1",
        host="acme.atlassian.net",
        username="dev@acme.io",
        token="secret-token-123",
    )


@pytest.fixture()
def tracker():
    return FakeTracker()


@pytest_asyncio.fixture()
async def scheduler():
    reset_scheduler()
    sched = get_scheduler()
    yield sched
    sched.remove_all_jobs()
    reset_scheduler()
