"""Jira Cloud REST client for the three worklog operations the reconciler needs."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Protocol
from zoneinfo import ZoneInfo

import httpx

from worklogger.errors import RemoteRejected
from worklogger.resilience.breaker import CircuitBreaker
from worklogger.resilience.retry import (
    DEFAULT_RETRY_OPTIONS,
    RetryOptions,
    Sleep,
    with_http_retry,
)
from worklogger.tracker.models import WorkItem, WorklogEntry
from worklogger.validation import (
    validate_api_token,
    validate_email,
    validate_host,
    validate_issue_key,
    validate_worklog_seconds,
)

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/api/3"
SEARCH_FIELDS = ["key", "summary", "assignee"]
SEARCH_MAX_RESULTS = 50
WORKLOG_START = time(9, 0)


class TrackerClient(Protocol):
    async def find_worked_issues(
        self, host: str, user: str, token: str, query: str
    ) -> list[WorkItem]: ...

    async def list_worklogs_for_day(
        self, host: str, user: str, token: str, issue_key: str, day: date
    ) -> list[WorklogEntry]: ...

    async def create_worklog(
        self,
        host: str,
        user: str,
        token: str,
        issue_key: str,
        seconds: int,
        day: date,
        notify: bool = False,
    ) -> None: ...


def describe_rejection(response: httpx.Response, operation: str) -> str:
    """Convert a 4xx response into a user-friendly message."""
    status = response.status_code
    messages = {
        401: "Authentication failed. Check your API token!",
        403: "Access denied. Check your permissions or API token!",
        404: "Resource not found. Check the Jira host and issue key!",
        429: "Too many requests. Wait a moment and try again.",
    }
    detail = messages.get(status, f"HTTP {status} - {response.reason_phrase}")
    return f"Jira ({operation}): {detail}"


class JiraClient:
    """Client for the Jira REST API.

    Credentials are passed per call because one process serves many users.
    Every request runs inside the shared :class:`CircuitBreaker` and the HTTP
    retry policy; 4xx answers do not count against the breaker and surface
    as :class:`RemoteRejected`.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        breaker: CircuitBreaker,
        retry_options: RetryOptions = DEFAULT_RETRY_OPTIONS,
        sleep: Sleep = asyncio.sleep,
        worklog_timezone: str = "Etc/UTC",
    ) -> None:
        self._http = http
        self._breaker = breaker
        self._retry_options = retry_options
        self._sleep = sleep
        self._tz = ZoneInfo(worklog_timezone)

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def find_worked_issues(
        self, host: str, user: str, token: str, query: str
    ) -> list[WorkItem]:
        payload = {
            "jql": query,
            "fields": SEARCH_FIELDS,
            "maxResults": SEARCH_MAX_RESULTS,
        }
        data = await self._request(
            "POST",
            host,
            "/search/jql",
            user=user,
            token=token,
            operation="find_worked_issues",
            json=payload,
        )
        return [WorkItem.from_api(issue) for issue in data.get("issues", [])]

    async def list_worklogs_for_day(
        self, host: str, user: str, token: str, issue_key: str, day: date
    ) -> list[WorklogEntry]:
        issue_key = validate_issue_key(issue_key)
        started_after, started_before = utc_day_bounds_ms(day)
        data = await self._request(
            "GET",
            host,
            f"/issue/{issue_key}/worklog",
            user=user,
            token=token,
            operation="list_worklogs_for_day",
            params={"startedAfter": started_after, "startedBefore": started_before},
        )
        return [WorklogEntry.from_api(worklog) for worklog in data.get("worklogs", [])]

    async def create_worklog(
        self,
        host: str,
        user: str,
        token: str,
        issue_key: str,
        seconds: int,
        day: date,
        notify: bool = False,
    ) -> None:
        issue_key = validate_issue_key(issue_key)
        payload = {
            "started": format_started(day, self._tz),
            "timeSpentSeconds": validate_worklog_seconds(seconds),
        }
        await self._request(
            "POST",
            host,
            f"/issue/{issue_key}/worklog",
            user=user,
            token=token,
            operation="create_worklog",
            params={"notifyUsers": "true" if notify else "false"},
            json=payload,
        )
        logger.info("Logged %ss on %s for %s", seconds, issue_key, day.isoformat())

    async def _request(
        self,
        method: str,
        host: str,
        path: str,
        *,
        user: str,
        token: str,
        operation: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        url = f"https://{validate_host(host)}{REST_PREFIX}{path}"
        auth = (validate_email(user), validate_api_token(token))

        async def send() -> httpx.Response:
            return await self._http.request(
                method,
                url,
                auth=auth,
                headers={"Accept": "application/json"},
                **kwargs,
            )

        response = await self._breaker.call(
            lambda: with_http_retry(
                send,
                options=self._retry_options,
                sleep=self._sleep,
                operation_name=operation,
            )
        )
        if not response.is_success:
            raise RemoteRejected(describe_rejection(response, operation), response.status_code)
        if not response.content:
            return {}
        return response.json()


def utc_day_bounds_ms(day: date) -> tuple[int, int]:
    """Epoch milliseconds of UTC midnight at the start and end of ``day``."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def format_started(day: date, tz: ZoneInfo) -> str:
    """Jira's worklog timestamp format, e.g. ``2024-03-04T09:00:00.000+0000``."""
    started = datetime.combine(day, WORKLOG_START, tzinfo=tz)
    return started.strftime("%Y-%m-%dT%H:%M:%S.000%z")


__all__ = [
    "JiraClient",
    "TrackerClient",
    "describe_rejection",
    "format_started",
    "utc_day_bounds_ms",
]
