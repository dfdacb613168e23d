from __future__ import annotations

import logging
from typing import Protocol

from slack_sdk.web.async_client import AsyncWebClient

from worklogger.allocation import format_duration
from worklogger.reconcile.models import OutcomeKind, ReconcileOutcome
from worklogger.validation import sanitize_text

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    async def publish(self, outcome: ReconcileOutcome) -> None: ...


def render_outcome(outcome: ReconcileOutcome) -> str:
    """Plain-text summary of one user's reconciliation, suitable for a DM."""
    day = outcome.day.strftime("%A %d %B %Y")
    if outcome.kind is OutcomeKind.NO_WORK:
        return f"No worked issues found for {day}."
    if outcome.kind is OutcomeKind.ALREADY_LOGGED:
        lines = [f"Time was already logged for {day}:"]
        for existing in outcome.existing_entries:
            display = existing.entry.time_spent_display or format_duration(
                existing.entry.time_spent_seconds
            )
            lines.append(f"• {existing.item.key}: {display}")
        return "\n".join(lines)

    submitted = outcome.submitted
    if outcome.kind is OutcomeKind.FAILED and not submitted:
        return f"Could not log your time for {day}: {outcome.reason or 'unknown error'}"

    lines = [f"You worked on {len(submitted)} issues on {day}."]
    for allocated in submitted:
        summary = sanitize_text(allocated.item.summary)
        lines.append(
            f"• {allocated.item.key} {summary}: {format_duration(allocated.seconds)}".rstrip()
        )
    lines.append(f"Total: {format_duration(outcome.submitted_seconds)}")
    if outcome.kind is OutcomeKind.PARTIAL_FAILURE:
        failed = ", ".join(a.item.key for a in outcome.failed)
        lines.append(f"Failed to log: {failed}")
    return "\n".join(lines)


class LoggingResultSink:
    async def publish(self, outcome: ReconcileOutcome) -> None:
        level = logging.WARNING if outcome.kind in _ALERT_KINDS else logging.INFO
        logger.log(
            level,
            "Reconcile outcome for %s on %s: %s%s",
            outcome.user_id,
            outcome.day.isoformat(),
            outcome.kind.value,
            f" ({outcome.reason})" if outcome.reason else "",
            extra={
                "user_id": outcome.user_id,
                "guild_id": outcome.guild_id,
                "outcome": outcome.kind.value,
            },
        )


class SlackResultSink:
    """Direct-messages each user a summary of their reconciliation."""

    def __init__(
        self,
        client: AsyncWebClient,
        *,
        notify_kinds: frozenset[OutcomeKind] = frozenset(
            {OutcomeKind.LOGGED, OutcomeKind.PARTIAL_FAILURE, OutcomeKind.FAILED}
        ),
    ) -> None:
        self._client = client
        self._notify_kinds = notify_kinds

    async def publish(self, outcome: ReconcileOutcome) -> None:
        if outcome.kind not in self._notify_kinds:
            return
        user_id = (outcome.user_id or "").strip()
        if not user_id:
            return

        dm = await self._client.conversations_open(users=[user_id])
        channel_id = (dm.get("channel") or {}).get("id") or ""
        if not channel_id:
            logger.warning("No DM channel for %s", user_id, extra={"user_id": user_id})
            return
        await self._client.chat_postMessage(channel=channel_id, text=render_outcome(outcome))


_ALERT_KINDS = frozenset({OutcomeKind.PARTIAL_FAILURE, OutcomeKind.FAILED})


__all__ = ["LoggingResultSink", "ResultSink", "SlackResultSink", "render_outcome"]
