from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Mapping

from worklogger.errors import RateLimited

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    max_attempts: int
    window_ms: int
    block_duration_ms: int | None = None


@dataclass
class RateLimitRecord:
    count: int
    window_reset_at: float
    blocked_until: float | None = None


@dataclass(frozen=True)
class RateLimitStatus:
    # None means the action has no rule and is never limited.
    remaining: int | None
    reset_at: float | None
    blocked: bool
    blocked_until: float | None = None


@dataclass(frozen=True)
class RateLimitStatistics:
    total_tracked_actors: int
    total_rules: int
    top_actions: list[tuple[str, int]]


DEFAULT_RULES: dict[str, RateLimitRule] = {
    "setup": RateLimitRule(max_attempts=5, window_ms=300_000),
    "time": RateLimitRule(max_attempts=10, window_ms=60_000),
    "hours": RateLimitRule(max_attempts=5, window_ms=60_000),
    "pause": RateLimitRule(max_attempts=3, window_ms=60_000),
    "info": RateLimitRule(max_attempts=20, window_ms=60_000),
    "health": RateLimitRule(max_attempts=3, window_ms=300_000),
}


class RateLimiter:
    """Fixed-window limiter keyed by ``(actor, action)``.

    Records are created on first use and evicted by :meth:`sweep`, which can
    run periodically via :meth:`start_sweeper` / :meth:`stop_sweeper`.
    Timestamps come from ``clock`` (seconds); rule durations are milliseconds.
    """

    def __init__(
        self,
        rules: Mapping[str, RateLimitRule] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rules: dict[str, RateLimitRule] = dict(
            DEFAULT_RULES if rules is None else rules
        )
        self._records: dict[tuple[str, str], RateLimitRecord] = {}
        self._clock = clock
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task[None] | None = None

    def set_rule(self, action: str, rule: RateLimitRule) -> None:
        with self._lock:
            self._rules[action] = rule

    def check(self, actor_id: str, action: str) -> None:
        """Count one attempt, raising :class:`RateLimited` when over the limit."""
        with self._lock:
            rule = self._rules.get(action)
            if rule is None:
                return

            key = (actor_id, action)
            now = self._clock()
            record = self._records.get(key)

            if record and record.blocked_until is not None and now < record.blocked_until:
                remaining = _ceil_seconds(record.blocked_until - now)
                raise RateLimited(
                    f"You are temporarily blocked. Please wait {remaining} seconds "
                    "before trying again.",
                    remaining,
                )

            if record is None or now >= record.window_reset_at:
                self._records[key] = RateLimitRecord(
                    count=1, window_reset_at=now + rule.window_ms / 1000
                )
                return

            record.count += 1
            if record.count <= rule.max_attempts:
                return

            if rule.block_duration_ms:
                record.blocked_until = now + rule.block_duration_ms / 1000
                block_s = _ceil_seconds(rule.block_duration_ms / 1000)
                logger.info("Blocking %s on %s for %ss", actor_id, action, block_s)
                raise RateLimited(
                    f"Rate limit exceeded. You are blocked for {block_s} seconds.",
                    block_s,
                )

            remaining = _ceil_seconds(record.window_reset_at - now)
            raise RateLimited(
                f"Rate limit exceeded. Please wait {remaining} seconds before trying again.",
                remaining,
            )

    def status(self, actor_id: str, action: str) -> RateLimitStatus:
        with self._lock:
            rule = self._rules.get(action)
            if rule is None:
                return RateLimitStatus(remaining=None, reset_at=None, blocked=False)

            now = self._clock()
            record = self._records.get((actor_id, action))
            if record is None or now >= record.window_reset_at:
                blocked_until = record.blocked_until if record else None
                return RateLimitStatus(
                    remaining=rule.max_attempts,
                    reset_at=now + rule.window_ms / 1000,
                    blocked=blocked_until is not None and now < blocked_until,
                    blocked_until=blocked_until,
                )

            return RateLimitStatus(
                remaining=max(0, rule.max_attempts - record.count),
                reset_at=record.window_reset_at,
                blocked=record.blocked_until is not None and now < record.blocked_until,
                blocked_until=record.blocked_until,
            )

    def reset(self, actor_id: str, action: str | None = None) -> None:
        """Forget attempts for one action, or for every action of the actor."""
        with self._lock:
            if action is not None:
                self._records.pop((actor_id, action), None)
                return
            for key in [k for k in self._records if k[0] == actor_id]:
                del self._records[key]

    def statistics(self) -> RateLimitStatistics:
        with self._lock:
            attempts: Counter[str] = Counter()
            actors = set()
            for (actor_id, action), record in self._records.items():
                actors.add(actor_id)
                attempts[action] += record.count
            return RateLimitStatistics(
                total_tracked_actors=len(actors),
                total_rules=len(self._rules),
                top_actions=attempts.most_common(10),
            )

    def sweep(self) -> int:
        """Drop records whose window and block have both expired."""
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, record in self._records.items()
                if now >= record.window_reset_at
                and (record.blocked_until is None or now >= record.blocked_until)
            ]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Evicted %d expired rate limit records", len(expired))
        return len(expired)

    def start_sweeper(self, interval_s: float = 300.0) -> None:
        """Start the periodic sweep on the running event loop (no-op if running)."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_forever(interval_s), name="rate-limit-sweeper"
        )

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_forever(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            self.sweep()


def _ceil_seconds(value: float) -> int:
    return max(0, math.ceil(value))


__all__ = [
    "DEFAULT_RULES",
    "RateLimitRecord",
    "RateLimitRule",
    "RateLimitStatistics",
    "RateLimitStatus",
    "RateLimiter",
]
