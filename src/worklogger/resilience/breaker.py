from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from worklogger.errors import CircuitOpen

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CircuitBreakerState:
    consecutive_failures: int
    last_failure_at: float | None
    is_open: bool


class CircuitBreaker:
    """Fail fast after repeated failures of a shared dependency.

    One instance guards one logical remote dependency and is shared by every
    caller of it. After ``failure_threshold`` consecutive failures the breaker
    opens and rejects calls with :class:`CircuitOpen` without invoking them.
    Once ``recovery_time_ms`` has passed since the last failure a single probe
    call is let through: success closes the breaker, failure re-opens it and
    restarts the recovery window.
    """

    def __init__(
        self,
        *,
        name: str = "tracker",
        failure_threshold: int = 5,
        recovery_time_ms: int = 60000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_time_ms = recovery_time_ms
        self._clock = clock
        self._failures = 0
        self._last_failure_at: float | None = None
        self._open = False
        self._probe_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            consecutive_failures=self._failures,
            last_failure_at=self._last_failure_at,
            is_open=self._open,
        )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        probe = await self._admit()
        try:
            result = await operation()
        except asyncio.CancelledError:
            if probe:
                self._probe_in_flight = False
            raise
        except Exception:
            await self._record_failure(probe)
            raise
        await self._record_success(probe)
        return result

    async def _admit(self) -> bool:
        async with self._lock:
            if not self._open:
                return False
            elapsed_ms = (self._clock() - (self._last_failure_at or 0.0)) * 1000
            if elapsed_ms >= self.recovery_time_ms and not self._probe_in_flight:
                self._probe_in_flight = True
                logger.info("Circuit %s half-open; letting one probe call through", self.name)
                return True
            remaining = max(0.0, (self.recovery_time_ms - elapsed_ms) / 1000)
            raise CircuitOpen(
                f"Circuit breaker '{self.name}' is open - service temporarily unavailable",
                retry_after_seconds=remaining,
            )

    async def _record_success(self, probe: bool) -> None:
        async with self._lock:
            if probe:
                self._probe_in_flight = False
                logger.info("Circuit %s closed after successful probe", self.name)
            self._open = False
            self._failures = 0

    async def _record_failure(self, probe: bool) -> None:
        async with self._lock:
            if probe:
                self._probe_in_flight = False
            self._failures += 1
            self._last_failure_at = self._clock()
            if probe or self._failures >= self.failure_threshold:
                if not self._open:
                    logger.warning(
                        "Circuit %s opened after %d consecutive failures",
                        self.name,
                        self._failures,
                    )
                self._open = True


__all__ = ["CircuitBreaker", "CircuitBreakerState"]
