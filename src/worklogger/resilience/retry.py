from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from worklogger.errors import RemoteUnavailable, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    exponential_base: float = 2.0
    # When enabled each delay is perturbed by up to +/-25%.
    jitter: bool = True


DEFAULT_RETRY_OPTIONS = RetryOptions()


def compute_delay_ms(
    attempt: int,
    options: RetryOptions,
    rng: Callable[[], float] = random.random,
) -> int:
    """Delay to wait before ``attempt`` (1-based; attempt 1 never waits)."""
    if attempt <= 1:
        return 0
    delay = min(
        options.base_delay_ms * options.exponential_base ** (attempt - 2),
        options.max_delay_ms,
    )
    if options.jitter:
        spread = delay * 0.25
        delay = max(0.0, delay + (rng() - 0.5) * 2 * spread)
    return int(delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    options: RetryOptions = DEFAULT_RETRY_OPTIONS,
    sleep: Sleep = asyncio.sleep,
    operation_name: str = "operation",
) -> T:
    """Run ``operation`` up to ``options.max_attempts`` times.

    Errors rejected by ``should_retry`` propagate immediately. No delay is
    taken after the final attempt; its error is re-raised unchanged.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not should_retry(exc):
                logger.warning(
                    "Operation %s failed with non-retryable error: %s",
                    operation_name,
                    exc,
                    extra={"operation": operation_name, "attempt": attempt},
                )
                raise
            if attempt >= options.max_attempts:
                logger.error(
                    "Operation %s failed after %d attempts: %s",
                    operation_name,
                    options.max_attempts,
                    exc,
                    extra={"operation": operation_name, "attempt": attempt},
                )
                raise

            attempt += 1
            delay_ms = compute_delay_ms(attempt, options)
            logger.warning(
                "Operation %s failed, retrying in %dms (attempt %d/%d): %s",
                operation_name,
                delay_ms,
                attempt,
                options.max_attempts,
                exc,
                extra={"operation": operation_name, "attempt": attempt},
            )
            await sleep(delay_ms / 1000)


async def with_http_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    options: RetryOptions = DEFAULT_RETRY_OPTIONS,
    sleep: Sleep = asyncio.sleep,
    operation_name: str = "request",
) -> httpx.Response:
    """Retry an HTTP call on transport errors and 5xx responses.

    Anything below 500 is handed back untouched so callers can branch on
    401/403/404 without burning retries.
    """

    async def attempt() -> httpx.Response:
        try:
            response = await send()
        except httpx.TransportError as exc:
            raise RemoteUnavailable(
                f"{operation_name}: cannot reach tracker ({type(exc).__name__})"
            ) from exc
        if response.status_code >= 500:
            raise RemoteUnavailable(
                f"{operation_name}: tracker server error (HTTP {response.status_code})",
                response.status_code,
            )
        return response

    return await with_retry(
        attempt,
        should_retry=is_retryable,
        options=options,
        sleep=sleep,
        operation_name=operation_name,
    )


__all__ = [
    "DEFAULT_RETRY_OPTIONS",
    "RetryOptions",
    "compute_delay_ms",
    "with_http_retry",
    "with_retry",
]
