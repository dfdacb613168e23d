"""Split a day's worth of seconds across the work items a user touched.

Two policies are available:

* :func:`even_distribution` - deterministic, every item gets the same share
  and the first ``total % n`` items absorb the remainder.
* :func:`fair_distribution` - chunked and randomized so the result looks like
  something a person would have logged by hand.

Both return plain lists of ints whose sum is exactly ``total``.
"""

from __future__ import annotations

import random
from typing import Callable

from worklogger.errors import AllocationContractViolation

RandomSource = Callable[[], float]

# Chunk menu used by the fair policy, in seconds (5 to 30 minutes).
CHUNK_OPTIONS: tuple[int, ...] = (5 * 60, 10 * 60, 15 * 60, 20 * 60, 25 * 60, 30 * 60)
MIN_CHUNK = CHUNK_OPTIONS[0]


def even_distribution(total: int, n: int) -> list[int]:
    _require_items(total, n)
    share, remainder = divmod(total, n)
    return [share + 1 if index < remainder else share for index in range(n)]


def fair_distribution(total: int, n: int, rng: RandomSource = random.random) -> list[int]:
    """Allocate ``total`` seconds over ``n`` slots using random 5-30 minute chunks.

    Chunks are dealt round-robin starting at slot 0. When the remaining time is
    smaller than the drawn chunk, the remainder goes to the current slot and
    drawing stops. A correction pass then nudges slots up or down, at most one
    ``MIN_CHUNK`` per step, until the sum is exact.

    Args:
        total: Seconds to allocate. Must be >= 0.
        n: Number of slots. Must be >= 1.
        rng: Zero-argument callable returning a float in ``[0, 1)``.

    Returns:
        ``n`` non-negative ints summing to ``total``.
    """
    _require_items(total, n)
    distribution = [0] * n
    remaining = total
    index = 0

    while remaining > 0:
        chunk = CHUNK_OPTIONS[_pick(rng, len(CHUNK_OPTIONS))]
        if remaining >= chunk:
            distribution[index] += chunk
            remaining -= chunk
        else:
            distribution[index] += remaining
            remaining = 0
        index = (index + 1) % n

    current = sum(distribution)
    # Each full cycle over the slots moves the sum by at least MIN_CHUNK unless
    # the target is reached, so this is bounded by |diff| / MIN_CHUNK cycles.
    while current != total:
        diff = total - current
        step = min(abs(diff), MIN_CHUNK)
        if diff > 0:
            distribution[index] += step
            current += step
        else:
            step = min(step, distribution[index])
            distribution[index] -= step
            current -= step
        index = (index + 1) % n

    return distribution


def format_duration(total_seconds: int) -> str:
    """Render seconds as ``"1d 2h 30m"``; anything under a minute is ``"0h"``."""
    days, rest = divmod(int(total_seconds), 24 * 3600)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return " ".join(parts) if parts else "0h"


def _require_items(total: int, n: int) -> None:
    if n < 1:
        raise AllocationContractViolation(
            f"cannot allocate {total}s over {n} work items"
        )
    if total < 0:
        raise AllocationContractViolation(f"total must be non-negative, got {total}")


def _pick(rng: RandomSource, size: int) -> int:
    # Clamp so a source returning exactly 1.0 cannot index past the menu.
    return min(int(rng() * size), size - 1)


__all__ = [
    "CHUNK_OPTIONS",
    "RandomSource",
    "even_distribution",
    "fair_distribution",
    "format_duration",
]
