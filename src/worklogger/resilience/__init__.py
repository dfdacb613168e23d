from .breaker import CircuitBreaker, CircuitBreakerState
from .rate_limit import (
    DEFAULT_RULES,
    RateLimiter,
    RateLimitRecord,
    RateLimitRule,
    RateLimitStatistics,
    RateLimitStatus,
)
from .retry import (
    DEFAULT_RETRY_OPTIONS,
    RetryOptions,
    compute_delay_ms,
    with_http_retry,
    with_retry,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerState",
    "DEFAULT_RULES",
    "RateLimiter",
    "RateLimitRecord",
    "RateLimitRule",
    "RateLimitStatistics",
    "RateLimitStatus",
    "DEFAULT_RETRY_OPTIONS",
    "RetryOptions",
    "compute_delay_ms",
    "with_http_retry",
    "with_retry",
]
