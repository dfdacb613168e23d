"""Error taxonomy shared by the tracker client, resilience layer and reconciler."""

from __future__ import annotations


class WorkloggerError(Exception):
    """Base class for all errors raised by worklogger."""


class RemoteUnavailable(WorkloggerError):
    """Network failure or 5xx from the tracker. The only retryable error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteRejected(WorkloggerError):
    """4xx from the tracker: bad credentials, permissions, missing resource."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimited(WorkloggerError):
    """Caller-side throttling by the rate limiter."""

    def __init__(self, message: str, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class CircuitOpen(WorkloggerError):
    """Fast failure while a circuit breaker protects its dependency."""

    def __init__(self, message: str, retry_after_seconds: float = 0.0) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AllocationContractViolation(WorkloggerError):
    """Time allocation requested over zero work items."""


class InvalidInput(WorkloggerError):
    """User or configuration input failed validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(f"{field}: {message}" if field else message)
        self.field = field


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, RemoteUnavailable)


__all__ = [
    "WorkloggerError",
    "RemoteUnavailable",
    "RemoteRejected",
    "RateLimited",
    "CircuitOpen",
    "AllocationContractViolation",
    "InvalidInput",
    "is_retryable",
]
