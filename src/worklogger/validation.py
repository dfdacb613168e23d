"""Input validation for tracker credentials, queries and worklog values."""

from __future__ import annotations

import re
import unicodedata
from typing import Any

from worklogger.errors import InvalidInput

DEFAULT_DAILY_HOURS = 8
MIN_WORKLOG_SECONDS = 60
MAX_WORKLOG_SECONDS = 24 * 3600

_PROTOCOL = re.compile(r"^https?://")
_DOMAIN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ISSUE_KEY = re.compile(r"^[A-Z][A-Z0-9_]*-\d+$")
_JQL_KEYWORDS = re.compile(
    r"\b(assignee|project|status|created|updated|key|summary|AND|OR|NOT|WAS|ON|IN|IS)\b"
    r"|!=|>=|<=|=|>|<",
    re.IGNORECASE,
)


def validate_string(
    value: Any,
    field: str,
    *,
    required: bool = False,
    min_length: int = 0,
    max_length: int | None = None,
    pattern: re.Pattern[str] | None = None,
) -> str:
    if value is None:
        if required:
            raise InvalidInput("is required", field)
        return ""
    if not isinstance(value, str):
        raise InvalidInput("must be a string", field)

    trimmed = value.strip()
    if required and not trimmed:
        raise InvalidInput("cannot be empty", field)
    if len(trimmed) < min_length:
        raise InvalidInput(f"must be at least {min_length} characters long", field)
    if max_length is not None and len(trimmed) > max_length:
        raise InvalidInput(f"must be no more than {max_length} characters long", field)
    if pattern is not None and not pattern.match(trimmed):
        raise InvalidInput("format is invalid", field)
    return trimmed


def validate_int(
    value: Any,
    field: str,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if isinstance(value, bool) or value is None:
        raise InvalidInput("must be a whole number", field)
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidInput("must be a whole number", field)
        value = int(value)
    if not isinstance(value, int):
        try:
            value = int(str(value).strip())
        except ValueError:
            raise InvalidInput("must be a valid number", field) from None
    if minimum is not None and value < minimum:
        raise InvalidInput(f"must be at least {minimum}", field)
    if maximum is not None and value > maximum:
        raise InvalidInput(f"must be no more than {maximum}", field)
    return value


def validate_host(host: str) -> str:
    """Return the bare domain of a tracker host, protocol and trailing slash stripped."""
    cleaned = validate_string(host, "Jira host", required=True, min_length=5, max_length=200)
    cleaned = _PROTOCOL.sub("", cleaned).rstrip("/")
    if not _DOMAIN.match(cleaned):
        raise InvalidInput("Jira host must be a valid domain name")
    if "." not in cleaned:
        raise InvalidInput(
            "Jira host appears to be invalid. Please provide the full domain "
            "(e.g., yourcompany.atlassian.net)"
        )
    return cleaned


def validate_email(email: str) -> str:
    cleaned = validate_string(email, "Email", required=True, min_length=5, max_length=254)
    if not _EMAIL.match(cleaned):
        raise InvalidInput("Email format is invalid")
    return cleaned.lower()


def validate_api_token(token: str) -> str:
    cleaned = validate_string(token, "API token", required=True, min_length=10, max_length=500)
    if any(ch in cleaned for ch in (" ", "\n", "\t")):
        raise InvalidInput("API token contains invalid characters")
    return cleaned


def validate_jql(jql: str | None) -> str | None:
    """Return a trimmed JQL query, ``None`` for empty input."""
    if not jql:
        return None
    cleaned = validate_string(jql, "JQL query", min_length=5, max_length=1000)
    if not _JQL_KEYWORDS.search(cleaned):
        raise InvalidInput("JQL query does not appear to contain valid JQL syntax")
    return cleaned


def validate_daily_hours(hours: Any) -> int:
    """Hours per day between 1 and 24; unset or zero falls back to the default."""
    if hours is None or hours == 0:
        return DEFAULT_DAILY_HOURS
    return validate_int(hours, "Daily hours", minimum=1, maximum=24)


def validate_issue_key(key: str) -> str:
    return validate_string(
        key, "Issue key", required=True, min_length=3, max_length=50, pattern=_ISSUE_KEY
    )


def validate_worklog_seconds(seconds: Any) -> int:
    return validate_int(
        seconds, "Time spent", minimum=MIN_WORKLOG_SECONDS, maximum=MAX_WORKLOG_SECONDS
    )


def sanitize_text(value: str) -> str:
    """Strip brackets, quotes and control characters from tracker-provided text."""
    stripped = re.sub(r"[<>'\"]", "", value or "")
    stripped = "".join(ch for ch in stripped if unicodedata.category(ch) != "Cc")
    return stripped.strip()


__all__ = [
    "DEFAULT_DAILY_HOURS",
    "MAX_WORKLOG_SECONDS",
    "MIN_WORKLOG_SECONDS",
    "sanitize_text",
    "validate_api_token",
    "validate_daily_hours",
    "validate_email",
    "validate_host",
    "validate_int",
    "validate_issue_key",
    "validate_jql",
    "validate_string",
    "validate_worklog_seconds",
]
