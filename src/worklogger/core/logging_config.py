"""Logging setup for the worklogger service.

Records are plain text by default. ``OBS_LOG_FORMAT=json`` switches stdout to
one JSON object per line, carrying the reconciliation context that callers
attach with ``logger.x(..., extra={"user_id": ..., "operation": ...})``.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

CONTEXT_FIELDS: tuple[str, ...] = (
    "user_id",
    "guild_id",
    "operation",
    "issue_key",
    "outcome",
    "attempt",
)
SECRET_MARKERS: tuple[str, ...] = ("token", "authorization", "password", "secret", "api_key")
REDACTED = "[REDACTED]"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers held at WARNING unless their env var says otherwise.
QUIET_LOGGERS: dict[str, str] = {
    "httpx": "HTTPX_LOG_LEVEL",
    "apscheduler": "APSCHEDULER_LOG_LEVEL",
}


def is_secret_key(key: str) -> bool:
    lowered = key.strip().lower()
    return any(marker in lowered for marker in SECRET_MARKERS)


def redact(value: Any) -> Any:
    """Replace values under secret-looking keys, descending into dicts and lists."""
    if isinstance(value, dict):
        return {
            k: REDACTED if isinstance(k, str) and is_secret_key(k) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


class StructuredJsonFormatter(logging.Formatter):
    """Render a record as ``{"ts", "level", "logger", "message", ...context, "exc"}``.

    Messages that are themselves JSON objects are re-serialised with secrets
    redacted.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": _render_message(record),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is None:
                continue
            entry[name] = value if isinstance(value, (int, float)) else str(value)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(*, default_level: str | int = "INFO") -> None:
    """Configure the root logger; ``LOG_LEVEL`` overrides ``default_level``."""
    logging.basicConfig(
        level=level_from(os.getenv("LOG_LEVEL"), default_level),
        format=TEXT_FORMAT,
    )
    if json_output_enabled():
        use_json_output()
    for name, env_var in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level_from(os.getenv(env_var), "WARNING"))


def json_output_enabled() -> bool:
    return (os.getenv("OBS_LOG_FORMAT") or "").strip().lower() == "json"


def use_json_output() -> None:
    """Switch every root stream handler to :class:`StructuredJsonFormatter`."""
    for handler in logging.getLogger().handlers:
        if not isinstance(handler, logging.StreamHandler):
            continue
        if not isinstance(handler.formatter, StructuredJsonFormatter):
            handler.setFormatter(StructuredJsonFormatter())


def level_from(value: str | int | None, fallback: str | int) -> int:
    if value is None or value == "":
        value = fallback
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _render_message(record: logging.LogRecord) -> str:
    try:
        message = record.getMessage()
    except (TypeError, ValueError):
        return f"{record.msg!r} % {record.args!r}"
    if not message.startswith("{"):
        return message
    try:
        payload = json.loads(message)
    except ValueError:
        return message
    if not isinstance(payload, dict):
        return message
    return json.dumps(redact(payload), ensure_ascii=False, default=str)


def _utc_timestamp(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "StructuredJsonFormatter",
    "configure_logging",
    "redact",
    "use_json_output",
]
