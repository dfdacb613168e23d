from __future__ import annotations

import re

DEFAULT_QUERY_TEMPLATE = (
    'assignee WAS currentUser() ON -{0}d AND status WAS "In Progress" ON -{0}d'
)

_PLACEHOLDER = re.compile(r"\{(\d+)\}")


def format_template(template: str, *args: object) -> str:
    """Replace positional ``{N}`` placeholders, leaving unknown ones untouched.

    Unlike :meth:`str.format` this ignores any other braces in the query.
    """

    def _sub(match: re.Match[str]) -> str:
        index = int(match.group(1))
        return str(args[index]) if index < len(args) else match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


def worked_issues_query(days_ago: int, template: str | None = None) -> str:
    """Query for issues worked ``days_ago`` days back, honouring a user override."""
    return format_template(template or DEFAULT_QUERY_TEMPLATE, days_ago)


__all__ = ["DEFAULT_QUERY_TEMPLATE", "format_template", "worked_issues_query"]
