from .client import JiraClient, TrackerClient, describe_rejection
from .models import WorkItem, WorklogEntry
from .query import DEFAULT_QUERY_TEMPLATE, format_template, worked_issues_query

__all__ = [
    "JiraClient",
    "TrackerClient",
    "describe_rejection",
    "WorkItem",
    "WorklogEntry",
    "DEFAULT_QUERY_TEMPLATE",
    "format_template",
    "worked_issues_query",
]
