"""Daily Jira worklog reconciliation."""

__version__ = "0.1.0"
