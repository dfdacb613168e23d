from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, Field


class WorkItem(BaseModel):
    """An issue the user was assigned to or active on during the target day."""

    id: str = Field(..., description="Tracker-internal issue id")
    key: str = Field(..., description="Human issue key, e.g. PROJ-42")
    summary: str = Field(default="")
    assignee_name: str = Field(default="")

    @classmethod
    def from_api(cls, issue: dict[str, Any]) -> "WorkItem":
        fields = issue.get("fields") or {}
        assignee = fields.get("assignee") or {}
        return cls(
            id=str(issue.get("id", "")),
            key=issue["key"],
            summary=fields.get("summary") or "",
            assignee_name=assignee.get("displayName") or "",
        )


class WorklogEntry(BaseModel):
    """Time recorded against a work item by one author."""

    author_email: str = Field(default="")
    time_spent_seconds: int = Field(default=0, ge=0)
    time_spent_display: str = Field(default="")
    started_at: Optional[datetime] = Field(default=None)

    @classmethod
    def from_api(cls, worklog: dict[str, Any]) -> "WorklogEntry":
        author = worklog.get("author") or {}
        started = worklog.get("started")
        return cls(
            author_email=author.get("emailAddress") or "",
            time_spent_seconds=int(worklog.get("timeSpentSeconds") or 0),
            time_spent_display=worklog.get("timeSpent") or "",
            started_at=date_parser.isoparse(started) if started else None,
        )

    def is_authored_by(self, email: str) -> bool:
        return bool(email) and self.author_email.casefold() == email.strip().casefold()


__all__ = ["WorkItem", "WorklogEntry"]
