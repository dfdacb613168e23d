from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from worklogger.tracker.models import WorkItem, WorklogEntry


class OutcomeKind(str, Enum):
    NO_WORK = "NO_WORK"
    ALREADY_LOGGED = "ALREADY_LOGGED"
    LOGGED = "LOGGED"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    FAILED = "FAILED"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class AllocatedItem:
    item: WorkItem
    seconds: int
    status: SubmissionStatus = SubmissionStatus.PENDING
    error: str | None = None


@dataclass
class ExistingEntry:
    item: WorkItem
    entry: WorklogEntry


@dataclass
class ReconcileOutcome:
    user_id: str
    guild_id: str
    day: date
    kind: OutcomeKind
    allocation: list[AllocatedItem] = field(default_factory=list)
    existing_entries: list[ExistingEntry] = field(default_factory=list)
    reason: str | None = None

    @property
    def submitted(self) -> list[AllocatedItem]:
        return [a for a in self.allocation if a.status is SubmissionStatus.SUBMITTED]

    @property
    def failed(self) -> list[AllocatedItem]:
        return [a for a in self.allocation if a.status is SubmissionStatus.FAILED]

    @property
    def submitted_seconds(self) -> int:
        return sum(a.seconds for a in self.submitted)


@dataclass
class DaySurvey:
    """What the tracker knows about one user's day before anything is logged."""

    day: date
    items: list[WorkItem]
    existing_entries: list[ExistingEntry]

    @property
    def already_logged(self) -> bool:
        return bool(self.existing_entries)


__all__ = [
    "AllocatedItem",
    "DaySurvey",
    "ExistingEntry",
    "OutcomeKind",
    "ReconcileOutcome",
    "SubmissionStatus",
]
