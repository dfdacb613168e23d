from .daily import DAYS_AGO, JOB_ID, DailyReconcileJob, daily_trigger
from .engine import Reconciler, validated_credentials
from .models import (
    AllocatedItem,
    DaySurvey,
    ExistingEntry,
    OutcomeKind,
    ReconcileOutcome,
    SubmissionStatus,
)
from .on_demand import DayReview, OnDemandReview
from .sink import LoggingResultSink, ResultSink, SlackResultSink, render_outcome

__all__ = [
    "AllocatedItem",
    "DAYS_AGO",
    "DailyReconcileJob",
    "DayReview",
    "DaySurvey",
    "ExistingEntry",
    "JOB_ID",
    "LoggingResultSink",
    "OnDemandReview",
    "OutcomeKind",
    "ReconcileOutcome",
    "Reconciler",
    "ResultSink",
    "SlackResultSink",
    "SubmissionStatus",
    "daily_trigger",
    "render_outcome",
    "validated_credentials",
]
