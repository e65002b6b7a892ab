"""Persistent cron scheduling: store, schedule evaluation, runs, and failure alerts."""

from cronkeeper.cron.clock import Clock, ManualClock, SystemClock
from cronkeeper.cron.errors import CronError, NotFoundError, RunnerError, StorageError
from cronkeeper.cron.escalation import EscalationDecision, FailureEscalationPolicy, build_alert_message
from cronkeeper.cron.locks import JobLocks
from cronkeeper.cron.protocols import EventSink, HeartbeatRequester, JobRunner
from cronkeeper.cron.run_log import RunLog, RunLogEntry
from cronkeeper.cron.runner import JobRunnerAdapter
from cronkeeper.cron.schedule import is_due, next_due, validate_schedule
from cronkeeper.cron.service import CronService
from cronkeeper.cron.store import DEFAULT_STORE_PATH, JobStore
from cronkeeper.cron.types import (
    AtSchedule,
    CronExprSchedule,
    CronJob,
    CronJobDraft,
    CronJobState,
    EverySchedule,
    RunMode,
    RunnerResult,
    RunOutcome,
    Schedule,
)

__all__ = [
    "AtSchedule",
    "Clock",
    "CronError",
    "CronExprSchedule",
    "CronJob",
    "CronJobDraft",
    "CronJobState",
    "CronService",
    "DEFAULT_STORE_PATH",
    "EscalationDecision",
    "EventSink",
    "EverySchedule",
    "FailureEscalationPolicy",
    "HeartbeatRequester",
    "JobLocks",
    "JobRunner",
    "JobRunnerAdapter",
    "JobStore",
    "ManualClock",
    "NotFoundError",
    "RunLog",
    "RunLogEntry",
    "RunMode",
    "RunnerError",
    "RunnerResult",
    "RunOutcome",
    "Schedule",
    "StorageError",
    "SystemClock",
    "build_alert_message",
    "is_due",
    "next_due",
    "validate_schedule",
]
