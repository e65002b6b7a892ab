"""cronkeeper - persistent interval scheduler with throttled failure alerts."""

from cronkeeper.cron import (
    CronJob,
    CronJobDraft,
    CronService,
    EverySchedule,
    FailureEscalationPolicy,
    JobStore,
    RunMode,
)

__all__ = [
    "CronJob",
    "CronJobDraft",
    "CronService",
    "EverySchedule",
    "FailureEscalationPolicy",
    "JobStore",
    "RunMode",
]
