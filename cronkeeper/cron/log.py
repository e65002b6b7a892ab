"""Key=value lifecycle logging for the cron service."""

from __future__ import annotations

import logging

logger = logging.getLogger("cronkeeper.cron")


class CronLogger:
    """Structured-style logging helper based on stdlib logging."""

    def log_service_start(self, jobs: int, next_wake_at_ms: int | None) -> None:
        logger.info("cron_service_start jobs=%d next_wake_at_ms=%s", jobs, next_wake_at_ms)

    def log_service_stop(self, in_flight: int) -> None:
        logger.info("cron_service_stop in_flight=%d", in_flight)

    def log_job_added(self, job_id: str, name: str, schedule_kind: str) -> None:
        logger.info("cron_job_added job_id=%s name=%s schedule=%s", job_id, name, schedule_kind)

    def log_job_removed(self, job_id: str) -> None:
        logger.info("cron_job_removed job_id=%s", job_id)

    def log_run_start(self, job_id: str, mode: str) -> None:
        logger.info("cron_run_start job_id=%s mode=%s", job_id, mode)

    def log_run_skipped(self, job_id: str, reason: str) -> None:
        logger.debug("cron_run_skipped job_id=%s reason=%s", job_id, reason)

    def log_run_complete(self, job_id: str, status: str, duration_ms: int, consecutive_failures: int) -> None:
        log = logger.info if status == "ok" else logger.warning
        log(
            "cron_run_complete job_id=%s status=%s duration_ms=%d consecutive_failures=%d",
            job_id,
            status,
            duration_ms,
            consecutive_failures,
        )

    def log_alert(self, job_id: str, consecutive_failures: int) -> None:
        logger.warning("cron_failure_alert job_id=%s consecutive_failures=%d", job_id, consecutive_failures)

    def log_persist_failed(self, job_id: str | None, error: str) -> None:
        logger.error("cron_persist_failed job_id=%s error=%s", job_id, error)
