"""Adapter that calls the external job runner and normalizes its outcome."""

from __future__ import annotations

import inspect
import logging
from typing import Any

from cronkeeper.cron.errors import RunnerError
from cronkeeper.cron.protocols import JobRunner
from cronkeeper.cron.types import CronJob, RunnerResult

logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


def normalize_result(raw: Any) -> RunnerResult:
    """Coerce a runner return value into a RunnerResult."""
    if isinstance(raw, RunnerResult):
        return raw
    if isinstance(raw, dict):
        status = str(raw.get("status", "")).strip().lower()
        if status == "ok":
            summary = raw.get("summary")
            return RunnerResult(status="ok", summary=None if summary is None else str(summary))
        if status == "error":
            error = raw.get("error")
            return RunnerResult(status="error", error=str(error) if error else "unknown error")
        return RunnerResult(status="error", error=f"invalid runner status: {status or '<missing>'}")
    return RunnerResult(status="error", error=f"invalid runner result type: {type(raw).__name__}")


class JobRunnerAdapter:
    """Invoke a JobRunner without ever letting its exceptions escape."""

    def __init__(self, runner: JobRunner | Any) -> None:
        self.runner = runner

    def _resolve(self) -> Any:
        method = getattr(self.runner, "run_job", None)
        if callable(method):
            return method
        if callable(self.runner):
            return self.runner
        raise TypeError("job runner must define run_job() or be callable")

    async def execute(self, job: CronJob) -> RunnerResult:
        """Run `job` and return ok/error; exceptions become error results."""
        try:
            call = self._resolve()
            result = call(job.session_target, job.wake_mode, job.payload)
            if inspect.isawaitable(result):
                result = await result
        except RunnerError as exc:
            logger.warning("cron runner reported failure job_id=%s error=%s", job.id, exc)
            return RunnerResult(status="error", error=_error_text(exc))
        except Exception as exc:
            logger.exception("cron runner raised job_id=%s", job.id)
            return RunnerResult(status="error", error=_error_text(exc))
        return normalize_result(result)
