"""Cron service: owns the job table, the timer loop, and run state transitions.

Every run executes inside its job's lock: read state, call the runner, fold
the outcome into a copy of the state, commit that copy, then swap it in.
Alerts and wake requests go out only after the commit succeeded. Records the
store could not parse stay in the committed table and are rewritten as is.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cronkeeper.cron.clock import Clock, SystemClock
from cronkeeper.cron.errors import NotFoundError, StorageError
from cronkeeper.cron.escalation import EscalationDecision, FailureEscalationPolicy
from cronkeeper.cron.locks import JobLocks, RunTracker
from cronkeeper.cron.log import CronLogger
from cronkeeper.cron.run_log import RunLog, RunLogEntry
from cronkeeper.cron.runner import JobRunnerAdapter
from cronkeeper.cron.schedule import is_due, next_due, validate_schedule
from cronkeeper.cron.store import STORE_VERSION, JobStore
from cronkeeper.cron.types import (
    CronJob,
    CronJobDraft,
    CronJobState,
    RunMode,
    RunnerResult,
    RunOutcome,
    schedule_from_dict,
)

if TYPE_CHECKING:
    from cronkeeper.config.models import CronkeeperConfig
    from cronkeeper.cron.protocols import EventSink, HeartbeatRequester, JobRunner

logger = logging.getLogger(__name__)

_PATCHABLE_FIELDS = frozenset(
    {"name", "description", "enabled", "schedule", "session_target", "wake_mode", "payload"}
)
_PATCH_ALIASES = {"sessionTarget": "session_target", "wakeMode": "wake_mode"}


async def _call_capability(target: Any, method_name: str, *args: Any) -> Any:
    """Call `target.method_name(*args)` or `target(*args)`, awaiting if needed."""
    if target is None:
        return None
    method = getattr(target, method_name, None)
    if not callable(method):
        if not callable(target):
            raise TypeError(f"{type(target).__name__} has no {method_name}() and is not callable")
        method = target
    result = method(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class CronService:
    """Persistent interval scheduler with failure escalation."""

    def __init__(
        self,
        store_path: str | Path | None = None,
        *,
        runner: JobRunner | Any,
        event_sink: EventSink | Any | None = None,
        heartbeat: HeartbeatRequester | Any | None = None,
        clock: Clock | None = None,
        policy: FailureEscalationPolicy | None = None,
        run_log: RunLog | None = None,
        on_event: Callable[[dict[str, Any]], Any] | None = None,
        enabled: bool = True,
        min_tick_seconds: float = 1.0,
        max_tick_seconds: float = 60.0,
        store: JobStore | None = None,
    ) -> None:
        self.store = store if store is not None else JobStore(store_path)
        self.event_sink = event_sink
        self.heartbeat = heartbeat
        self.policy = policy or FailureEscalationPolicy()
        self.run_log = run_log
        self.on_event = on_event
        self.enabled = enabled
        self.min_tick_seconds = max(0.01, float(min_tick_seconds))
        self.max_tick_seconds = max(self.min_tick_seconds, float(max_tick_seconds))

        self.jobs: dict[str, CronJob] = {}
        self._adapter = JobRunnerAdapter(runner)
        self._clock: Clock = clock or SystemClock()
        self._log = CronLogger()
        self._locks = JobLocks()
        self._runs = RunTracker()
        self._committed: dict[str, dict[str, Any]] = {}
        self._pending: set[str] = set()
        self._persist_backoff: dict[str, int] = {}
        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()
        self._running = False
        self._timer_task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None

    @classmethod
    def from_config(
        cls,
        config: CronkeeperConfig,
        *,
        runner: JobRunner | Any,
        event_sink: EventSink | Any | None = None,
        heartbeat: HeartbeatRequester | Any | None = None,
        clock: Clock | None = None,
        on_event: Callable[[dict[str, Any]], Any] | None = None,
    ) -> CronService:
        """Build a service from the typed configuration."""
        store_path = Path(config.cron.store_path).expanduser()
        run_log = None
        if config.run_log.enabled:
            run_log = RunLog(store_path.parent / "runs", keep_lines=config.run_log.keep_lines)
        return cls(
            store_path,
            runner=runner,
            event_sink=event_sink,
            heartbeat=heartbeat,
            clock=clock,
            policy=FailureEscalationPolicy(
                threshold=config.alerts.failure_threshold,
                throttle_window_ms=config.alerts.throttle_window_ms,
            ),
            run_log=run_log,
            on_event=on_event,
            enabled=config.cron.enabled,
            min_tick_seconds=config.cron.min_tick_seconds,
            max_tick_seconds=config.cron.max_tick_seconds,
        )

    def apply_settings(self, settings: dict[str, Any] | None) -> None:
        """Apply hot-reloadable settings to a live service."""
        if not settings:
            return
        threshold = settings.get("failure_threshold", self.policy.threshold)
        window = settings.get("throttle_window_ms", self.policy.throttle_window_ms)
        self.policy = FailureEscalationPolicy(threshold=int(threshold), throttle_window_ms=int(window))
        if "min_tick_seconds" in settings:
            self.min_tick_seconds = max(0.01, float(settings["min_tick_seconds"]))
        if "max_tick_seconds" in settings:
            self.max_tick_seconds = max(self.min_tick_seconds, float(settings["max_tick_seconds"]))
        self._wake_timer()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def store_path(self) -> Path:
        return self.store.path

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            contents = await asyncio.to_thread(self.store.load_contents)
            self.jobs = {job.id: job for job in contents.jobs}
            self._committed = dict(contents.records)
            self._loaded = True
            logger.debug(
                "cron store loaded path=%s jobs=%d unparsed=%d",
                self.store.path,
                len(self.jobs),
                contents.unparsed,
            )

    async def _commit(
        self,
        job_id: str,
        record: dict[str, Any] | None,
        *,
        require_present: bool = False,
    ) -> bool:
        """Write the committed table with one record replaced or removed.

        Only committed records reach the disk; state another job is still
        computing is never written on its behalf. Returns False when
        `require_present` is set and the job left the table meanwhile.
        """
        async with self._persist_lock:
            if require_present and job_id not in self.jobs:
                return False
            records = dict(self._committed)
            if record is None:
                records.pop(job_id, None)
            else:
                records[job_id] = record
            document = {"version": STORE_VERSION, "jobs": list(records.values())}
            try:
                await asyncio.to_thread(self.store.write_document, document)
            except StorageError as exc:
                self._log.log_persist_failed(job_id, str(exc))
                raise
            self._committed = records
            return True

    def _require(self, job_id: str) -> CronJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(job_id)
        return job

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, action: str, job_id: str, **fields: Any) -> None:
        if self.on_event is None:
            return
        event = {"action": action, "jobId": job_id}
        event.update({key: value for key, value in fields.items() if value is not None})
        try:
            result = self.on_event(event)
            if inspect.isawaitable(result):
                self._runs.spawn(f"cron-event:{action}:{job_id}", lambda: self._await_quietly(result, "on_event"))
        except Exception:
            logger.exception("cron on_event callback failed action=%s job_id=%s", action, job_id)

    @staticmethod
    async def _await_quietly(awaitable: Any, what: str) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("cron %s callback failed", what)

    def _wake_timer(self) -> None:
        if self._wake is not None:
            self._wake.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the store and start the timer loop; a no-op when running."""
        if self._running:
            return
        await self._ensure_loaded()
        if not self.enabled:
            logger.info("cron scheduler disabled; jobs will only run when forced")
            return
        self._running = True
        self._wake = asyncio.Event()
        self._timer_task = asyncio.create_task(self._timer_loop(), name="cron-timer")
        self._log.log_service_start(len(self.jobs), self.next_wake_at_ms())

    async def stop(self) -> None:
        """Cancel the timer loop and wait for in-flight runs to finish."""
        was_running = self._running
        task = self._timer_task
        self._running = False
        self._timer_task = None
        self._wake = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        in_flight = self._runs.get_active_count()
        await self._runs.wait_all()
        if was_running:
            self._log.log_service_stop(in_flight)

    async def _timer_loop(self) -> None:
        while self._running:
            wake = self._wake
            if wake is not None:
                wake.clear()
            try:
                self._dispatch_due()
                delay = self._next_delay_seconds()
            except Exception:
                logger.exception("cron timer tick failed")
                delay = self.max_tick_seconds
            if wake is None:
                await asyncio.sleep(delay)
                continue
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(wake.wait(), timeout=delay)

    def _next_delay_seconds(self) -> float:
        next_wake = self.next_wake_at_ms()
        if next_wake is None:
            return self.max_tick_seconds
        delay = (next_wake - self._clock.now_ms()) / 1000
        return min(max(delay, self.min_tick_seconds), self.max_tick_seconds)

    # ------------------------------------------------------------------
    # Job table operations
    # ------------------------------------------------------------------

    async def add(self, draft: CronJobDraft | dict[str, Any]) -> CronJob:
        """Create a job with fresh run state and persist it."""
        if isinstance(draft, dict):
            draft = CronJobDraft.from_dict(draft)
        validate_schedule(draft.schedule)
        await self._ensure_loaded()
        job = draft.build(self._clock.now_ms())
        while job.id in self._committed:
            job = draft.build(job.created_at_ms)
        await self._commit(job.id, job.to_dict())
        self.jobs[job.id] = job
        self._log.log_job_added(job.id, job.name, job.schedule.kind)
        self._emit("added", job.id, nextRunAtMs=self._next_due_for(job, self._clock.now_ms()))
        self._wake_timer()
        return job

    async def remove(self, job_id: str) -> CronJob:
        """Delete a job; an in-flight run finishes but is not persisted."""
        await self._ensure_loaded()
        job = self._require(job_id)
        await self._commit(job_id, None)
        self.jobs.pop(job_id, None)
        self._persist_backoff.pop(job_id, None)
        self._locks.discard(job_id)
        if self.run_log is not None:
            try:
                await asyncio.to_thread(self.run_log.remove, job_id)
            except OSError as exc:
                logger.warning("cron run log cleanup failed job_id=%s error=%s", job_id, exc)
        self._log.log_job_removed(job_id)
        self._emit("removed", job_id)
        self._wake_timer()
        return job

    async def get(self, job_id: str) -> CronJob:
        await self._ensure_loaded()
        return self._require(job_id)

    async def list_jobs(self, include_disabled: bool = True) -> list[CronJob]:
        await self._ensure_loaded()
        jobs = list(self.jobs.values())
        if not include_disabled:
            jobs = [job for job in jobs if job.enabled]
        return jobs

    async def update(self, job_id: str, patch: dict[str, Any]) -> CronJob:
        """Patch a job's definition; waits for an in-flight run of that job."""
        normalized: dict[str, Any] = {}
        for key, value in patch.items():
            attr = _PATCH_ALIASES.get(key, key)
            if attr not in _PATCHABLE_FIELDS:
                raise ValueError(f"Field cannot be updated: {key}")
            normalized[attr] = value
        if "schedule" in normalized:
            normalized["schedule"] = schedule_from_dict(normalized["schedule"])
            validate_schedule(normalized["schedule"])
        if "name" in normalized:
            name = normalized["name"]
            if not isinstance(name, str) or not name.strip():
                raise ValueError("job name must be a non-empty string")
            normalized["name"] = name.strip()
        if "payload" in normalized and not isinstance(normalized["payload"], dict):
            raise ValueError("payload must be a mapping")
        if "enabled" in normalized and not isinstance(normalized["enabled"], bool):
            raise ValueError(f"enabled must be a boolean, got {normalized['enabled']!r}")

        await self._ensure_loaded()
        job = self._require(job_id)
        async with self._locks.get(job_id):
            job = self._require(job_id)
            record = job.to_dict()
            candidate = CronJob.from_dict(record)
            for attr, value in normalized.items():
                setattr(candidate, attr, value)
            candidate.updated_at_ms = self._clock.now_ms()
            await self._commit(job_id, candidate.to_dict(), require_present=True)
            for attr in (*normalized.keys(), "updated_at_ms"):
                setattr(job, attr, getattr(candidate, attr))
        self._emit("updated", job_id, nextRunAtMs=self._next_due_for(job, self._clock.now_ms()))
        self._wake_timer()
        return job

    async def status(self) -> dict[str, Any]:
        await self._ensure_loaded()
        return {
            "enabled": self.enabled,
            "running": self._running,
            "storePath": str(self.store.path),
            "jobs": len(self.jobs),
            "activeRuns": self._runs.get_active_count(),
            "nextWakeAtMs": self.next_wake_at_ms(),
        }

    async def run_history(self, job_id: str, limit: int = 20) -> list[RunLogEntry]:
        await self._ensure_loaded()
        self._require(job_id)
        if self.run_log is None:
            return []
        return await asyncio.to_thread(self.run_log.read, job_id, limit)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _next_due_for(self, job: CronJob, now_ms: int) -> int | None:
        if not job.enabled:
            return None
        return next_due(job.schedule, now_ms, job.state.last_run_at_ms, anchor_ms=job.created_at_ms)

    def next_wake_at_ms(self) -> int | None:
        """Earliest due time across enabled jobs."""
        now = self._clock.now_ms()
        earliest: int | None = None
        for job in list(self.jobs.values()):
            try:
                due = self._next_due_for(job, now)
            except Exception:
                logger.exception("cron next due failed job_id=%s", job.id)
                continue
            retry_at = self._persist_backoff.get(job.id)
            if due is not None and retry_at is not None:
                due = max(due, retry_at)
            if due is not None and (earliest is None or due < earliest):
                earliest = due
        return earliest

    def _due_jobs(self, now_ms: int) -> list[CronJob]:
        due: list[CronJob] = []
        for job in list(self.jobs.values()):
            if not job.enabled or job.id in self._pending or self._locks.is_running(job.id):
                continue
            retry_at = self._persist_backoff.get(job.id)
            if retry_at is not None and retry_at > now_ms:
                continue
            try:
                if is_due(job.schedule, now_ms, job.state.last_run_at_ms, anchor_ms=job.created_at_ms):
                    due.append(job)
            except Exception:
                logger.exception("cron due check failed job_id=%s", job.id)
        return due

    def _dispatch_due(self) -> list[asyncio.Task[Any]]:
        tasks: list[asyncio.Task[Any]] = []
        for job in self._due_jobs(self._clock.now_ms()):
            self._pending.add(job.id)
            tasks.append(self._runs.spawn(f"cron-run:{job.id}", lambda job_id=job.id: self._run_scheduled(job_id)))
        return tasks

    async def _run_scheduled(self, job_id: str) -> RunOutcome:
        try:
            return await self.run(job_id, RunMode.SCHEDULED)
        except NotFoundError:
            return RunOutcome(job_id=job_id, ran=False, reason="removed")
        except StorageError as exc:
            retry_in = self.max_tick_seconds
            if job_id not in self._persist_backoff:
                logger.warning(
                    "cron scheduled run not persisted job_id=%s retry_in_s=%s error=%s", job_id, retry_in, exc
                )
            self._persist_backoff[job_id] = self._clock.now_ms() + int(retry_in * 1000)
            return RunOutcome(job_id=job_id, ran=True, reason="not-persisted", error=str(exc))
        except Exception as exc:
            logger.exception("cron scheduled run failed job_id=%s", job_id)
            return RunOutcome(job_id=job_id, ran=False, reason="error", error=str(exc))
        finally:
            self._pending.discard(job_id)

    async def tick(self) -> list[RunOutcome]:
        """Run every due enabled job once and return their outcomes."""
        await self._ensure_loaded()
        tasks = self._dispatch_due()
        if not tasks:
            return []
        results = await asyncio.gather(*tasks, return_exceptions=True)
        return [result for result in results if isinstance(result, RunOutcome)]

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def run(self, job_id: str, mode: RunMode | str = RunMode.FORCE) -> RunOutcome:
        """Run a job now (`force`) or only when it is due (`scheduled`)."""
        run_mode = RunMode(mode)
        await self._ensure_loaded()
        job = self._require(job_id)
        async with self._locks.get(job_id):
            return await self._run_locked(job, run_mode)

    async def _run_locked(self, job: CronJob, mode: RunMode) -> RunOutcome:
        if self.jobs.get(job.id) is not job:
            return RunOutcome(job_id=job.id, ran=False, reason="removed")
        started_at = self._clock.now_ms()
        if mode is RunMode.SCHEDULED:
            reason = None
            if not job.enabled:
                reason = "disabled"
            elif not is_due(job.schedule, started_at, job.state.last_run_at_ms, anchor_ms=job.created_at_ms):
                reason = "not-due"
            if reason is not None:
                self._log.log_run_skipped(job.id, reason)
                return RunOutcome(job_id=job.id, ran=False, reason=reason)

        self._log.log_run_start(job.id, mode.value)
        self._emit("started", job.id, runAtMs=started_at)
        result = await self._adapter.execute(job)
        finished_at = self._clock.now_ms()

        candidate = job.state.copy()
        decision = self._apply_result(job.name, candidate, result, started_at, finished_at)
        record = job.to_dict()
        record["state"] = candidate.to_dict()
        if not await self._commit(job.id, record, require_present=True):
            return RunOutcome(job_id=job.id, ran=True, status=result.status, error=result.error, reason="removed")
        job.state = candidate
        if self._persist_backoff.pop(job.id, None) is not None:
            logger.info("cron store writable again job_id=%s", job.id)

        duration_ms = job.state.last_duration_ms or 0
        self._log.log_run_complete(job.id, result.status, duration_ms, job.state.consecutive_failures)
        if decision.should_alert and decision.message is not None:
            await self._send_alert(job, decision.message)
        await self._record_run(
            RunLogEntry(
                job_id=job.id,
                run_at_ms=started_at,
                status=result.status,
                duration_ms=duration_ms,
                mode=mode.value,
                error=result.error,
                summary=result.summary,
                alerted=decision.should_alert,
            )
        )
        self._emit(
            "finished",
            job.id,
            status=result.status,
            error=result.error,
            summary=result.summary,
            runAtMs=started_at,
            durationMs=duration_ms,
            nextRunAtMs=self._next_due_for(job, finished_at),
        )
        return RunOutcome(
            job_id=job.id,
            ran=True,
            status=result.status,
            summary=result.summary,
            error=result.error,
            alerted=decision.should_alert,
        )

    def _apply_result(
        self,
        job_name: str,
        state: CronJobState,
        result: RunnerResult,
        started_at: int,
        finished_at: int,
    ) -> EscalationDecision:
        """Fold one runner result into `state` and decide whether to alert."""
        state.last_run_at_ms = started_at
        state.last_duration_ms = max(0, finished_at - started_at)
        if result.ok:
            state.consecutive_failures = 0
            state.last_failure_notification_at_ms = None
            state.last_status = "ok"
            state.last_error = None
            return EscalationDecision(should_alert=False)

        previous_failures = state.consecutive_failures
        state.consecutive_failures = previous_failures + 1
        state.last_status = "error"
        state.last_error = result.error
        decision = self.policy.evaluate(
            previous_failures,
            state.consecutive_failures,
            state.last_failure_notification_at_ms,
            finished_at,
            job_name=job_name,
            last_error=result.error,
        )
        if decision.should_alert:
            state.last_failure_notification_at_ms = finished_at
        return decision

    async def _send_alert(self, job: CronJob, message: str) -> None:
        self._log.log_alert(job.id, job.state.consecutive_failures)
        metadata = {
            "source": "cron",
            "jobId": job.id,
            "jobName": job.name,
            "consecutiveFailures": job.state.consecutive_failures,
            "lastError": job.state.last_error,
        }
        try:
            await _call_capability(self.event_sink, "enqueue", message, metadata)
        except Exception:
            logger.exception("cron alert delivery failed job_id=%s", job.id)
        try:
            await _call_capability(self.heartbeat, "request_wake_now")
        except Exception:
            logger.exception("cron heartbeat request failed job_id=%s", job.id)

    async def _record_run(self, entry: RunLogEntry) -> None:
        if self.run_log is None:
            return
        try:
            await asyncio.to_thread(self.run_log.append, entry)
        except (OSError, ValueError) as exc:
            logger.warning("cron run log append failed job_id=%s error=%s", entry.job_id, exc)
