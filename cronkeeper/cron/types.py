"""Cron job data models and their on-disk representation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Literal


class RunMode(str, Enum):
    """How a run was requested."""

    SCHEDULED = "scheduled"
    FORCE = "force"


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EverySchedule:
    """Fire repeatedly at a fixed period measured from the last run."""

    kind: ClassVar[str] = "every"

    every_ms: int

    def __post_init__(self) -> None:
        if isinstance(self.every_ms, bool) or not isinstance(self.every_ms, int) or self.every_ms <= 0:
            raise ValueError(f"every_ms must be a positive integer, got {self.every_ms!r}")


@dataclass(frozen=True, slots=True)
class AtSchedule:
    """Fire once at an absolute epoch-millisecond timestamp."""

    kind: ClassVar[str] = "at"

    at_ms: int

    def __post_init__(self) -> None:
        if isinstance(self.at_ms, bool) or not isinstance(self.at_ms, int) or self.at_ms < 0:
            raise ValueError(f"at_ms must be a non-negative integer, got {self.at_ms!r}")


@dataclass(frozen=True, slots=True)
class CronExprSchedule:
    """Fire on the occurrences of a cron expression, evaluated by croniter."""

    kind: ClassVar[str] = "cron"

    expr: str
    tz: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.expr, str) or not self.expr.strip():
            raise ValueError("cron expression must be a non-empty string")


Schedule = EverySchedule | AtSchedule | CronExprSchedule

SCHEDULE_KINDS: tuple[str, ...] = ("every", "at", "cron")


def _require_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    return value


def schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    if isinstance(schedule, EverySchedule):
        return {"kind": "every", "everyMs": schedule.every_ms}
    if isinstance(schedule, AtSchedule):
        return {"kind": "at", "atMs": schedule.at_ms}
    data: dict[str, Any] = {"kind": "cron", "expr": schedule.expr}
    if schedule.tz is not None:
        data["tz"] = schedule.tz
    return data


def schedule_from_dict(data: Any) -> Schedule:
    """Build a schedule variant from its camelCase mapping."""
    if isinstance(data, EverySchedule | AtSchedule | CronExprSchedule):
        return data
    if not isinstance(data, dict):
        raise ValueError(f"schedule must be a mapping, got {type(data).__name__}")
    kind = str(data.get("kind", "")).strip().lower()
    if kind == "every":
        return EverySchedule(every_ms=data.get("everyMs", data.get("every_ms")))
    if kind == "at":
        return AtSchedule(at_ms=data.get("atMs", data.get("at_ms")))
    if kind == "cron":
        return CronExprSchedule(expr=data.get("expr", ""), tz=data.get("tz"))
    raise ValueError(f"Unsupported schedule kind: {kind or '<missing>'}")


# ---------------------------------------------------------------------------
# Job state and job
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CronJobState:
    """Mutable run state embedded in a job record."""

    consecutive_failures: int = 0
    last_failure_notification_at_ms: int | None = None
    last_run_at_ms: int | None = None
    last_status: Literal["ok", "error"] | None = None
    last_error: str | None = None
    last_duration_ms: int | None = None

    _FIELDS: ClassVar[tuple[tuple[str, str], ...]] = (
        ("last_failure_notification_at_ms", "lastFailureNotificationAtMs"),
        ("last_run_at_ms", "lastRunAtMs"),
        ("last_status", "lastStatus"),
        ("last_error", "lastError"),
        ("last_duration_ms", "lastDurationMs"),
    )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"consecutiveFailures": self.consecutive_failures}
        for attr, key in self._FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> CronJobState:
        if not isinstance(data, dict):
            return cls()
        state = cls(consecutive_failures=max(0, int(data.get("consecutiveFailures", 0) or 0)))
        for attr, key in cls._FIELDS:
            if data.get(key) is not None:
                setattr(state, attr, data[key])
        return state

    def copy(self) -> CronJobState:
        return CronJobState(
            consecutive_failures=self.consecutive_failures,
            last_failure_notification_at_ms=self.last_failure_notification_at_ms,
            last_run_at_ms=self.last_run_at_ms,
            last_status=self.last_status,
            last_error=self.last_error,
            last_duration_ms=self.last_duration_ms,
        )


@dataclass(slots=True)
class CronJob:
    """A user-defined recurring task plus its run state."""

    id: str
    name: str
    schedule: Schedule
    enabled: bool = True
    session_target: str = "isolated"
    wake_mode: str = "now"
    payload: dict[str, Any] = field(default_factory=dict)
    description: str | None = None
    created_at_ms: int = 0
    updated_at_ms: int = 0
    state: CronJobState = field(default_factory=CronJobState)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "schedule": schedule_to_dict(self.schedule),
            "sessionTarget": self.session_target,
            "wakeMode": self.wake_mode,
            "payload": self.payload,
            "createdAtMs": self.created_at_ms,
            "updatedAtMs": self.updated_at_ms,
            "state": self.state.to_dict(),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CronJob:
        """Rebuild a job from its stored record; unknown keys are ignored."""
        job_id = str(data.get("id", "")).strip()
        if not job_id:
            raise ValueError("job record is missing an id")
        payload = data.get("payload")
        return cls(
            id=job_id,
            name=str(data.get("name", "")),
            schedule=schedule_from_dict(data.get("schedule")),
            enabled=_require_bool(data.get("enabled", True), "enabled"),
            session_target=str(data.get("sessionTarget", "isolated")),
            wake_mode=str(data.get("wakeMode", "now")),
            payload=payload if isinstance(payload, dict) else {},
            description=data.get("description"),
            created_at_ms=int(data.get("createdAtMs", 0) or 0),
            updated_at_ms=int(data.get("updatedAtMs", 0) or 0),
            state=CronJobState.from_dict(data.get("state")),
        )


@dataclass(slots=True)
class CronJobDraft:
    """User input for creating a job; the service assigns id and state."""

    name: str
    schedule: Schedule
    enabled: bool = True
    session_target: str = "isolated"
    wake_mode: str = "now"
    payload: dict[str, Any] = field(default_factory=dict)
    description: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("job name must be a non-empty string")
        _require_bool(self.enabled, "enabled")
        self.schedule = schedule_from_dict(self.schedule)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CronJobDraft:
        payload = data.get("payload")
        return cls(
            name=data.get("name", ""),
            schedule=schedule_from_dict(data.get("schedule")),
            enabled=data.get("enabled", True),
            session_target=str(data.get("sessionTarget", data.get("session_target", "isolated"))),
            wake_mode=str(data.get("wakeMode", data.get("wake_mode", "now"))),
            payload=dict(payload) if isinstance(payload, dict) else {},
            description=data.get("description"),
        )

    def build(self, created_at_ms: int) -> CronJob:
        return CronJob(
            id=uuid.uuid4().hex,
            name=self.name.strip(),
            schedule=self.schedule,
            enabled=self.enabled,
            session_target=self.session_target,
            wake_mode=self.wake_mode,
            payload=dict(self.payload),
            description=self.description,
            created_at_ms=created_at_ms,
            updated_at_ms=created_at_ms,
        )


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RunnerResult:
    """Normalized outcome of one external runner call."""

    status: Literal["ok", "error"]
    summary: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(slots=True)
class RunOutcome:
    """Result of a `CronService.run` call."""

    job_id: str
    ran: bool
    status: Literal["ok", "error"] | None = None
    summary: str | None = None
    error: str | None = None
    alerted: bool = False
    reason: str | None = None
