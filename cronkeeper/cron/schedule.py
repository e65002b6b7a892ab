"""Next-due computation for the supported schedule kinds."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter  # type: ignore[import-untyped]

from cronkeeper.cron.types import AtSchedule, CronExprSchedule, EverySchedule, Schedule


def validate_schedule(schedule: Schedule) -> None:
    """Raise ValueError when a schedule cannot be evaluated."""
    if isinstance(schedule, CronExprSchedule):
        if not croniter.is_valid(schedule.expr.strip()):
            raise ValueError(f"Invalid cron expression: {schedule.expr}")
        _zone(schedule.tz)


def _zone(tz: str | None) -> timezone | ZoneInfo:
    if not tz:
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz}") from exc


def _next_cron_ms(schedule: CronExprSchedule, base_ms: int) -> int:
    base = datetime.fromtimestamp(base_ms / 1000, tz=_zone(schedule.tz))
    nxt = croniter(schedule.expr.strip(), base).get_next(datetime)
    return int(nxt.timestamp() * 1000)


def next_due(
    schedule: Schedule,
    now_ms: int,
    last_run_at_ms: int | None,
    *,
    anchor_ms: int | None = None,
) -> int | None:
    """Return when the job is next due, or None when it never runs again.

    A due time already in the past collapses to `now_ms`: missed periods
    produce one run, not a burst.
    """
    if isinstance(schedule, EverySchedule):
        if last_run_at_ms is None:
            return now_ms
        return max(last_run_at_ms + schedule.every_ms, now_ms)
    if isinstance(schedule, AtSchedule):
        if last_run_at_ms is not None and last_run_at_ms >= schedule.at_ms:
            return None
        return max(schedule.at_ms, now_ms)
    if isinstance(schedule, CronExprSchedule):
        base_ms = last_run_at_ms if last_run_at_ms is not None else anchor_ms
        if base_ms is None:
            base_ms = now_ms
        return max(_next_cron_ms(schedule, base_ms), now_ms)
    raise TypeError(f"Unsupported schedule type: {type(schedule).__name__}")


def is_due(
    schedule: Schedule,
    now_ms: int,
    last_run_at_ms: int | None,
    *,
    anchor_ms: int | None = None,
) -> bool:
    due = next_due(schedule, now_ms, last_run_at_ms, anchor_ms=anchor_ms)
    return due is not None and due <= now_ms
