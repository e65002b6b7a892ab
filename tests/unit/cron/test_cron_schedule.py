"""Unit tests for next-due computation."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cronkeeper.cron.schedule import is_due, next_due, validate_schedule
from cronkeeper.cron.types import AtSchedule, CronExprSchedule, EverySchedule

# 2026-02-03T17:00:00Z
NOW = 1_770_138_000_000
HOUR = 60 * 60 * 1000
DAY = 24 * HOUR


class TestEvery:
    def test_never_run_is_due_immediately(self) -> None:
        assert next_due(EverySchedule(DAY), NOW, None) == NOW
        assert is_due(EverySchedule(DAY), NOW, None)

    def test_recent_run_waits_full_period(self) -> None:
        last = NOW - HOUR
        assert next_due(EverySchedule(DAY), NOW, last) == last + DAY
        assert not is_due(EverySchedule(DAY), NOW, last)

    def test_overdue_collapses_to_now(self) -> None:
        last = NOW - 5 * DAY
        assert next_due(EverySchedule(DAY), NOW, last) == NOW

    def test_exact_boundary_is_due(self) -> None:
        assert is_due(EverySchedule(DAY), NOW, NOW - DAY)


class TestAt:
    def test_future_timestamp(self) -> None:
        assert next_due(AtSchedule(NOW + HOUR), NOW, None) == NOW + HOUR

    def test_missed_one_shot_fires_now(self) -> None:
        assert next_due(AtSchedule(NOW - HOUR), NOW, None) == NOW

    def test_completed_one_shot_never_runs_again(self) -> None:
        assert next_due(AtSchedule(NOW - HOUR), NOW, NOW - HOUR) is None
        assert not is_due(AtSchedule(NOW - HOUR), NOW, NOW)

    def test_forced_run_before_target_does_not_consume(self) -> None:
        assert next_due(AtSchedule(NOW + HOUR), NOW, NOW - HOUR) == NOW + HOUR


class TestCron:
    def test_next_occurrence_after_anchor(self) -> None:
        schedule = CronExprSchedule("0 9 * * *")
        assert next_due(schedule, NOW, None, anchor_ms=NOW) == NOW + 16 * HOUR

    def test_timezone_is_honored(self) -> None:
        # Berlin is UTC+1 in February
        schedule = CronExprSchedule("0 9 * * *", "Europe/Berlin")
        assert next_due(schedule, NOW, None, anchor_ms=NOW) == NOW + 15 * HOUR

    def test_missed_occurrences_collapse_to_now(self) -> None:
        schedule = CronExprSchedule("0 * * * *")
        assert next_due(schedule, NOW, NOW - 3 * DAY) == NOW
        assert is_due(schedule, NOW, NOW - 3 * DAY)

    def test_without_anchor_uses_now(self) -> None:
        schedule = CronExprSchedule("30 17 * * *")
        assert next_due(schedule, NOW, None) == NOW + 30 * 60 * 1000


class TestValidate:
    def test_valid_schedules_pass(self) -> None:
        validate_schedule(EverySchedule(1))
        validate_schedule(AtSchedule(0))
        validate_schedule(CronExprSchedule("*/15 * * * *", "America/New_York"))

    def test_invalid_expression(self) -> None:
        with pytest.raises(ValueError, match="Invalid cron expression"):
            validate_schedule(CronExprSchedule("not a cron"))

    def test_unknown_timezone(self) -> None:
        with pytest.raises(ValueError, match="Unknown timezone"):
            validate_schedule(CronExprSchedule("0 9 * * *", "Mars/Olympus"))


@settings(deadline=None)
@given(
    every_ms=st.integers(min_value=1, max_value=30 * DAY),
    offset=st.integers(min_value=0, max_value=60 * DAY),
)
def test_every_next_due_is_never_in_the_past(every_ms: int, offset: int) -> None:
    last = NOW - offset
    due = next_due(EverySchedule(every_ms), NOW, last)
    assert due is not None
    assert due >= NOW
    assert is_due(EverySchedule(every_ms), NOW, last) == (last + every_ms <= NOW)
