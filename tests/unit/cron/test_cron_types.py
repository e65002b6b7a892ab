"""Unit tests for cron job models and their stored form."""

from __future__ import annotations

import pytest

from cronkeeper.cron.types import (
    AtSchedule,
    CronExprSchedule,
    CronJob,
    CronJobDraft,
    CronJobState,
    EverySchedule,
    RunnerResult,
    schedule_from_dict,
    schedule_to_dict,
)


class TestSchedules:
    def test_every_rejects_non_positive_period(self) -> None:
        with pytest.raises(ValueError):
            EverySchedule(every_ms=0)
        with pytest.raises(ValueError):
            EverySchedule(every_ms=-5)

    def test_every_rejects_bool(self) -> None:
        with pytest.raises(ValueError):
            EverySchedule(every_ms=True)  # type: ignore[arg-type]

    def test_at_rejects_negative_timestamp(self) -> None:
        with pytest.raises(ValueError):
            AtSchedule(at_ms=-1)

    def test_cron_rejects_blank_expression(self) -> None:
        with pytest.raises(ValueError):
            CronExprSchedule(expr="  ")

    def test_from_dict_accepts_camel_and_snake_keys(self) -> None:
        assert schedule_from_dict({"kind": "every", "everyMs": 1000}) == EverySchedule(1000)
        assert schedule_from_dict({"kind": "every", "every_ms": 1000}) == EverySchedule(1000)
        assert schedule_from_dict({"kind": "AT", "atMs": 5}) == AtSchedule(5)
        assert schedule_from_dict({"kind": "cron", "expr": "0 9 * * *", "tz": "UTC"}) == CronExprSchedule(
            "0 9 * * *", "UTC"
        )

    def test_from_dict_rejects_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="Unsupported schedule kind"):
            schedule_from_dict({"kind": "hourly"})

    def test_from_dict_rejects_non_mapping(self) -> None:
        with pytest.raises(ValueError):
            schedule_from_dict("every day")

    def test_cron_without_tz_omits_key(self) -> None:
        assert schedule_to_dict(CronExprSchedule("*/5 * * * *")) == {"kind": "cron", "expr": "*/5 * * * *"}


class TestJobState:
    def test_fresh_state_only_serializes_counter(self) -> None:
        assert CronJobState().to_dict() == {"consecutiveFailures": 0}

    def test_state_round_trip_keeps_present_fields(self) -> None:
        state = CronJobState(
            consecutive_failures=4,
            last_failure_notification_at_ms=1000,
            last_run_at_ms=2000,
            last_status="error",
            last_error="boom",
            last_duration_ms=12,
        )
        data = state.to_dict()
        assert data == {
            "consecutiveFailures": 4,
            "lastFailureNotificationAtMs": 1000,
            "lastRunAtMs": 2000,
            "lastStatus": "error",
            "lastError": "boom",
            "lastDurationMs": 12,
        }
        assert CronJobState.from_dict(data) == state

    def test_missing_or_garbage_state_defaults(self) -> None:
        assert CronJobState.from_dict(None) == CronJobState()
        assert CronJobState.from_dict({"consecutiveFailures": -3}).consecutive_failures == 0

    def test_copy_is_independent(self) -> None:
        state = CronJobState(consecutive_failures=1)
        clone = state.copy()
        clone.consecutive_failures = 9
        assert state.consecutive_failures == 1


class TestCronJob:
    def test_to_dict_uses_camel_case_keys(self) -> None:
        job = CronJob(
            id="job-1",
            name="report",
            schedule=EverySchedule(60_000),
            payload={"kind": "agentTurn"},
            created_at_ms=10,
            updated_at_ms=20,
        )
        data = job.to_dict()
        assert data["sessionTarget"] == "isolated"
        assert data["wakeMode"] == "now"
        assert data["createdAtMs"] == 10
        assert data["updatedAtMs"] == 20
        assert data["schedule"] == {"kind": "every", "everyMs": 60_000}
        assert "description" not in data

    def test_from_dict_ignores_unknown_keys(self) -> None:
        job = CronJob.from_dict(
            {
                "id": "job-2",
                "name": "x",
                "schedule": {"kind": "every", "everyMs": 5},
                "deleteAfterRun": True,
                "state": {"consecutiveFailures": 2, "futureField": 1},
            }
        )
        assert job.id == "job-2"
        assert job.state.consecutive_failures == 2
        assert job.payload == {}

    def test_from_dict_requires_id(self) -> None:
        with pytest.raises(ValueError, match="missing an id"):
            CronJob.from_dict({"name": "x", "schedule": {"kind": "every", "everyMs": 5}})

    @pytest.mark.parametrize("enabled", ["false", 0, 1, None])
    def test_from_dict_rejects_non_bool_enabled(self, enabled: object) -> None:
        record = {"id": "job-3", "name": "x", "schedule": {"kind": "every", "everyMs": 5}, "enabled": enabled}
        with pytest.raises(ValueError, match="enabled must be a boolean"):
            CronJob.from_dict(record)


class TestDraft:
    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="name"):
            CronJobDraft(name=" ", schedule=EverySchedule(1))

    def test_schedule_mapping_is_converted(self) -> None:
        draft = CronJobDraft(name="a", schedule={"kind": "at", "atMs": 7})  # type: ignore[arg-type]
        assert draft.schedule == AtSchedule(7)

    def test_non_bool_enabled_rejected(self) -> None:
        with pytest.raises(ValueError, match="enabled"):
            CronJobDraft(name="a", schedule=EverySchedule(1), enabled="no")  # type: ignore[arg-type]
        with pytest.raises(ValueError, match="enabled"):
            CronJobDraft.from_dict({"name": "a", "schedule": {"kind": "every", "everyMs": 1}, "enabled": 1})

    def test_build_assigns_unique_ids_and_fresh_state(self) -> None:
        draft = CronJobDraft.from_dict(
            {"name": " nightly ", "schedule": {"kind": "every", "everyMs": 10}, "wakeMode": "next-heartbeat"}
        )
        first = draft.build(100)
        second = draft.build(100)
        assert first.id != second.id
        assert first.name == "nightly"
        assert first.wake_mode == "next-heartbeat"
        assert first.created_at_ms == first.updated_at_ms == 100
        assert first.state == CronJobState()


def test_runner_result_ok_flag() -> None:
    assert RunnerResult(status="ok").ok is True
    assert RunnerResult(status="error", error="x").ok is False
