"""Unit tests for configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cronkeeper.config.models import CronkeeperConfig


def test_defaults_match_escalation_policy() -> None:
    cfg = CronkeeperConfig.model_validate({})
    assert cfg.cron.enabled is True
    assert cfg.cron.store_path == "~/.cronkeeper/cron/jobs.json"
    assert cfg.alerts.failure_threshold == 3
    assert cfg.alerts.throttle_window_ms == 3_600_000
    assert cfg.run_log.keep_lines == 200
    assert cfg.logging.level == "INFO"


def test_nested_values_are_validated() -> None:
    cfg = CronkeeperConfig.model_validate({"alerts": {"failure_threshold": 5}, "cron": {"max_tick_seconds": 10}})
    assert cfg.alerts.failure_threshold == 5
    assert cfg.cron.max_tick_seconds == 10.0


@pytest.mark.parametrize(
    "data",
    [
        {"alerts": {"failure_threshold": 0}},
        {"alerts": {"throttle_window_ms": -1}},
        {"cron": {"min_tick_seconds": 0}},
        {"run_log": {"keep_lines": 0}},
    ],
)
def test_out_of_range_values_rejected(data: dict) -> None:
    with pytest.raises(ValidationError):
        CronkeeperConfig.model_validate(data)


def test_unknown_sections_are_ignored() -> None:
    cfg = CronkeeperConfig.model_validate({"agent": {"anything": 1}})
    assert not hasattr(cfg, "agent")
