"""Shared fixtures for cronkeeper tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from cronkeeper.config.manager import ConfigManager
from cronkeeper.cron import CronService, ManualClock, RunLog

# 2026-02-03T17:00:00Z
START_MS = 1_770_138_000_000
DAY_MS = 24 * 60 * 60 * 1000


class ScriptedRunner:
    """Job runner returning a configurable outcome and recording every call."""

    def __init__(self, outcome: Any = None) -> None:
        self.outcome = outcome if outcome is not None else {"status": "ok", "summary": "done"}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    async def run_job(self, session_target: str, wake_mode: str, payload: dict[str, Any]) -> Any:
        self.calls.append((session_target, wake_mode, payload))
        outcome = self.outcome
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome()
        return outcome


class RecordingSink:
    """Event sink that keeps every (message, metadata) pair."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def enqueue(self, message: str, metadata: dict[str, Any]) -> None:
        self.events.append((message, metadata))

    @property
    def alerts(self) -> list[str]:
        return [message for message, _ in self.events if message.startswith("Alert:")]


class RecordingHeartbeat:
    def __init__(self) -> None:
        self.requests = 0

    def request_wake_now(self) -> None:
        self.requests += 1


@pytest.fixture(autouse=True)
def _reset_config_manager():
    ConfigManager._reset_for_tests()
    yield
    ConfigManager._reset_for_tests()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_MS)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "cron" / "jobs.json"


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def heartbeat() -> RecordingHeartbeat:
    return RecordingHeartbeat()


@pytest_asyncio.fixture
async def service(
    store_path: Path,
    runner: ScriptedRunner,
    sink: RecordingSink,
    heartbeat: RecordingHeartbeat,
    clock: ManualClock,
):
    svc = CronService(
        store_path,
        runner=runner,
        event_sink=sink,
        heartbeat=heartbeat,
        clock=clock,
        run_log=RunLog(store_path.parent / "runs"),
    )
    yield svc
    await svc.stop()


def every_day_draft(name: str = "daily job", **overrides: Any) -> dict[str, Any]:
    draft: dict[str, Any] = {
        "name": name,
        "enabled": True,
        "schedule": {"kind": "every", "everyMs": DAY_MS},
        "sessionTarget": "isolated",
        "wakeMode": "now",
        "payload": {"kind": "agentTurn", "message": "ping", "deliver": False},
    }
    draft.update(overrides)
    return draft
