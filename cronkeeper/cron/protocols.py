"""Capability interfaces injected into the cron service.

Implementations may be plain or async; the service awaits whatever they return.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Protocol

from cronkeeper.cron.types import RunnerResult


class JobRunner(Protocol):
    """Executes a job payload outside the scheduler."""

    def run_job(
        self,
        session_target: str,
        wake_mode: str,
        payload: dict[str, Any],
    ) -> RunnerResult | dict[str, Any] | Awaitable[RunnerResult | dict[str, Any]]:
        """Run one payload and report ok/error."""


class EventSink(Protocol):
    """Delivers user-visible system events."""

    def enqueue(self, message: str, metadata: dict[str, Any]) -> None | Awaitable[None]:
        """Queue one event; the return value is ignored."""


class HeartbeatRequester(Protocol):
    """Asks the host application to wake up now."""

    def request_wake_now(self) -> None | Awaitable[None]:
        """Fire-and-forget wake request."""
