"""Failure escalation: threshold crossing plus time-based throttling.

The policy is a pure function of counters and timestamps. The caller owns the
clock and records the notification time whenever an alert is actually sent.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_THROTTLE_WINDOW_MS = 60 * 60 * 1000


@dataclass(frozen=True, slots=True)
class EscalationDecision:
    """Whether to alert now, and the rendered alert text when so."""

    should_alert: bool
    message: str | None = None


def build_alert_message(job_name: str, consecutive_failures: int, last_error: str | None) -> str:
    return (
        f'Alert: Cron job "{job_name}" failed {consecutive_failures} times in a row. '
        f"Last error: {last_error or 'unknown error'}"
    )


@dataclass(frozen=True, slots=True)
class FailureEscalationPolicy:
    """Alert on the run that crosses `threshold`, then at most once per window."""

    threshold: int = DEFAULT_FAILURE_THRESHOLD
    throttle_window_ms: int = DEFAULT_THROTTLE_WINDOW_MS

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError("threshold must be >= 1")
        if self.throttle_window_ms < 0:
            raise ValueError("throttle_window_ms must be >= 0")

    def should_alert(
        self,
        previous_failures: int,
        new_failures: int,
        last_notified_at_ms: int | None,
        now_ms: int,
    ) -> bool:
        if new_failures < self.threshold:
            return False
        if previous_failures < self.threshold:
            return True
        if last_notified_at_ms is None:
            return True
        return now_ms - last_notified_at_ms >= self.throttle_window_ms

    def evaluate(
        self,
        previous_failures: int,
        new_failures: int,
        last_notified_at_ms: int | None,
        now_ms: int,
        *,
        job_name: str,
        last_error: str | None,
    ) -> EscalationDecision:
        if not self.should_alert(previous_failures, new_failures, last_notified_at_ms, now_ms):
            return EscalationDecision(should_alert=False)
        return EscalationDecision(
            should_alert=True,
            message=build_alert_message(job_name, new_failures, last_error),
        )
