"""Time sources for the cron service."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Epoch-millisecond time source."""

    def now_ms(self) -> int:
        """Return the current time in epoch milliseconds."""


class SystemClock:
    """Wall clock backed by time.time()."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Controllable clock for tests and replays."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now_ms = int(start_ms)

    def now_ms(self) -> int:
        return self._now_ms

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError("clock cannot move backwards")
        self._now_ms += int(delta_ms)
        return self._now_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = int(now_ms)
