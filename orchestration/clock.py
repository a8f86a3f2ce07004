"""Wall clocks in epoch milliseconds."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    def now(self) -> int:
        return int(time.time() * 1000)


class FakeClock:
    """Manually advanced clock for tests and simulations."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, *, seconds: float = 0, ms: int = 0) -> int:
        self._now += int(seconds * 1000) + ms
        return self._now

    def set(self, now: int) -> None:
        self._now = now
