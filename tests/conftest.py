"""Shared test fixtures."""

from __future__ import annotations

from typing import Callable

import pytest


class FakeTimer:
    def __init__(self, clock: FakeClock, interval: float, function: Callable[[], object]) -> None:
        self.clock = clock
        self.interval = interval
        self.function = function
        self.deadline = 0.0
        self.cancelled = False

    def start(self) -> None:
        self.deadline = self.clock.now + self.interval
        self.clock.timers.append(self)

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Manually advanced clock that runs due timers in deadline order."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def __call__(self) -> float:
        return self.now

    def timer(self, interval: float, function: Callable[[], object]) -> FakeTimer:
        return FakeTimer(self, interval, function)

    def advance(self, seconds: float) -> None:
        end = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.deadline <= end]
            if not due:
                break
            timer = min(due, key=lambda t: t.deadline)
            self.timers.remove(timer)
            self.now = timer.deadline
            timer.function()
        self.now = end


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
