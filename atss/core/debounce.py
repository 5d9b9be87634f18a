"""Debouncer with a maximum wait — coalesces bursts of signals into one call."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol


class TimerLike(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], Any]], TimerLike]


def thread_timer(interval: float, function: Callable[[], Any]) -> TimerLike:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class Debouncer:
    """
    Call *func* once a burst of signals has been quiet for *wait* seconds.

    Two independent deadlines are kept per burst: the quiet timer, rescheduled
    on every signal, and the max-wait timer, armed by the first signal of the
    burst. Whichever expires first fires the call and cancels the other, so a
    continuous stream of signals still fires at least every *max_wait* seconds.
    Calls never overlap.
    """

    def __init__(
        self,
        func: Callable[[], Any],
        wait: float,
        max_wait: float | None = None,
        timer_factory: TimerFactory = thread_timer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if wait < 0:
            raise ValueError("wait must be non-negative")
        if max_wait is not None and max_wait < wait:
            raise ValueError("max_wait must not be shorter than wait")
        self._func = func
        self._wait = wait
        self._max_wait = max_wait
        self._timer_factory = timer_factory
        self._clock = clock

        self._lock = threading.Lock()
        self._call_lock = threading.Lock()
        self._quiet_timer: TimerLike | None = None
        self._max_timer: TimerLike | None = None
        self._generation = 0
        self._first_signal_at: float | None = None
        self._last_signal_at: float | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._first_signal_at is not None

    @property
    def first_signal_at(self) -> float | None:
        return self._first_signal_at

    @property
    def last_signal_at(self) -> float | None:
        return self._last_signal_at

    def __call__(self) -> None:
        """Signal the debouncer."""
        with self._lock:
            now = self._clock()
            generation = self._generation
            self._last_signal_at = now
            if self._first_signal_at is None:
                self._first_signal_at = now
                if self._max_wait is not None:
                    self._max_timer = self._start_timer(self._max_wait, generation)

            if self._quiet_timer is not None:
                self._quiet_timer.cancel()
            self._quiet_timer = self._start_timer(self._wait, generation)

    def _start_timer(self, interval: float, generation: int) -> TimerLike:
        timer = self._timer_factory(interval, lambda: self._fire(generation))
        timer.start()
        return timer

    def _reset(self) -> None:
        """End the current burst. Caller holds ``self._lock``."""
        for timer in (self._quiet_timer, self._max_timer):
            if timer is not None:
                timer.cancel()
        self._quiet_timer = None
        self._max_timer = None
        self._first_signal_at = None
        self._last_signal_at = None
        self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer from an earlier burst that raced its cancellation
            if generation != self._generation or self._first_signal_at is None:
                return
            self._reset()
        with self._call_lock:
            self._func()

    def cancel(self) -> None:
        """Drop any pending call."""
        with self._lock:
            self._reset()

    def flush(self) -> None:
        """Run a pending call now instead of waiting for its deadline."""
        with self._lock:
            if self._first_signal_at is None:
                return
            self._reset()
        with self._call_lock:
            self._func()
