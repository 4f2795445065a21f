"""Monotonic deadlines with cooperative cancellation."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional


class Clock:
    """Wall-clock source used by every polling loop."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        """Sleeps up to ``seconds``. Returns ``False`` when woken by ``cancel``."""

        if seconds <= 0:
            return not (cancel is not None and cancel.is_set())
        if cancel is None:
            time.sleep(seconds)
            return True
        return not cancel.wait(seconds)


SYSTEM_CLOCK = Clock()


class AnyEvent:
    """Read-only view that is set as soon as any of its events is set."""

    WAIT_SLICE = 0.05

    def __init__(self, *events: Optional[threading.Event]) -> None:
        self.events = [event for event in events if event is not None]

    def is_set(self) -> bool:
        return any(event.is_set() for event in self.events)

    def wait(self, timeout: float) -> bool:
        end = time.monotonic() + timeout
        while not self.is_set():
            left = end - time.monotonic()
            if left <= 0:
                return False
            if self.events:
                self.events[0].wait(min(left, self.WAIT_SLICE))
            else:
                time.sleep(min(left, self.WAIT_SLICE))
        return True


@dataclass(frozen=True)
class Deadline:
    """A point in time after which work must stop, optionally cancellable."""

    clock: Clock
    expires_at: float
    cancel: Optional[threading.Event] = None

    @classmethod
    def after(
        cls,
        seconds: float,
        *,
        clock: Optional[Clock] = None,
        cancel: Optional[threading.Event] = None,
    ) -> "Deadline":
        source = clock or SYSTEM_CLOCK
        return cls(clock=source, expires_at=source.now() + max(0.0, seconds), cancel=cancel)

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    @property
    def expired(self) -> bool:
        return self.cancelled or self.remaining() <= 0

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock.now())

    def child(self, seconds: float) -> "Deadline":
        """Returns a deadline no later than this one, sharing the cancellation."""

        limit = min(self.expires_at, self.clock.now() + max(0.0, seconds))
        return Deadline(clock=self.clock, expires_at=limit, cancel=self.cancel)

    def sleep(self, seconds: float) -> bool:
        """Sleeps without overrunning the deadline. ``False`` if no time is left."""

        if self.cancelled:
            return False
        budget = min(seconds, self.remaining())
        if budget <= 0:
            return False
        if not self.clock.sleep(budget, self.cancel):
            return False
        return not self.expired
