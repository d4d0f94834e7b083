"""Injectable, cancellable clocks for the install wait loop."""

from __future__ import annotations

import threading
import time

from .errors import ProvisionCancelled


class Clock:
    """Monotonic time source whose sleeps can be interrupted."""

    def monotonic(self) -> float:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    def __init__(self, cancel: threading.Event | None = None):
        self.cancel = cancel or threading.Event()

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            return
        if self.cancel.wait(seconds):
            raise ProvisionCancelled('Cancelled while waiting')


class FakeClock(Clock):
    """Simulated time: ``sleep`` advances ``now`` instantly and is recorded."""

    def __init__(self, start: float = 0.0):
        self.now = float(start)
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
