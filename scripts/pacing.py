"""Inter-call pacing policies for sequential API usage."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol

SleepFn = Callable[[float], None]

DEFAULT_PACING_DELAY_SECONDS = 0.1


class PacingPolicy(Protocol):
    """Decides how long to hold between two consecutive calls."""

    def wait(self, *, cancel_event: threading.Event | None = None) -> bool:
        """Block until the next call may be issued. Returns False when cancelled."""
        ...


class ConstantPacing:
    """Fixed, unconditional delay between calls."""

    def __init__(self, delay: float = DEFAULT_PACING_DELAY_SECONDS, *, sleep: SleepFn | None = None) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._sleep = sleep or time.sleep

    def wait(self, *, cancel_event: threading.Event | None = None) -> bool:
        if cancel_event is None:
            self._sleep(self.delay)
            return True
        # Event.wait returns True as soon as the event is set.
        return not cancel_event.wait(self.delay)
