"""Opt-in reconnect policy: capped exponential backoff driven by one-shot timers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    type TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


@dataclass
class Backoff:
    """Capped exponential delay between reconnect attempts."""

    initial: float = 1.0
    maximum: float = 30.0
    factor: float = 2.0
    _attempt: int = field(default=0, init=False, repr=False)

    def next_delay(self) -> float:
        delay = min(self.initial * self.factor**self._attempt, self.maximum)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0


class ReconnectTimer:
    """Holds at most one pending retry timer.

    Not thread-safe on its own; the session manager calls it under its lock.
    """

    backoff: Backoff

    _timer_factory: TimerFactory
    _timer: threading.Timer | None

    def __init__(self, backoff: Backoff, *, timer_factory: TimerFactory = threading.Timer) -> None:
        self.backoff = backoff
        self._timer_factory = timer_factory
        self._timer = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self, callback: Callable[[], None]) -> float:
        """Start a timer for the next backoff delay and return that delay."""

        delay = self.backoff.next_delay()
        timer = self._timer_factory(delay, callback)
        timer.daemon = True
        self._timer = timer
        timer.start()
        return delay

    def fired(self) -> None:
        self._timer = None

    def cancel(self) -> bool:
        """Cancel the pending timer. Returns True if one was pending."""

        timer, self._timer = self._timer, None
        if timer is None:
            return False

        timer.cancel()
        return True
