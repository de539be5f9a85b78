"""Scheduled task protocols.

Timers are injected so that the connection manager never touches wall-clock
time directly.
"""

from typing import Awaitable, Callable, Protocol

__all__ = ["ScheduledTask", "Scheduler", "TimerCallback"]

TimerCallback = Callable[[], Awaitable[None]]


class ScheduledTask(Protocol):
    """Handle for a one-shot timer."""

    @property
    def delay(self) -> float:
        """Delay in seconds the task was armed with."""
        ...

    @property
    def fired(self) -> bool:
        """True once the callback has started."""
        ...

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        ...

    def cancel(self) -> None:
        """Cancel the task. Safe to call more than once."""
        ...


class Scheduler(Protocol):
    """Creates one-shot timers."""

    def call_later(self, delay: float, callback: TimerCallback) -> ScheduledTask:
        """Await ``callback()`` after ``delay`` seconds."""
        ...
