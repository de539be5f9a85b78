"""Reconnection scheduling for device sessions."""

from typing import Optional

from macrolink.domain.protocols import ScheduledTask, Scheduler, TimerCallback
from macrolink.logger import get_logger

logger = get_logger("connection.reconnect")


class ExponentialBackoff:
    """Exponential backoff delay policy."""

    def __init__(
        self,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        multiplier: float = 2.0,
    ):
        """
        Initialize exponential backoff.

        Args:
            initial_delay: Delay before the first attempt, in seconds
            max_delay: Upper bound for any delay, in seconds
            multiplier: Growth factor between consecutive attempts
        """
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._multiplier = multiplier

    @property
    def max_delay(self) -> float:
        return self._max_delay

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for the given attempt number.

        Args:
            attempt: Current attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        if attempt <= 0:
            return self._initial_delay

        delay = self._initial_delay * (self._multiplier ** (attempt - 1))
        return min(delay, self._max_delay)


class ReconnectScheduler:
    """Owns the reconnect timer, the attempt counter and the in-flight guard.

    Several independent triggers (transport ``close``, transport ``error``,
    a failed health probe) can report the same drop. ``schedule()`` arms at
    most one timer until the timer is cancelled, completed, or reset. There is
    no attempt limit: the loop runs until ``cancel()`` or ``reset()``.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_fire: TimerCallback,
        backoff: Optional[ExponentialBackoff] = None,
    ):
        """
        Args:
            scheduler: Timer factory
            on_fire: Coroutine function run when the timer expires
            backoff: Delay policy (defaults to 1s doubling up to 30s)
        """
        self._scheduler = scheduler
        self._on_fire = on_fire
        self._backoff = backoff or ExponentialBackoff()
        self._attempts = 0
        self._scheduled = False
        self._timer: Optional[ScheduledTask] = None

    @property
    def attempts(self) -> int:
        """Consecutive failed attempts since the last successful session."""
        return self._attempts

    @property
    def is_scheduled(self) -> bool:
        return self._scheduled

    @property
    def timer(self) -> Optional[ScheduledTask]:
        return self._timer

    @property
    def next_delay(self) -> Optional[float]:
        """Delay of the armed timer, if any."""
        return self._timer.delay if self._timer is not None else None

    def schedule(self) -> bool:
        """
        Arm the reconnect timer unless one is already scheduled.

        Returns:
            True if a timer was armed, False if the call was deduplicated
        """
        if self._scheduled:
            logger.debug("Reconnect already scheduled, ignoring trigger")
            return False
        self._arm()
        return True

    def rearm(self) -> None:
        """Arm the next backoff step after a failed attempt, bypassing the dedupe guard."""
        if self._timer is not None and not self._timer.fired:
            self._timer.cancel()
        self._arm()

    def cancel(self) -> None:
        """Cancel the armed timer (if any) and clear the guard."""
        if self._timer is not None:
            self._timer.cancel()
            logger.debug("Reconnect timer cancelled")
        self._timer = None
        self._scheduled = False

    def complete(self) -> None:
        """Release the timer after its attempt got a session, without cancelling it."""
        self._timer = None
        self._scheduled = False

    def reset(self) -> None:
        """Forget all attempts, e.g. after the session became ready."""
        self.cancel()
        self._attempts = 0

    def _arm(self) -> None:
        self._attempts += 1
        delay = self._backoff.calculate_delay(self._attempts)
        self._scheduled = True
        self._timer = self._scheduler.call_later(delay, self._on_fire)
        logger.info(f"Reconnect attempt {self._attempts} scheduled in {delay:.1f}s")
