"""Scheduler implementations for one-shot timers.

``AsyncioScheduler`` is what runs in production. ``VirtualScheduler`` keeps a
virtual clock that only moves when ``advance()`` is awaited, which lets tests
walk through backoff sequences without sleeping.
"""

import asyncio
import itertools
from typing import Optional

from macrolink.domain.protocols import TimerCallback
from macrolink.logger import get_logger

logger = get_logger("scheduling")


class AsyncioScheduledTask:
    """One-shot timer backed by an asyncio task.

    The task sleeps for ``delay`` seconds and then awaits the callback, so
    cancelling before the callback has finished also cancels the callback.
    """

    def __init__(self, delay: float, callback: TimerCallback):
        self._delay = delay
        self._callback = callback
        self._fired = False
        self._cancelled = False
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def task(self) -> asyncio.Task:
        return self._task

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A callback cancelling its own timer only marks it; the callback runs to completion
        if self._task is not current:
            self._task.cancel()

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        if self._cancelled:
            return
        self._fired = True
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled callback failed: {e}")


class AsyncioScheduler:
    """Scheduler that arms timers on the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: TimerCallback) -> AsyncioScheduledTask:
        scheduled = AsyncioScheduledTask(delay, callback)
        # Hold a strong reference until the task finishes
        self._tasks.add(scheduled.task)
        scheduled.task.add_done_callback(self._tasks.discard)
        return scheduled


class VirtualScheduledTask:
    """One-shot timer on a ``VirtualScheduler`` clock."""

    def __init__(self, delay: float, due: float, seq: int, callback: TimerCallback):
        self._delay = delay
        self.due = due
        self.seq = seq
        self._callback = callback
        self._fired = False
        self._cancelled = False

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_pending(self) -> bool:
        return not self._fired and not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    async def fire(self) -> None:
        self._fired = True
        try:
            await self._callback()
        except Exception as e:
            logger.error(f"Scheduled callback failed: {e}")

    def __repr__(self) -> str:
        return f"VirtualScheduledTask(delay={self._delay}, due={self.due}, fired={self._fired}, cancelled={self._cancelled})"


class VirtualScheduler:
    """Deterministic scheduler with a manually advanced clock.

    Example:
        ```python
        scheduler = VirtualScheduler()
        manager = ConnectionManager(..., scheduler=scheduler)
        ...
        assert [t.delay for t in scheduler.pending] == [1.0]
        await scheduler.advance(1.0)  # fires the reconnect attempt
        ```
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = itertools.count()
        self._tasks: list[VirtualScheduledTask] = []
        self.history: list[VirtualScheduledTask] = []
        """Every task ever armed, in arming order."""

    @property
    def now(self) -> float:
        """Current virtual time in seconds."""
        return self._now

    @property
    def pending(self) -> list[VirtualScheduledTask]:
        """Armed tasks that have neither fired nor been cancelled, in firing order."""
        self._tasks = [t for t in self._tasks if t.is_pending]
        return sorted(self._tasks, key=lambda t: (t.due, t.seq))

    def call_later(self, delay: float, callback: TimerCallback) -> VirtualScheduledTask:
        task = VirtualScheduledTask(delay, self._now + delay, next(self._seq), callback)
        self._tasks.append(task)
        self.history.append(task)
        return task

    def next_task(self) -> Optional[VirtualScheduledTask]:
        pending = self.pending
        return pending[0] if pending else None

    async def advance(self, seconds: float) -> None:
        """
        Move the clock forward, firing every task that falls due.

        Tasks armed by a callback during the advance fire too when their due
        time is inside the window.
        """
        target = self._now + seconds
        while True:
            task = self.next_task()
            if task is None or task.due > target:
                break
            self._now = task.due
            await task.fire()
        self._now = target

    async def run_next(self) -> bool:
        """
        Jump to the next pending task and fire it.

        Returns:
            False when nothing was pending
        """
        task = self.next_task()
        if task is None:
            return False
        self._now = max(self._now, task.due)
        await task.fire()
        return True
