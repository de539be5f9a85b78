"""Listener registry for fire-and-forget notifications.

The connection manager keeps one registry per notification kind (state
changes, device logs, debug traces). Subscribers get back a callable that
removes exactly their registration.

Listener Contract:
    Listeners MUST be synchronous (non-async) functions. This is enforced
    at registration time. Listeners run inside the triggering event loop
    turn, so they should schedule slow work with asyncio.create_task()
    rather than doing it inline.
"""

import inspect
import itertools
from typing import Callable, Generic, TypeVar

from macrolink.logger import get_logger

logger = get_logger("events.registry")

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class ListenerRegistry(Generic[T]):
    """Registry of synchronous listeners keyed by subscription handle.

    Example:
        ```python
        states = ListenerRegistry[ConnectionState]("state")
        off = states.add(lambda state: print(state.value))
        states.emit(ConnectionState.READY)
        off()
        ```

    Thread safety:
        This implementation is NOT thread-safe. It assumes all operations
        happen within the same async event loop.
    """

    def __init__(self, name: str = "listeners"):
        self._name = name
        self._listeners: dict[int, Callable[[T], None]] = {}
        """Registered listeners by subscription handle."""
        self._handles = itertools.count(1)

    def add(self, listener: Callable[[T], None]) -> Unsubscribe:
        """
        Register a listener.

        Args:
            listener: Callback invoked with each emitted value. MUST be synchronous.

        Returns:
            Callable that removes this registration. Calling it twice is a no-op.

        Raises:
            TypeError: If listener is an async function (coroutine function)
        """
        if inspect.iscoroutinefunction(listener):
            raise TypeError(
                f"Listeners must be synchronous functions. "
                f"Listener {getattr(listener, '__name__', listener)!r} is a coroutine function. "
                f"To perform async work, schedule it using asyncio.create_task() instead."
            )

        handle = next(self._handles)
        self._listeners[handle] = listener
        logger.debug(f"Added {self._name} listener #{handle}")

        def unsubscribe() -> None:
            if self._listeners.pop(handle, None) is not None:
                logger.debug(f"Removed {self._name} listener #{handle}")

        return unsubscribe

    def emit(self, value: T) -> None:
        """
        Deliver a value to every listener.

        Listeners are called synchronously in registration order. An exception
        raised by one listener is logged and does not prevent the others (or
        later emits) from running.
        """
        # Snapshot so listeners may unsubscribe while being notified
        for handle, listener in list(self._listeners.items()):
            try:
                listener(value)
            except Exception as e:
                logger.error(f"Error in {self._name} listener #{handle}: {e}")

    def clear(self) -> None:
        """Remove all listeners."""
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
