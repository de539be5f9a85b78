"""Session transport protocols.

The transport owns wire framing and authentication against the device. The
connection manager only relies on the narrow surface described here.
"""

from typing import Any, Callable, Literal, Optional, Protocol

from macrolink.domain.types import ConnectOptions

__all__ = ["Session", "SessionTransport", "SessionEvent", "Detach"]

SessionEvent = Literal["ready", "error", "close"]

# Calling a Detach removes the handler it was returned for
Detach = Callable[[], None]


class Session(Protocol):
    """A live channel to the device command surface.

    A session may exist before the remote endpoint has finished its own
    initialization; it announces readiness through its ``ready`` event.
    """

    def on(self, event: SessionEvent, handler: Callable[..., None]) -> Detach:
        """Register a handler for a lifecycle event.

        ``ready`` and ``close`` handlers are called without arguments,
        ``error`` handlers receive the error.
        """
        ...

    def on_log(self, handler: Callable[[Any], None]) -> Detach:
        """Register a handler for device log events."""
        ...

    async def command(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[str] = None,
    ) -> Any:
        """Invoke a command such as ``Macros/Macro/Get`` and return its result."""
        ...

    async def get_status(self, path: str) -> Any:
        """Read a status value such as ``SystemUnit/ProductId``."""
        ...

    async def close(self) -> None:
        """Close the session."""
        ...


class SessionTransport(Protocol):
    """Factory for sessions."""

    async def connect(self, options: ConnectOptions) -> Session:
        """Open a session with the given credentials.

        Raises:
            Exception: Any transport failure (DNS, refused, TLS, auth, ...)
        """
        ...
