"""Connection-related domain types."""

from dataclasses import dataclass, field
from enum import Enum

__all__ = ["ConnectionState", "ErrorCategory", "ConnectionMethod", "ConnectOptions"]


class ConnectionState(Enum):
    """State of a device control session.

    ``disconnected`` is terminal only when reached through an explicit
    ``disconnect()``; after a dropped session it is a transient step on the
    way to ``reconnecting``.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    RECONNECTING = "reconnecting"
    READY = "ready"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ErrorCategory(str, Enum):
    """Classification of a connection failure."""

    AUTH = "auth"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    TLS = "tls"
    OTHER = "other"


class ConnectionMethod(str, Enum):
    """How the transport reaches the device."""

    WSS = "wss"
    SSH = "ssh"

    @property
    def protocol(self) -> str:
        """Protocol string handed to the session transport."""
        return f"{self.value}:"


@dataclass(frozen=True)
class ConnectOptions:
    """Arguments for ``SessionTransport.connect``."""

    host: str
    username: str
    password: str = field(repr=False)
    protocol: str = ConnectionMethod.WSS.protocol
