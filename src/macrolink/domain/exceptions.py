"""Domain exceptions."""

from typing import Optional

from macrolink.domain.types import ErrorCategory

__all__ = [
    "MacrolinkError",
    "TransportFailure",
    "ConnectionFailure",
    "NotConnectedError",
]


class MacrolinkError(Exception):
    """Base class for all macrolink errors."""


class TransportFailure(MacrolinkError):
    """Raw failure reported by (or synthesized around) the session transport.

    Attributes:
        code: Optional machine error code such as ``ETIMEDOUT``
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ConnectionFailure(MacrolinkError):
    """Classified connection failure surfaced by the interactive connect flow."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        guidance: Optional[str] = None,
    ):
        super().__init__(message)
        self.category = category
        self.message = message
        self.guidance = guidance

    def __str__(self) -> str:
        if self.guidance:
            return f"{self.message} ({self.guidance})"
        return self.message


class NotConnectedError(MacrolinkError):
    """Raised when a command is issued while the session is not ready."""
