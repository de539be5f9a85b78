"""Shared domain types."""

from macrolink.domain.types.connection import (
    ConnectionMethod,
    ConnectionState,
    ConnectOptions,
    ErrorCategory,
)

__all__ = [
    "ConnectionMethod",
    "ConnectionState",
    "ConnectOptions",
    "ErrorCategory",
]
