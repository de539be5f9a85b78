"""Connection error classification.

Maps an opaque connection failure onto an ``ErrorCategory`` so that the
interactive connect flow can pick a recovery policy. Checks run in a fixed
priority order (auth, unreachable, timeout, tls) and the first match wins,
so a composite message such as "401 unauthorized ... timed out" is ``auth``.
"""

from __future__ import annotations

import asyncio
import errno
import socket
import ssl
from collections.abc import Mapping
from typing import Any, Optional

from macrolink.domain.types import ErrorCategory

__all__ = ["classify", "describe", "error_code", "error_message"]

AUTH_WORDS = ("auth", "unauthorized", "forbidden", "login", "password", "401", "403")

UNREACHABLE_CODES = frozenset(
    {"ENOTFOUND", "EAI_AGAIN", "EAI_NONAME", "ECONNREFUSED", "EHOSTUNREACH", "ENETUNREACH"}
)
UNREACHABLE_WORDS = (
    "getaddrinfo",
    "name or service not known",
    "nodename nor servname",
    "refused",
    "unreachable",
)

TIMEOUT_CODES = frozenset({"ETIMEDOUT"})
TIMEOUT_WORDS = ("timed out", "timeout")

TLS_CODES = frozenset(
    {
        "CERT_HAS_EXPIRED",
        "DEPTH_ZERO_SELF_SIGNED_CERT",
        "UNABLE_TO_VERIFY_LEAF_SIGNATURE",
        "SELF_SIGNED_CERT_IN_CHAIN",
        "CERTIFICATE_VERIFY_FAILED",
    }
)
TLS_WORDS = ("ssl", "tls", "certificate", "self signed")


def _field(err: Any, name: str) -> Any:
    if isinstance(err, Mapping):
        return err.get(name)
    return getattr(err, name, None)


def _code_of(err: Any) -> Optional[str]:
    for name in ("code", "reason", "errno"):
        value = _field(err, name)
        if value is None or value == "":
            continue
        if isinstance(value, int):
            # socket.gaierror carries negative EAI_* numbers that errorcode does not know
            value = errno.errorcode.get(value)
            if value is None:
                continue
        return str(value).upper()
    return None


def error_code(err: Any) -> str:
    """Upper-cased machine error code of a failure, or "" when there is none."""
    code = _code_of(err)
    if code is None:
        cause = _field(err, "cause") if isinstance(err, Mapping) else getattr(err, "__cause__", None)
        if cause is not None:
            code = _code_of(cause)
    return code or ""


def error_message(err: Any) -> str:
    """Lower-cased human message of a failure."""
    if isinstance(err, Mapping):
        return str(err.get("message") or "").lower()
    if err is None:
        return ""
    message = getattr(err, "message", None)
    if not isinstance(message, str) or not message:
        message = str(err)
    return message.lower()


def _category_from_type(err: Any) -> Optional[ErrorCategory]:
    if isinstance(err, ssl.SSLCertVerificationError):
        return ErrorCategory.TLS
    if isinstance(err, (socket.gaierror, ConnectionRefusedError)):
        return ErrorCategory.UNREACHABLE
    if isinstance(err, (TimeoutError, asyncio.TimeoutError)):
        return ErrorCategory.TIMEOUT
    return None


def classify(err: Any) -> ErrorCategory:
    """
    Classify a connection failure.

    Args:
        err: An exception, or a mapping with ``message`` and/or ``code`` keys
            (some transports report failures as plain payloads)

    Returns:
        The first matching category in priority order, ``OTHER`` if none match
    """
    message = error_message(err)
    code = error_code(err)

    if any(word in message for word in AUTH_WORDS):
        return ErrorCategory.AUTH

    if code in UNREACHABLE_CODES or any(word in message for word in UNREACHABLE_WORDS):
        return ErrorCategory.UNREACHABLE

    if code in TIMEOUT_CODES or any(word in message for word in TIMEOUT_WORDS):
        return ErrorCategory.TIMEOUT

    if code in TLS_CODES or any(word in message for word in TLS_WORDS):
        return ErrorCategory.TLS

    by_type = _category_from_type(err)
    if by_type is not None:
        return by_type
    return ErrorCategory.OTHER


def describe(category: ErrorCategory, host: str, username: str = "") -> str:
    """Return the guidance shown to a human for a failure category."""
    if category is ErrorCategory.AUTH:
        who = f"{username}@{host}" if username else host
        return f"Authentication failed for {who}. Update your password and try again."
    if category is ErrorCategory.TLS:
        return (
            f"TLS certificate error connecting to {host}. "
            "Ensure the device has a valid certificate trusted by your system."
        )
    if category in (ErrorCategory.UNREACHABLE, ErrorCategory.TIMEOUT):
        return f"Cannot reach {host}. Check hostname/IP, network/VPN, and firewall."
    return f"Failed to connect to {host}."
