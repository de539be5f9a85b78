"""Prompt protocol used by the interactive connect flow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from macrolink.application.config import DeviceProfile
    from macrolink.domain.exceptions import ConnectionFailure

__all__ = ["ConnectPrompt"]


class ConnectPrompt(Protocol):
    """Human-facing capability for recovering from a failed connect.

    Implementations may be a terminal, a dialog, or a scripted stub in tests.
    """

    async def ask_password(self, profile: DeviceProfile, failure: ConnectionFailure) -> Optional[str]:
        """Ask for a replacement password.

        Returns:
            The new password, or None if the user cancelled
        """
        ...

    async def ask_retry(self, profile: DeviceProfile, failure: ConnectionFailure) -> bool:
        """Offer to retry once with the same credentials.

        Returns:
            True to retry, False to abandon
        """
        ...

    async def notify_failure(self, profile: DeviceProfile, failure: ConnectionFailure) -> None:
        """Show a terminal failure."""
        ...
