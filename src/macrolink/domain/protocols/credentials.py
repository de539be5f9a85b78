"""Credential store protocol."""

from typing import Optional, Protocol

__all__ = ["CredentialStore"]


class CredentialStore(Protocol):
    """Stores device passwords keyed by profile id."""

    async def get_password(self, profile_id: str) -> Optional[str]:
        ...

    async def set_password(self, profile_id: str, password: str) -> None:
        ...
