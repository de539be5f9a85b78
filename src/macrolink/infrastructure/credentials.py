"""In-memory credential storage."""

from typing import Mapping, Optional

from macrolink.logger import get_logger

logger = get_logger("credentials")


class InMemoryCredentialStore:
    """Simple in-memory password storage keyed by profile id."""

    def __init__(self, passwords: Optional[Mapping[str, str]] = None):
        self._passwords: dict[str, str] = dict(passwords or {})

    async def get_password(self, profile_id: str) -> Optional[str]:
        return self._passwords.get(profile_id)

    async def set_password(self, profile_id: str, password: str) -> None:
        logger.info(f"Storing password for {profile_id}")
        self._passwords[profile_id] = password
