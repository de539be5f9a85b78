"""Device profile and connection settings configuration.

Parses JSON configuration files such as:

    {
      "active_profile_id": "10.0.0.5|admin",
      "profiles": [
        {"label": "Lab codec", "host": "10.0.0.5", "username": "admin"}
      ],
      "settings": {"health_check_interval": 5.0}
    }

Passwords are never part of this file; they live in a ``CredentialStore``.
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from macrolink.domain.types import ConnectionMethod
from macrolink.logger import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_FILE = "macrolink_profiles.json"
CONFIG_ENV_VAR = "MACROLINK_CONFIG"


class ConnectionSettings(BaseModel):
    """Timing policy for connection management (all values in seconds)."""

    model_config = ConfigDict(frozen=True)

    reconnect_initial_delay: float = Field(1.0, gt=0, description="Delay before the first reconnect attempt")
    reconnect_max_delay: float = Field(30.0, gt=0, description="Cap for the reconnect backoff")
    reconnect_multiplier: float = Field(2.0, ge=1, description="Backoff growth factor")
    health_check_interval: float = Field(5.0, gt=0, description="Seconds between health probes")
    health_check_timeout: float = Field(5.0, gt=0, description="Timeout for one health probe")
    health_check_path: str = Field("SystemUnit/ProductId", description="Status value read by the probe")
    connect_timeout: float = Field(10.0, gt=0, description="Bound on one connect attempt and its ready signal")
    verify_timeout: float = Field(5.0, gt=0, description="Interactive credential verification timeout")


class DeviceProfile(BaseModel):
    """A device the user can connect to."""

    model_config = ConfigDict(frozen=True)

    label: str = Field("", description="Display name")
    host: str = Field(..., min_length=1, description="Hostname or IP address")
    username: str = Field(..., min_length=1, description="Login name")
    connection_method: ConnectionMethod = Field(ConnectionMethod.WSS, description="Transport flavour")

    @field_validator("connection_method", mode="before")
    @classmethod
    def _coerce_method(cls, value: object) -> ConnectionMethod:
        # Older profiles lack the field or carry unknown values; only "ssh" is kept as-is
        if isinstance(value, ConnectionMethod):
            return value
        return ConnectionMethod.SSH if str(value).lower() == "ssh" else ConnectionMethod.WSS

    @property
    def id(self) -> str:
        """Stable identifier derived from host and username."""
        return f"{self.host}|{self.username}"

    @property
    def display_name(self) -> str:
        return self.label or self.host


class ProfilesConfig(BaseModel):
    """Configuration containing device profiles and connection settings."""

    model_config = ConfigDict(frozen=True)

    profiles: list[DeviceProfile] = Field(default_factory=list, description="Known devices")
    active_profile_id: Optional[str] = Field(None, description="Profile used when none is requested")
    settings: ConnectionSettings = Field(default_factory=ConnectionSettings)

    def get(self, profile_id: str) -> Optional[DeviceProfile]:
        """
        Find a profile by id, label or host.

        Returns:
            The matching profile, or None
        """
        for profile in self.profiles:
            if profile_id in (profile.id, profile.label, profile.host):
                return profile
        return None

    def active(self) -> Optional[DeviceProfile]:
        """Return the active profile, falling back to the first one."""
        if self.active_profile_id:
            profile = self.get(self.active_profile_id)
            if profile is not None:
                return profile
        return self.profiles[0] if self.profiles else None


def load_profiles(config_path: Optional[str | Path] = None) -> ProfilesConfig:
    """
    Load device profiles from a JSON file.

    Args:
        config_path: Path to the JSON configuration file. If None, uses
            $MACROLINK_CONFIG or 'macrolink_profiles.json' in the working directory.

    Returns:
        ProfilesConfig: Parsed configuration object

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        json.JSONDecodeError: If the JSON file is invalid
        ValidationError: If the configuration structure is invalid
    """
    if config_path is None:
        config_path = os.getenv(CONFIG_ENV_VAR) or Path.cwd() / DEFAULT_CONFIG_FILE

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Profiles file not found: {path}")

    logger.info(f"Loading profiles from {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    try:
        config = ProfilesConfig.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Invalid profiles configuration in {path}: {e}")
        raise

    logger.info(f"Loaded {len(config.profiles)} profile(s)")
    return config
