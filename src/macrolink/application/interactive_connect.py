"""Interactive connect flow with user-mediated recovery.

Used for the first connection to a device and for explicit profile
switches, when a human is around to fix credentials or decide whether to
retry. Unlike the background reconnect loop of ``ConnectionManager`` this
flow is bounded: at most one extra attempt, then a terminal
``ConnectionFailure``.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from macrolink.application.config import ConnectionSettings, DeviceProfile
from macrolink.application.connection_manager import ConnectionManager
from macrolink.application.error_classifier import classify, describe
from macrolink.domain.exceptions import ConnectionFailure, TransportFailure
from macrolink.domain.protocols import ConnectPrompt, CredentialStore, Scheduler, SessionTransport
from macrolink.domain.types import ErrorCategory
from macrolink.logger import get_logger

logger = get_logger("interactive_connect")

T = TypeVar("T")

ManagerFactory = Callable[[DeviceProfile, str], ConnectionManager]

_RETRYABLE = frozenset({ErrorCategory.TLS, ErrorCategory.UNREACHABLE, ErrorCategory.TIMEOUT})


class InteractiveConnectOrchestrator:
    """
    Connects a profile and walks the user through recovery on failure.

    Policy per failure category:
    - auth: ask for a new password, store it, retry once with a fresh manager
    - tls / unreachable / timeout: offer one retry with the same credentials
    - other: report and give up
    """

    def __init__(
        self,
        transport: SessionTransport,
        credentials: CredentialStore,
        prompt: ConnectPrompt,
        *,
        settings: Optional[ConnectionSettings] = None,
        scheduler: Optional[Scheduler] = None,
        manager_factory: Optional[ManagerFactory] = None,
    ):
        """
        Args:
            transport: Session factory handed to every manager built here
            credentials: Password storage; updated when the user supplies a new password
            prompt: Human-facing recovery capability
            settings: Timing policy (connect/verify timeouts and manager settings)
            scheduler: Timer factory for managers built here
            manager_factory: Overrides how managers are constructed
        """
        self._transport = transport
        self._credentials = credentials
        self._prompt = prompt
        self._settings = settings or ConnectionSettings()
        self._scheduler = scheduler
        self._manager_factory = manager_factory or self._default_manager

    def _default_manager(self, profile: DeviceProfile, password: str) -> ConnectionManager:
        return ConnectionManager(
            profile.host,
            profile.username,
            password,
            profile.connection_method,
            transport=self._transport,
            scheduler=self._scheduler,
            settings=self._settings,
        )

    async def connect(
        self,
        profile: DeviceProfile,
        manager: Optional[ConnectionManager] = None,
    ) -> ConnectionManager:
        """
        Connect to a profile, recovering interactively from failures.

        Args:
            profile: Device to connect to
            manager: Existing manager for this profile; built from stored credentials if None

        Returns:
            A ready ConnectionManager. Callers rebind their consumers to it.

        Raises:
            ConnectionFailure: When the connection could not be established
        """
        if manager is None:
            password = await self._credentials.get_password(profile.id) or ""
            manager = self._manager_factory(profile, password)

        logger.info(f"Connecting to {profile.host} as {profile.username}")
        try:
            await self._attempt(manager)
            logger.info(f"Connected to {profile.host}")
            return manager
        except Exception as err:
            error = err

        category = classify(error)
        failure = self._failure(category, profile, error)
        logger.warning(f"Connection to {profile.host} failed ({category.value}): {error!r}")

        if category is ErrorCategory.AUTH:
            return await self._recover_auth(profile, failure, error)
        if category in _RETRYABLE:
            return await self._offer_retry(profile, manager, failure, error)

        await self._prompt.notify_failure(profile, failure)
        raise failure from error

    async def _recover_auth(
        self,
        profile: DeviceProfile,
        failure: ConnectionFailure,
        error: Exception,
    ) -> ConnectionManager:
        new_password = await self._prompt.ask_password(profile, failure)
        if new_password is None:
            logger.info("Password prompt cancelled")
            await self._prompt.notify_failure(profile, failure)
            raise failure from error

        await self._credentials.set_password(profile.id, new_password)
        stored = await self._credentials.get_password(profile.id) or ""
        retry_manager = self._manager_factory(profile, stored)

        logger.info(f"Retrying {profile.host} with updated password")
        try:
            await self._attempt(retry_manager)
        except Exception as retry_err:
            category = classify(retry_err)
            retry_failure = ConnectionFailure(
                category,
                f"Failed to connect after updating password: {self._message(retry_err)}",
                describe(category, profile.host, profile.username),
            )
            await self._prompt.notify_failure(profile, retry_failure)
            raise retry_failure from retry_err
        return retry_manager

    async def _offer_retry(
        self,
        profile: DeviceProfile,
        manager: ConnectionManager,
        failure: ConnectionFailure,
        error: Exception,
    ) -> ConnectionManager:
        if not await self._prompt.ask_retry(profile, failure):
            logger.info(f"User abandoned connection to {profile.host}")
            raise failure from error

        logger.info(f"Retrying {profile.host}")
        try:
            await self._attempt(manager)
        except Exception as retry_err:
            retry_failure = self._failure(classify(retry_err), profile, retry_err)
            await self._prompt.notify_failure(profile, retry_failure)
            raise retry_failure from retry_err
        return manager

    async def _attempt(self, manager: ConnectionManager) -> None:
        """One bounded attempt: connect, wait for ready, verify credentials."""
        try:
            await self._with_timeout(self._connect_until_ready(manager), self._settings.connect_timeout, "connect")
            # The socket can open before the device rejects the credentials
            await self._with_timeout(manager.verify_connection(), self._settings.verify_timeout, "verify")
        except Exception:
            await manager.disconnect()
            raise

    @staticmethod
    async def _connect_until_ready(manager: ConnectionManager) -> None:
        await manager.connect()
        await manager.wait_until_ready()

    @staticmethod
    async def _with_timeout(awaitable: Awaitable[T], timeout: float, label: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TransportFailure(f"{label} timed out after {int(timeout * 1000)}ms", code="ETIMEDOUT") from e

    @staticmethod
    def _message(error: BaseException) -> str:
        return str(error) or type(error).__name__

    def _failure(self, category: ErrorCategory, profile: DeviceProfile, error: Exception) -> ConnectionFailure:
        return ConnectionFailure(
            category,
            self._message(error),
            describe(category, profile.host, profile.username),
        )
