"""Health probing for device sessions."""

import asyncio
from typing import Callable, Optional

from macrolink.domain.protocols import ScheduledTask, Scheduler, Session
from macrolink.logger import get_logger

logger = get_logger("connection.health")

FailureCallback = Callable[[Session, BaseException], None]


class HealthProbe:
    """Periodically reads a cheap status value to detect silent failures.

    Some failure modes (a wedged socket, a device that stopped answering)
    never raise a ``close`` or ``error`` event on the session. The probe
    issues one read-only request per interval and reports the first failure.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float = 5.0,
        timeout: float = 5.0,
        status_path: str = "SystemUnit/ProductId",
    ):
        """
        Initialize health probe.

        Args:
            scheduler: Timer factory
            interval: Seconds between probes
            timeout: Timeout for a single probe request (seconds)
            status_path: Always-available status value to read
        """
        self._scheduler = scheduler
        self._interval = interval
        self._timeout = timeout
        self._status_path = status_path
        self._timer: Optional[ScheduledTask] = None
        self._session: Optional[Session] = None
        self._on_failure: Optional[FailureCallback] = None
        self._checks = 0

    @property
    def is_running(self) -> bool:
        """Check if the probe is armed."""
        return self._timer is not None

    @property
    def checks(self) -> int:
        """Number of successful probes since start()."""
        return self._checks

    def start(self, session: Session, on_failure: FailureCallback) -> None:
        """
        Start probing a session, replacing any previous run.

        Args:
            session: Session to probe
            on_failure: Called once with the session and the error when a probe fails
        """
        self.stop()
        self._session = session
        self._on_failure = on_failure
        self._checks = 0
        self._arm()
        logger.info(f"Health probe started (interval={self._interval}s, path={self._status_path})")

    def stop(self) -> None:
        """Stop probing."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        self._session = None
        self._on_failure = None
        logger.info("Health probe stopped")

    def _arm(self) -> None:
        self._timer = self._scheduler.call_later(self._interval, self._tick)

    async def _tick(self) -> None:
        session = self._session
        on_failure = self._on_failure
        if session is None or on_failure is None:
            return

        try:
            await asyncio.wait_for(session.get_status(self._status_path), timeout=self._timeout)
        except Exception as e:
            if self._session is not session:
                # Stopped or restarted while the probe was in flight
                return
            logger.warning(f"Health probe failed: {e!r}")
            self.stop()
            on_failure(session, e)
            return

        if self._session is not session:
            return
        self._checks += 1
        logger.debug("Health probe passed")
        self._arm()
