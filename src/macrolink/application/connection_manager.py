"""ConnectionManager - owns one device session and keeps it alive.

The manager establishes the session through an injected transport, waits
for the session's own ``ready`` signal, monitors it with a health probe and
reconnects with exponential backoff whenever a ready session drops. The
background loop never gives up on its own; only ``disconnect()`` stops it.

State machine:

    idle / disconnected / error --connect()--> connecting
    ready / reconnecting --connect()--> reconnecting
    connecting / reconnecting --session ready--> ready
    ready --close / error / probe failure--> disconnected --> reconnecting
    any --disconnect()--> disconnected
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from macrolink.application.config import ConnectionSettings
from macrolink.application.error_classifier import error_code
from macrolink.application.macros import Macro, parse_macro_list
from macrolink.domain.events import ListenerRegistry, Unsubscribe
from macrolink.domain.exceptions import NotConnectedError, TransportFailure
from macrolink.domain.protocols import Detach, ScheduledTask, Scheduler, Session, SessionTransport
from macrolink.domain.types import ConnectionMethod, ConnectionState, ConnectOptions
from macrolink.infrastructure.connection import ExponentialBackoff, HealthProbe, ReconnectScheduler
from macrolink.infrastructure.scheduling import AsyncioScheduler
from macrolink.logger import get_logger

logger = get_logger("connection.manager")

_FRESH_START_STATES = frozenset(
    {ConnectionState.IDLE, ConnectionState.DISCONNECTED, ConnectionState.ERROR}
)


class ConnectionManager:
    """
    Single-owner manager for one logical device session.

    Responsibilities:
    - Open the session with credentials fixed at construction
    - Track connection state and notify subscribers
    - Probe session health while ready
    - Reconnect silently with exponential backoff after a drop
    - Forward macro commands to the device while ready

    Credentials are immutable; a credential change means constructing a new
    manager. All methods must be called from the same event loop.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        connection_method: ConnectionMethod | str = ConnectionMethod.WSS,
        *,
        transport: SessionTransport,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[ConnectionSettings] = None,
    ):
        """
        Initialize the ConnectionManager.

        Args:
            host: Device hostname or IP address
            username: Login name
            password: Login password
            connection_method: Transport flavour (wss or ssh)
            transport: Session factory
            scheduler: Timer factory (defaults to the running asyncio loop)
            settings: Timing policy (defaults to ConnectionSettings())
        """
        self._host = host
        self._username = username
        self._password = password
        self._connection_method = ConnectionMethod(connection_method)
        self._transport = transport
        self._settings = settings or ConnectionSettings()
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()

        self._state = ConnectionState.IDLE
        self._explicit_disconnect = False
        self._session: Optional[Session] = None
        self._session_detachers: list[Detach] = []
        self._ready_waiter: Optional[asyncio.Future[None]] = None
        self._ready_deadline: Optional[ScheduledTask] = None
        self._closing: set[asyncio.Task] = set()

        self._reconnect = ReconnectScheduler(
            self._scheduler,
            self._on_reconnect_timer,
            ExponentialBackoff(
                initial_delay=self._settings.reconnect_initial_delay,
                max_delay=self._settings.reconnect_max_delay,
                multiplier=self._settings.reconnect_multiplier,
            ),
        )
        self._health_probe = HealthProbe(
            self._scheduler,
            interval=self._settings.health_check_interval,
            timeout=self._settings.health_check_timeout,
            status_path=self._settings.health_check_path,
        )

        self._state_listeners: ListenerRegistry[ConnectionState] = ListenerRegistry("state")
        self._log_listeners: ListenerRegistry[Any] = ListenerRegistry("log")
        self._debug_listeners: ListenerRegistry[str] = ListenerRegistry("debug")

    def __repr__(self) -> str:
        return (
            f"ConnectionManager(host={self._host!r}, username={self._username!r}, "
            f"method={self._connection_method.value}, state={self._state.value})"
        )

    # --------------------------------------------------------------------- #
    # Properties
    # --------------------------------------------------------------------- #

    @property
    def host(self) -> str:
        return self._host

    @property
    def username(self) -> str:
        return self._username

    @property
    def connection_method(self) -> ConnectionMethod:
        return self._connection_method

    @property
    def settings(self) -> ConnectionSettings:
        return self._settings

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def session(self) -> Optional[Session]:
        """The live session, if any. Presence alone does not mean ready."""
        return self._session

    @property
    def reconnect_attempts(self) -> int:
        """Consecutive failed attempts since the last ready session."""
        return self._reconnect.attempts

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect.is_scheduled

    @property
    def explicit_disconnect(self) -> bool:
        return self._explicit_disconnect

    @property
    def health_probe_running(self) -> bool:
        return self._health_probe.is_running

    @property
    def reconnect_info(self) -> dict[str, Any]:
        """
        Get reconnection progress information.

        Returns:
            Dictionary with:
            - state: Current state value
            - attempts: Consecutive failed attempts
            - next_retry_delay: Delay of the armed reconnect timer in seconds, or None
        """
        return {
            "state": self._state.value,
            "attempts": self._reconnect.attempts,
            "next_retry_delay": self._reconnect.next_delay,
        }

    def get_state(self) -> ConnectionState:
        return self._state

    def is_connected(self) -> bool:
        """True only while the session is ready."""
        return self._state is ConnectionState.READY

    # --------------------------------------------------------------------- #
    # Subscriptions
    # --------------------------------------------------------------------- #

    def on_state_change(self, listener: Callable[[ConnectionState], None]) -> Unsubscribe:
        """Subscribe to state changes. Returns a callable that unsubscribes."""
        return self._state_listeners.add(listener)

    def on_log(self, listener: Callable[[Any], None]) -> Unsubscribe:
        """Subscribe to device log events. Returns a callable that unsubscribes."""
        return self._log_listeners.add(listener)

    def on_debug(self, listener: Callable[[str], None]) -> Unsubscribe:
        """Subscribe to connection debug traces. Returns a callable that unsubscribes."""
        return self._debug_listeners.add(listener)

    # --------------------------------------------------------------------- #
    # Connection lifecycle
    # --------------------------------------------------------------------- #

    async def connect(self) -> None:
        """
        Open a session with the stored credentials.

        Returns once the transport has handed over a session; the state only
        becomes ``ready`` when that session signals readiness (see
        ``wait_until_ready``). Also re-arms a manager that was explicitly
        disconnected.

        Raises:
            Exception: Whatever the transport raised. No reconnect is scheduled for it.
        """
        self._explicit_disconnect = False
        try:
            await self._open_session()
        except Exception as e:
            if self._explicit_disconnect:
                raise
            logger.error(f"Failed to connect to {self._host}: {e!r}")
            self._debug(f"Connect failed: {e!r}")
            if not self._reconnect.is_scheduled:
                self._release_session()
                self._set_state(ConnectionState.ERROR)
            self._resolve_ready(e)
            raise

    async def wait_until_ready(self) -> None:
        """
        Wait until the current connection attempt reaches ``ready``.

        Raises:
            NotConnectedError: If no attempt is in progress, or ``disconnect()`` ends it
            TransportFailure: If the session closed before it became ready
        """
        if self._state is ConnectionState.READY:
            return
        if self._state not in (ConnectionState.CONNECTING, ConnectionState.RECONNECTING):
            raise NotConnectedError(
                f"No connection attempt in progress for {self._host} (state={self._state.value})"
            )
        if self._ready_waiter is None or self._ready_waiter.done():
            waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            # Mark the outcome retrieved even when every waiter has timed out
            waiter.add_done_callback(lambda f: f.cancelled() or f.exception())
            self._ready_waiter = waiter
        await asyncio.shield(self._ready_waiter)

    async def disconnect(self) -> None:
        """
        Close the session and stop all timers. Idempotent.

        A later ``connect()`` starts a fresh, independent session.
        """
        logger.info(f"Disconnect requested for {self._host}")
        self._explicit_disconnect = True
        self._reconnect.cancel()
        self._cancel_ready_deadline()
        self._health_probe.stop()

        session = self._session
        self._detach_session()
        self._set_state(ConnectionState.DISCONNECTED)
        self._resolve_ready(NotConnectedError(f"Disconnected from {self._host}"))

        if session is not None:
            await self._close_quietly(session)
        logger.info(f"Disconnected from {self._host}")

    async def verify_connection(self) -> Any:
        """
        Perform a simple read that requires valid credentials.

        Returns:
            The status value read (the device product id by default)
        """
        session = self._require_session()
        return await session.get_status(self._settings.health_check_path)

    # --------------------------------------------------------------------- #
    # Macro commands
    # --------------------------------------------------------------------- #

    async def list_macros(self) -> list[Macro]:
        """List macros on the device (without content)."""
        session = self._require_session()
        result = await session.command("Macros/Macro/Get", {})
        return parse_macro_list(result)

    async def get_macro(self, name: str) -> str:
        """Return the source of a macro, or an empty string if it does not exist."""
        session = self._require_session()
        result = await session.command("Macros/Macro/Get", {"Name": name, "Content": True})
        for macro in parse_macro_list(result):
            if macro.name == name:
                return macro.content or ""
        return ""

    async def save_macro(self, name: str, content: str) -> None:
        """Overwrite (or create) a macro with the given source."""
        session = self._require_session()
        await session.command("Macros/Macro/Save", {"Name": name, "Overwrite": True}, content)

    async def create_macro(self, name: str, content: str = "") -> None:
        """Create a new macro; fails on the device if the name exists."""
        session = self._require_session()
        await session.command(
            "Macros/Macro/Save",
            {"Name": name, "Overwrite": False, "Transpile": True},
            content,
        )

    async def remove_macro(self, name: str) -> None:
        session = self._require_session()
        await session.command("Macros/Macro/Remove", {"Name": name})

    async def delete_macro(self, name: str) -> None:
        """Alias of remove_macro."""
        await self.remove_macro(name)

    async def rename_macro(self, old_name: str, new_name: str) -> None:
        session = self._require_session()
        await session.command("Macros/Macro/Rename", {"Name": old_name, "NewName": new_name})

    async def activate_macro(self, name: str) -> None:
        session = self._require_session()
        await session.command("Macros/Macro/Activate", {"Name": name})

    async def deactivate_macro(self, name: str) -> None:
        session = self._require_session()
        await session.command("Macros/Macro/Deactivate", {"Name": name})

    async def activate_macro_by_id(self, macro_id: str) -> None:
        session = self._require_session()
        await session.command("Macros/Macro/Activate", {"Id": macro_id})

    async def deactivate_macro_by_id(self, macro_id: str) -> None:
        session = self._require_session()
        await session.command("Macros/Macro/Deactivate", {"Id": macro_id})

    async def restart_framework(self) -> None:
        """Restart the device macro runtime."""
        session = self._require_session()
        await session.command("Macros/Runtime/Restart", {})

    # --------------------------------------------------------------------- #
    # Internal helpers
    # --------------------------------------------------------------------- #

    def _require_session(self) -> Session:
        if self._state is not ConnectionState.READY or self._session is None:
            raise NotConnectedError(f"Not connected to {self._host} (state={self._state.value})")
        return self._session

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info(f"{self._host}: {previous.value} -> {state.value}")
        self._debug(f"State {previous.value} -> {state.value}")
        self._state_listeners.emit(state)

    def _debug(self, message: str) -> None:
        logger.debug(f"{self._host}: {message}")
        self._debug_listeners.emit(message)

    def _resolve_ready(self, error: Optional[BaseException] = None) -> None:
        waiter, self._ready_waiter = self._ready_waiter, None
        if waiter is None or waiter.done():
            return
        if error is None:
            waiter.set_result(None)
        else:
            waiter.set_exception(error)

    async def _open_session(self) -> None:
        self._health_probe.stop()
        if self._state in _FRESH_START_STATES:
            self._set_state(ConnectionState.CONNECTING)
        else:
            self._set_state(ConnectionState.RECONNECTING)

        options = ConnectOptions(
            host=self._host,
            username=self._username,
            password=self._password,
            protocol=self._connection_method.protocol,
        )
        self._debug(f"Opening session to {self._host} ({options.protocol})")
        session = await self._transport.connect(options)

        if self._explicit_disconnect:
            self._debug("Disconnected while the transport was connecting, closing new session")
            await self._close_quietly(session)
            return

        self._adopt_session(session)

    def _adopt_session(self, session: Session) -> None:
        previous = self._session
        self._detach_session()
        if previous is not None and previous is not session:
            self._close_in_background(previous)

        self._session = session

        def on_ready(*_: Any) -> None:
            self._handle_ready(session)

        def on_error(err: Any = None, *_: Any) -> None:
            self._handle_drop(session, "error", err)

        def on_close(*_: Any) -> None:
            self._handle_drop(session, "close", None)

        def on_log(entry: Any) -> None:
            if session is self._session:
                self._log_listeners.emit(entry)

        self._session_detachers = [
            session.on("ready", on_ready),
            session.on("error", on_error),
            session.on("close", on_close),
            session.on_log(on_log),
        ]
        self._debug("Session opened, waiting for ready")

    def _detach_session(self) -> None:
        detachers, self._session_detachers = self._session_detachers, []
        self._session = None
        for detach in detachers:
            try:
                detach()
            except Exception as e:
                logger.debug(f"Error detaching session handler: {e!r}")

    def _release_session(self) -> None:
        session = self._session
        self._detach_session()
        if session is not None:
            self._close_in_background(session)

    def _close_in_background(self, session: Session) -> None:
        task = asyncio.get_running_loop().create_task(self._close_quietly(session))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_quietly(self, session: Session) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing session: {e!r}")

    def _handle_ready(self, session: Session) -> None:
        if session is not self._session or self._explicit_disconnect:
            self._debug("Ignoring ready from a stale session")
            return
        if self._state is ConnectionState.READY:
            return

        self._cancel_ready_deadline()
        self._reconnect.reset()
        self._health_probe.start(session, self._handle_probe_failure)
        self._set_state(ConnectionState.READY)
        self._resolve_ready()

    def _handle_drop(self, session: Session, reason: str, err: Any) -> None:
        if session is not self._session:
            self._debug(f"Ignoring {reason} from a stale session")
            return
        if self._explicit_disconnect:
            return

        detail = f": {err!r}" if err is not None else ""
        logger.warning(f"Session to {self._host} dropped ({reason}{detail})")
        self._debug(f"Session {reason}{detail}")

        previous = self._state
        self._cancel_ready_deadline()
        self._health_probe.stop()
        self._release_session()

        if previous is ConnectionState.READY:
            self._set_state(ConnectionState.DISCONNECTED)
            self._schedule_reconnect()
        elif previous is ConnectionState.RECONNECTING:
            # A reconnect attempt got a session that died before becoming ready
            self._schedule_reconnect()
        else:
            failure = TransportFailure(
                f"Session {reason} before it became ready{detail}",
                code=error_code(err) or None,
            )
            self._set_state(ConnectionState.ERROR)
            self._resolve_ready(failure)

    def _handle_probe_failure(self, session: Session, err: BaseException) -> None:
        if self._explicit_disconnect or self._reconnect.is_scheduled:
            self._debug("Health probe failed while shutting down or reconnecting, ignoring")
            return
        self._handle_drop(session, "health probe failure", err)

    def _schedule_reconnect(self) -> None:
        if self._explicit_disconnect:
            return
        if not self._reconnect.schedule():
            return
        self._set_state(ConnectionState.RECONNECTING)
        self._debug(
            f"Reconnect attempt {self._reconnect.attempts} in {self._reconnect.next_delay:.1f}s"
        )

    async def _on_reconnect_timer(self) -> None:
        self._health_probe.stop()
        if self._explicit_disconnect:
            self._reconnect.cancel()
            return

        timeout = self._settings.connect_timeout
        try:
            await asyncio.wait_for(self._open_session(), timeout=timeout)
        except Exception as e:
            if self._explicit_disconnect:
                return
            if isinstance(e, asyncio.TimeoutError):
                e = TransportFailure(f"connect timed out after {int(timeout * 1000)}ms", code="ETIMEDOUT")
            logger.warning(f"Reconnect attempt {self._reconnect.attempts} to {self._host} failed: {e!r}")
            self._reconnect.rearm()
            self._set_state(ConnectionState.RECONNECTING)
            self._debug(
                f"Reconnect attempt {self._reconnect.attempts} in {self._reconnect.next_delay:.1f}s"
            )
            return

        # The attempt produced a session that must now signal ready before the deadline
        self._reconnect.complete()
        session = self._session
        if session is not None and self._state is not ConnectionState.READY:
            self._arm_ready_deadline(session)

    def _arm_ready_deadline(self, session: Session) -> None:
        self._cancel_ready_deadline()
        timeout = self._settings.connect_timeout

        async def expire() -> None:
            self._ready_deadline = None
            if session is not self._session or self._explicit_disconnect:
                return
            if self._state is ConnectionState.READY:
                return
            self._handle_drop(
                session,
                "ready timeout",
                TransportFailure(f"session not ready after {int(timeout * 1000)}ms", code="ETIMEDOUT"),
            )

        self._ready_deadline = self._scheduler.call_later(timeout, expire)

    def _cancel_ready_deadline(self) -> None:
        deadline, self._ready_deadline = self._ready_deadline, None
        if deadline is not None:
            deadline.cancel()
