"""In-memory fakes for sessions, transports and prompts."""

import asyncio
from typing import Any, Callable, Optional

from macrolink.domain.types import ConnectOptions


class FakeSession:
    """Session double that records traffic and lets tests fire lifecycle events."""

    def __init__(
        self,
        status: Any = "Cisco Codec Pro",
        status_error: Optional[BaseException] = None,
    ):
        self.handlers: dict[str, list[Callable[..., None]]] = {"ready": [], "error": [], "close": []}
        self.log_handlers: list[Callable[[Any], None]] = []
        self.commands: list[tuple[str, Optional[dict[str, Any]], Optional[str]]] = []
        self.results: dict[str, Any] = {}
        self.status = status
        self.status_error = status_error
        self.status_gate: Optional[asyncio.Event] = None
        self.status_calls: list[str] = []
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self.handlers.values()) + len(self.log_handlers)

    def on(self, event: str, handler: Callable[..., None]) -> Callable[[], None]:
        self.handlers[event].append(handler)

        def detach() -> None:
            if handler in self.handlers[event]:
                self.handlers[event].remove(handler)

        return detach

    def on_log(self, handler: Callable[[Any], None]) -> Callable[[], None]:
        self.log_handlers.append(handler)

        def detach() -> None:
            if handler in self.log_handlers:
                self.log_handlers.remove(handler)

        return detach

    async def command(self, path: str, params: Optional[dict[str, Any]] = None, body: Optional[str] = None) -> Any:
        self.commands.append((path, params, body))
        return self.results.get(path)

    async def get_status(self, path: str) -> Any:
        self.status_calls.append(path)
        if self.status_gate is not None:
            await self.status_gate.wait()
        if self.status_error is not None:
            raise self.status_error
        return self.status

    async def close(self) -> None:
        self.close_calls += 1

    def emit_ready(self) -> None:
        for handler in list(self.handlers["ready"]):
            handler()

    def emit_close(self) -> None:
        for handler in list(self.handlers["close"]):
            handler()

    def emit_error(self, err: Any) -> None:
        for handler in list(self.handlers["error"]):
            handler(err)

    def emit_log(self, entry: Any) -> None:
        for handler in list(self.log_handlers):
            handler(entry)


class FakeTransport:
    """
    Transport double.

    Each ``connect`` consumes the next queued outcome: a FakeSession is
    returned, an exception is raised. With an empty queue it raises
    ``fail_with`` if set, otherwise it returns a fresh FakeSession.
    """

    def __init__(self, *outcomes: Any, auto_ready: bool = False):
        self.outcomes: list[Any] = list(outcomes)
        self.auto_ready = auto_ready
        self.fail_with: Optional[BaseException] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[ConnectOptions] = []
        self.sessions: list[FakeSession] = []

    def queue(self, *outcomes: Any) -> None:
        self.outcomes.extend(outcomes)

    async def connect(self, options: ConnectOptions) -> FakeSession:
        self.calls.append(options)
        if self.gate is not None:
            await self.gate.wait()

        if self.outcomes:
            outcome = self.outcomes.pop(0)
        elif self.fail_with is not None:
            outcome = self.fail_with
        else:
            outcome = FakeSession()

        if isinstance(outcome, BaseException):
            raise outcome

        self.sessions.append(outcome)
        if self.auto_ready:
            asyncio.get_running_loop().call_soon(outcome.emit_ready)
        return outcome


class ScriptedPrompt:
    """Connect prompt that answers from pre-seeded scripts and records every call."""

    def __init__(self, passwords: Optional[list[Optional[str]]] = None, retries: Optional[list[bool]] = None):
        self.passwords = list(passwords or [])
        self.retries = list(retries or [])
        self.password_requests: list[Any] = []
        self.retry_requests: list[Any] = []
        self.failures: list[Any] = []

    async def ask_password(self, profile, failure):
        self.password_requests.append(failure)
        return self.passwords.pop(0) if self.passwords else None

    async def ask_retry(self, profile, failure):
        self.retry_requests.append(failure)
        return self.retries.pop(0) if self.retries else False

    async def notify_failure(self, profile, failure):
        self.failures.append(failure)


async def drain(turns: int = 5) -> None:
    """Let background tasks (such as session closes) run."""
    for _ in range(turns):
        await asyncio.sleep(0)


def ready_transport() -> FakeTransport:
    """Factory used when the CLI loads a transport by ``module:attribute``."""
    return FakeTransport(auto_ready=True)
