"""Domain protocols - interfaces for all implementations.

Collaborators (session transport, timers, credential storage, user prompts)
are described as structural types so that tests can supply fakes and the
connection core never imports a concrete transport.
"""

from macrolink.domain.protocols.credentials import CredentialStore
from macrolink.domain.protocols.prompt import ConnectPrompt
from macrolink.domain.protocols.scheduler import ScheduledTask, Scheduler, TimerCallback
from macrolink.domain.protocols.transport import Detach, Session, SessionEvent, SessionTransport

__all__ = [
    "ConnectPrompt",
    "CredentialStore",
    "Detach",
    "ScheduledTask",
    "Scheduler",
    "Session",
    "SessionEvent",
    "SessionTransport",
    "TimerCallback",
]
