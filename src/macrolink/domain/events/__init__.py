"""Listener registries for decoupled notifications.

Example:
    ```python
    from macrolink.domain.events import ListenerRegistry

    registry = ListenerRegistry[str]("debug")
    off = registry.add(print)
    registry.emit("hello")
    off()
    ```
"""

from .registry import ListenerRegistry, Unsubscribe

__all__ = [
    "ListenerRegistry",
    "Unsubscribe",
]
