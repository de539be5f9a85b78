"""Connection management components for device sessions."""

from .reconnect import ExponentialBackoff, ReconnectScheduler
from .health import HealthProbe

__all__ = [
    "ExponentialBackoff",
    "ReconnectScheduler",
    "HealthProbe",
]
