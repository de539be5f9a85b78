"""Domain layer - pure types, protocols, events and exceptions.

This layer contains:
- protocols: Interfaces for the session transport, timers, credentials and prompts
- types: Shared domain types (ConnectionState, ErrorCategory, ...)
- events: Listener registry used for state, log and debug notifications
- exceptions: Domain-specific exceptions

The domain layer has NO runtime dependencies on application or infrastructure layers.
"""
