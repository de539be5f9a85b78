"""Infrastructure layer - concrete timers, connection helpers and storage."""
