"""Tests for backoff and reconnect scheduling."""

import pytest

from macrolink.infrastructure.connection import ExponentialBackoff, ReconnectScheduler
from macrolink.infrastructure.scheduling import VirtualScheduler


class TestExponentialBackoff:
    """Tests for ExponentialBackoff."""

    def test_calculate_delay(self):
        """Test delay calculation with exponential backoff."""
        backoff = ExponentialBackoff()

        assert [backoff.calculate_delay(n) for n in range(1, 8)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

        # Far attempts stay at the cap
        assert backoff.calculate_delay(100) == 30.0

    def test_custom_policy(self):
        backoff = ExponentialBackoff(initial_delay=0.5, max_delay=3.0, multiplier=3.0)

        assert backoff.calculate_delay(1) == 0.5
        assert backoff.calculate_delay(2) == 1.5
        assert backoff.calculate_delay(3) == 3.0
        assert backoff.max_delay == 3.0

    def test_non_positive_attempt(self):
        assert ExponentialBackoff().calculate_delay(0) == 1.0


class TestReconnectScheduler:
    """Tests for ReconnectScheduler."""

    @pytest.fixture
    def fired(self):
        return []

    @pytest.fixture
    def reconnect(self, scheduler, fired):
        async def on_fire():
            fired.append(scheduler.now)

        return ReconnectScheduler(scheduler, on_fire)

    def test_schedule_is_deduplicated(self, reconnect, scheduler):
        assert reconnect.schedule() is True
        assert reconnect.schedule() is False

        assert reconnect.attempts == 1
        assert reconnect.is_scheduled
        assert [t.delay for t in scheduler.pending] == [1.0]

    @pytest.mark.asyncio
    async def test_timer_fires_after_delay(self, reconnect, scheduler, fired):
        reconnect.schedule()

        await scheduler.advance(0.5)
        assert fired == []

        await scheduler.advance(0.5)
        assert fired == [1.0]

    def test_rearm_bypasses_guard(self, reconnect, scheduler):
        reconnect.schedule()
        reconnect.rearm()

        assert reconnect.attempts == 2
        assert reconnect.next_delay == 2.0
        # The first timer was cancelled when re-armed before firing
        assert [t.delay for t in scheduler.pending] == [2.0]

    def test_cancel_clears_guard(self, reconnect, scheduler):
        reconnect.schedule()
        reconnect.cancel()

        assert not reconnect.is_scheduled
        assert reconnect.next_delay is None
        assert scheduler.pending == []
        # Attempts survive a cancel
        assert reconnect.attempts == 1

        assert reconnect.schedule() is True
        assert reconnect.next_delay == 2.0

    def test_reset_forgets_attempts(self, reconnect, scheduler):
        reconnect.schedule()
        reconnect.rearm()
        reconnect.reset()

        assert reconnect.attempts == 0
        assert not reconnect.is_scheduled
        assert scheduler.pending == []

    @pytest.mark.asyncio
    async def test_complete_releases_fired_timer(self, reconnect, scheduler):
        reconnect.schedule()
        await scheduler.advance(1.0)

        reconnect.complete()

        assert not reconnect.is_scheduled
        assert reconnect.timer is None
        assert reconnect.attempts == 1
