# tests/unit/test_server_timers.py
"""Unit tests for timer manager."""

import asyncio
import pytest
from server.timers import TimerManager


class TestTimerManager:
    """Test TimerManager."""

    @pytest.mark.asyncio
    async def test_schedule_once_fires(self):
        """Test that a one-shot timer runs its callback when it expires."""
        calls = []

        async def callback():
            calls.append("fired")

        manager = TimerManager()
        handle = manager.schedule_once(0.05, callback)
        assert manager.is_active(handle)

        await asyncio.sleep(0.1)

        assert calls == ["fired"]
        assert not manager.is_active(handle)
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        """Test that cancelling a timer prevents the callback."""
        calls = []

        async def callback():
            calls.append("fired")

        manager = TimerManager()
        handle = manager.schedule_once(0.05, callback)

        assert manager.cancel(handle) is True
        await asyncio.sleep(0.1)

        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_absent_timer_is_noop(self):
        """Test cancelling nothing, or a timer that already fired."""
        async def callback():
            pass

        manager = TimerManager()
        assert manager.cancel(None) is False

        handle = manager.schedule_once(0.01, callback)
        await asyncio.sleep(0.05)
        assert manager.cancel(handle) is False

    @pytest.mark.asyncio
    async def test_repeating_fires_until_cancelled(self):
        """Test a repeating timer keeps firing until cancelled."""
        calls = []

        async def callback():
            calls.append("tick")

        manager = TimerManager()
        handle = manager.schedule_repeating(0.02, callback)

        await asyncio.sleep(0.11)
        manager.cancel(handle)
        count = len(calls)
        await asyncio.sleep(0.06)

        assert count >= 3
        assert len(calls) == count

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        """Test cancelling all timers."""
        calls = []

        async def callback():
            calls.append("fired")

        manager = TimerManager()
        manager.schedule_once(0.05, callback)
        manager.schedule_repeating(0.05, callback)
        manager.cancel_all()

        await asyncio.sleep(0.1)

        assert calls == []
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_callback_exception_is_logged(self, caplog):
        """Test a failing callback does not break the manager."""
        async def broken():
            raise RuntimeError("boom")

        manager = TimerManager()
        manager.schedule_once(0.01, broken)
        await asyncio.sleep(0.05)

        assert "callback failed" in caplog.text
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_repeating_callback_can_cancel_itself(self):
        """Test a repeating callback that cancels its own timer finishes cleanly."""
        calls = []
        manager = TimerManager()
        handles = {}

        async def callback():
            calls.append("tick")
            manager.cancel(handles["self"])
            await asyncio.sleep(0)
            calls.append("after cancel")

        handles["self"] = manager.schedule_repeating(0.01, callback)
        await asyncio.sleep(0.08)

        assert calls == ["tick", "after cancel"]
        assert len(manager) == 0
