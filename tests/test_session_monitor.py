"""
Tests for the periodic session monitor.
"""

import asyncio

import pytest

from portfolio_data.session_monitor import SessionMonitor


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        SessionMonitor(lambda: None, interval=0)


@pytest.mark.asyncio
class TestSessionMonitor:
    """Start, tick and stop."""

    async def test_ticks_until_stopped(self):
        ticks = []

        async def check():
            ticks.append(1)

        monitor = SessionMonitor(check, interval=0.01)
        monitor.start()
        await asyncio.sleep(0.05)
        await monitor.wait_stopped()
        count = len(ticks)
        await asyncio.sleep(0.03)

        assert count >= 1
        assert len(ticks) == count
        assert monitor.running is False

    async def test_start_twice_keeps_one_task(self):
        ticks = []

        async def check():
            ticks.append(1)

        monitor = SessionMonitor(check, interval=0.02)
        monitor.start()
        task = monitor._task
        monitor.start()

        assert monitor._task is task
        await monitor.wait_stopped()

    async def test_check_errors_do_not_stop_monitoring(self):
        calls = 0

        async def check():
            nonlocal calls
            calls += 1
            raise RuntimeError("refresh failed")

        monitor = SessionMonitor(check, interval=0.01)
        monitor.start()
        await asyncio.sleep(0.06)

        assert monitor.running is True
        assert calls >= 2
        await monitor.wait_stopped()

    async def test_stop_is_idempotent(self):
        async def check():
            pass

        monitor = SessionMonitor(check, interval=10)
        monitor.stop()
        monitor.start()
        monitor.stop()
        monitor.stop()

        assert monitor.running is False
