"""Tests for the periodic timer."""

import asyncio

import pytest

from bitmemes.helpers.ticker import PeriodicTask


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    def test_rejects_non_positive_interval(self) -> None:
        """Test the interval must be positive."""

        async def noop() -> None:
            return None

        with pytest.raises(ValueError, match="scheduler interval must be positive, got 0"):
            PeriodicTask("scheduler", 0, noop)

    @pytest.mark.asyncio
    async def test_fires_immediately_and_repeatedly(self) -> None:
        """Test the callback runs on start and then every interval."""
        calls = 0

        async def tick() -> None:
            nonlocal calls
            calls += 1

        task = PeriodicTask("ticker", 0.01, tick)
        task.start()
        assert task.is_started
        await asyncio.sleep(0.05)
        await task.stop()

        assert not task.is_started
        assert calls >= 2
        assert task.fired == calls

    @pytest.mark.asyncio
    async def test_slow_runs_do_not_delay_the_timer(self) -> None:
        """Test firings overlap instead of queueing behind a slow run."""
        running = 0
        peak = 0

        async def slow() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.05)
            running -= 1

        task = PeriodicTask("slow", 0.01, slow)
        task.start()
        await asyncio.sleep(0.035)
        await task.stop()

        assert peak >= 2
        assert running == 0

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self) -> None:
        """Test a failing run does not stop the timer."""
        calls = 0

        async def broken() -> None:
            nonlocal calls
            calls += 1
            msg = "tick failed"
            raise RuntimeError(msg)

        task = PeriodicTask("broken", 0.01, broken)
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()

        assert calls >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        """Test stopping an idle timer is harmless."""

        async def noop() -> None:
            return None

        task = PeriodicTask("idle", 1, noop)
        await task.stop()

        assert task.fired == 0
