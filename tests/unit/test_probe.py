"""Unit tests for RuntimeAvailabilityProbe."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.runtime.probe import RuntimeAvailabilityProbe


def make_runtime(available=True):
    runtime = MagicMock()
    runtime.ping = AsyncMock(return_value=available)
    return runtime


class TestProbe:
    """Test memoized availability detection."""

    @pytest.mark.asyncio
    async def test_positive_result_is_cached(self):
        runtime = make_runtime(True)
        probe = RuntimeAvailabilityProbe(runtime)

        assert await probe.is_available() is True
        assert await probe.is_available() is True
        assert runtime.ping.await_count == 1
        assert probe.cached_result is True

    @pytest.mark.asyncio
    async def test_negative_result_is_cached(self):
        runtime = make_runtime(False)
        probe = RuntimeAvailabilityProbe(runtime)

        assert await probe.is_available() is False
        runtime.ping.return_value = True
        assert await probe.is_available() is False
        assert runtime.ping.await_count == 1

    @pytest.mark.asyncio
    async def test_reset_forces_reprobe(self):
        runtime = make_runtime(False)
        probe = RuntimeAvailabilityProbe(runtime)
        await probe.is_available()

        runtime.ping.return_value = True
        probe.reset()

        assert probe.cached_result is None
        assert await probe.is_available() is True

    @pytest.mark.asyncio
    async def test_ping_exception_counts_as_unavailable(self):
        runtime = MagicMock()
        runtime.ping = AsyncMock(side_effect=RuntimeError("socket closed"))
        probe = RuntimeAvailabilityProbe(runtime)
        assert await probe.is_available() is False

    @pytest.mark.asyncio
    async def test_concurrent_callers_probe_once(self):
        runtime = MagicMock()

        async def slow_ping():
            await asyncio.sleep(0.01)
            return True

        runtime.ping = AsyncMock(side_effect=slow_ping)
        probe = RuntimeAvailabilityProbe(runtime)

        results = await asyncio.gather(*(probe.is_available() for _ in range(5)))

        assert results == [True] * 5
        assert runtime.ping.await_count == 1


class TestFirstAvailableCallbacks:
    """Test the one-time callbacks on first positive detection."""

    @pytest.mark.asyncio
    async def test_callback_runs_once(self):
        probe = RuntimeAvailabilityProbe(make_runtime(True))
        callback = AsyncMock()
        probe.on_first_available(callback)

        await probe.is_available()
        probe.reset()
        await probe.is_available()

        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_callback_not_run_while_unavailable(self):
        probe = RuntimeAvailabilityProbe(make_runtime(False))
        callback = AsyncMock()
        probe.on_first_available(callback)

        await probe.is_available()

        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_callback_is_absorbed(self):
        probe = RuntimeAvailabilityProbe(make_runtime(True))
        failing = AsyncMock(side_effect=RuntimeError("sweep failed"))
        after = AsyncMock()
        probe.on_first_available(failing)
        probe.on_first_available(after)

        assert await probe.is_available() is True
        after.assert_awaited_once()
