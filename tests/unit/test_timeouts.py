"""Unit tests for TimeoutScheduler and AsyncioScheduler."""

import asyncio

import pytest

from src.models.session import ProjectType, Session
from src.services.sandbox.registry import SessionRegistry
from src.services.sandbox.timeouts import AsyncioScheduler, TimeoutScheduler

IDLE = 30 * 60
EXTENSION = 10 * 60


def register(registry: SessionRegistry, session_id: str = "s1") -> Session:
    session = Session(
        id=session_id,
        project_type=ProjectType.TYPESCRIPT,
        container_name=f"playground-sandbox-{session_id}",
        volume_name=f"playground-vol-{session_id}",
        container_ref="abc123",
    )
    registry.put(session)
    return session


@pytest.fixture
def expired():
    return []


@pytest.fixture
def timeouts(registry, manual_scheduler, expired):
    scheduler = TimeoutScheduler(registry, manual_scheduler, IDLE, EXTENSION)

    async def on_expire(session_id: str):
        expired.append(session_id)

    scheduler.set_expiry_handler(on_expire)
    return scheduler


class TestSchedule:
    """Test arming idle eviction."""

    @pytest.mark.asyncio
    async def test_eviction_fires_after_idle_timeout(
        self, registry, timeouts, manual_scheduler, expired
    ):
        session = register(registry)
        assert timeouts.schedule("s1") is True
        assert session.eviction_handle is not None
        assert session.expires_at is not None

        await manual_scheduler.advance(IDLE - 1)
        assert expired == []
        await manual_scheduler.advance(1)
        assert expired == ["s1"]

    def test_schedule_unknown_session(self, timeouts):
        assert timeouts.schedule("missing") is False

    @pytest.mark.asyncio
    async def test_rescheduling_replaces_pending_eviction(
        self, registry, timeouts, manual_scheduler, expired
    ):
        register(registry)
        timeouts.schedule("s1")
        await manual_scheduler.advance(IDLE / 2)
        timeouts.schedule("s1")

        await manual_scheduler.advance(IDLE / 2)
        assert expired == []
        assert len(manual_scheduler.pending) == 1
        await manual_scheduler.advance(IDLE / 2)
        assert expired == ["s1"]

    @pytest.mark.asyncio
    async def test_cancel_prevents_eviction(
        self, registry, timeouts, manual_scheduler, expired
    ):
        session = register(registry)
        timeouts.schedule("s1")
        timeouts.cancel(session)
        assert session.eviction_handle is None
        assert session.expires_at is None

        await manual_scheduler.advance(IDLE * 2)
        assert expired == []

    @pytest.mark.asyncio
    async def test_eviction_for_removed_session_is_ignored(
        self, registry, timeouts, manual_scheduler, expired
    ):
        register(registry)
        timeouts.schedule("s1")
        registry.delete("s1")
        await manual_scheduler.advance(IDLE)
        assert expired == []

    @pytest.mark.asyncio
    async def test_handler_failure_is_absorbed(self, registry, manual_scheduler):
        scheduler = TimeoutScheduler(registry, manual_scheduler, IDLE, EXTENSION)

        async def broken(session_id: str):
            raise RuntimeError("boom")

        scheduler.set_expiry_handler(broken)
        register(registry)
        scheduler.schedule("s1")
        await manual_scheduler.advance(IDLE)


class TestExtend:
    """Test the one-time extension."""

    def test_extend_succeeds_exactly_once(self, registry, timeouts):
        session = register(registry)
        timeouts.schedule("s1")
        assert timeouts.extend("s1") is True
        assert session.is_extended is True
        assert timeouts.extend("s1") is False
        assert timeouts.extend("s1") is False

    def test_extend_unknown_session(self, timeouts):
        assert timeouts.extend("missing") is False

    @pytest.mark.asyncio
    async def test_extension_rearms_with_shorter_window(
        self, registry, timeouts, manual_scheduler, expired
    ):
        register(registry)
        timeouts.schedule("s1")
        await manual_scheduler.advance(IDLE - 60)
        timeouts.extend("s1")

        # The original deadline passes without eviction
        await manual_scheduler.advance(60)
        assert expired == []
        assert len(manual_scheduler.pending) == 1

        await manual_scheduler.advance(EXTENSION - 60)
        assert expired == ["s1"]


class TestAsyncioScheduler:
    """Test the event-loop backed scheduler."""

    @pytest.mark.asyncio
    async def test_callback_runs_after_delay(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        call = scheduler.call_later(0.01, callback)
        await asyncio.wait_for(fired.wait(), timeout=1)
        assert call.cancelled is False

    @pytest.mark.asyncio
    async def test_cancelled_callback_never_runs(self):
        scheduler = AsyncioScheduler()
        fired = []

        async def callback():
            fired.append(True)

        call = scheduler.call_later(0.01, callback)
        call.cancel()
        await asyncio.sleep(0.05)
        assert call.cancelled is True
        assert fired == []
