"""Idle eviction scheduling for sandbox sessions.

TimeoutScheduler keeps exactly one pending teardown per session and grants
a single, shorter extension on request. Time is abstracted behind Scheduler
so tests can advance a manual clock instead of waiting.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Set

import structlog

from ...models.session import Session
from .registry import SessionRegistry

logger = structlog.get_logger(__name__)

Callback = Callable[[], Awaitable[None]]
ExpiryHandler = Callable[[str], Awaitable[None]]


class ScheduledCall(ABC):
    """Handle to a callback scheduled on a Scheduler."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from firing. A callback already running is left alone."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """True once cancel() has been called."""


class Scheduler(ABC):
    """Runs coroutine callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        """Schedule callback to run after delay seconds."""


class _AsyncioScheduledCall(ScheduledCall):
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay: float,
        callback: Callback,
        tasks: Set[asyncio.Task],
    ):
        self._cancelled = False
        self._callback = callback
        self._tasks = tasks
        self._loop = loop
        self._timer = loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        task = self._loop.create_task(self._callback())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running event loop's timers."""

    def __init__(self):
        # Strong references so fired callbacks are not garbage collected mid-run
        self._tasks: Set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        loop = asyncio.get_running_loop()
        return _AsyncioScheduledCall(loop, delay, callback, self._tasks)


class TimeoutScheduler:
    """Arms, extends and cancels idle eviction for sessions."""

    def __init__(
        self,
        registry: SessionRegistry,
        scheduler: Scheduler,
        idle_timeout_seconds: float,
        extension_seconds: float,
    ):
        """Initialize the timeout scheduler.

        Args:
            registry: Session registry shared with the other components
            scheduler: Source of delayed callbacks
            idle_timeout_seconds: Delay before a freshly armed session is evicted
            extension_seconds: Delay armed by the one-time extension
        """
        self._registry = registry
        self._scheduler = scheduler
        self._idle_timeout = idle_timeout_seconds
        self._extension = extension_seconds
        self._on_expire: Optional[ExpiryHandler] = None

    @property
    def idle_timeout_seconds(self) -> float:
        return self._idle_timeout

    @property
    def extension_seconds(self) -> float:
        return self._extension

    def set_expiry_handler(self, handler: ExpiryHandler) -> None:
        """Set the coroutine called with the session id when eviction fires."""
        self._on_expire = handler

    def schedule(self, session_id: str, delay: Optional[float] = None) -> bool:
        """Arm (or re-arm) eviction for a session.

        Returns:
            False if the session is unknown
        """
        session = self._registry.get(session_id)
        if session is None:
            return False
        self._arm(session, self._idle_timeout if delay is None else delay)
        return True

    def extend(self, session_id: str) -> bool:
        """Grant the one-time extension.

        Returns:
            True if the extension was granted, False if the session is
            unknown or was already extended
        """
        session = self._registry.get(session_id)
        if session is None or session.is_extended:
            return False

        session.is_extended = True
        self._arm(session, self._extension)
        logger.info(
            "Session extended",
            session_id=session_id,
            extension_seconds=self._extension,
        )
        return True

    def cancel(self, session: Session) -> None:
        """Cancel the pending eviction for a session, if any."""
        handle = session.eviction_handle
        session.eviction_handle = None
        session.expires_at = None
        if handle is not None:
            handle.cancel()

    def _arm(self, session: Session, delay: float) -> None:
        self.cancel(session)
        session_id = session.id

        async def _fire() -> None:
            await self._expire(session_id, handle)

        handle = self._scheduler.call_later(delay, _fire)
        session.eviction_handle = handle
        session.mark_evicting_in(delay)

    async def _expire(self, session_id: str, handle: ScheduledCall) -> None:
        session = self._registry.get(session_id)
        # A replaced or cancelled schedule must never tear the session down
        if session is None or session.eviction_handle is not handle:
            return

        logger.info("Session idle timeout reached", session_id=session_id)
        if self._on_expire is None:
            logger.warning("No expiry handler set, session left running", session_id=session_id)
            return
        try:
            await self._on_expire(session_id)
        except Exception as e:
            logger.error("Timed-out session teardown failed", session_id=session_id, error=str(e))
