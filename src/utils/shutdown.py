"""Graceful shutdown handling."""

import asyncio
import signal
from typing import Awaitable, Callable, List

import structlog

logger = structlog.get_logger(__name__)

ShutdownCallback = Callable[[], Awaitable[None]]


class ShutdownHandler:
    """Runs registered async callbacks once when the process shuts down."""

    def __init__(self):
        self._callbacks: List[ShutdownCallback] = []
        self._done = False
        self._lock = asyncio.Lock()

    @property
    def is_shutdown(self) -> bool:
        return self._done

    def add_callback(self, callback: ShutdownCallback) -> None:
        self._callbacks.append(callback)

    def clear(self) -> None:
        self._callbacks.clear()
        self._done = False

    async def shutdown(self) -> None:
        """Run every callback in registration order; failures are logged."""
        async with self._lock:
            if self._done:
                return
            self._done = True
            logger.info("Running shutdown callbacks", count=len(self._callbacks))
            for callback in self._callbacks:
                try:
                    await callback()
                except Exception as e:
                    logger.error(
                        "Shutdown callback failed",
                        callback=getattr(callback, "__qualname__", repr(callback)),
                        error=str(e),
                    )


shutdown_handler = ShutdownHandler()


def setup_graceful_shutdown(handler: ShutdownHandler = shutdown_handler) -> bool:
    """Run the handler on SIGINT/SIGTERM, chaining to any previous handler.

    Chaining keeps uvicorn's own exit handling intact; the lifespan shutdown
    then finds the handler already run. Without a previous Python-level
    handler the signal is re-raised once the callbacks finish.

    Must be called from the main thread while the event loop is running.

    Returns:
        False if signal handlers could not be installed
    """
    loop = asyncio.get_running_loop()
    tasks = set()

    def _install(sig: signal.Signals) -> None:
        previous = signal.getsignal(sig)

        def _run_shutdown() -> None:
            task = loop.create_task(handler.shutdown())
            tasks.add(task)
            task.add_done_callback(tasks.discard)
            if not callable(previous):
                task.add_done_callback(lambda _: _restore_and_raise(sig, previous))

        def _on_signal(signum, frame) -> None:
            logger.info("Received shutdown signal", signal=sig.name)
            loop.call_soon_threadsafe(_run_shutdown)
            if callable(previous):
                previous(signum, frame)

        signal.signal(sig, _on_signal)

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            _install(sig)
    except ValueError:
        logger.warning("Signal handlers not installed outside the main thread")
        return False
    return True


def _restore_and_raise(sig: signal.Signals, previous) -> None:
    signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
    signal.raise_signal(sig)
