"""Container runtime availability detection."""

import asyncio
from typing import Awaitable, Callable, List, Optional

import structlog

from .interfaces import ContainerRuntime

logger = structlog.get_logger(__name__)

AvailabilityCallback = Callable[[], Awaitable[None]]


class RuntimeAvailabilityProbe:
    """Memoized check for whether the container runtime is reachable.

    Both outcomes are cached for the process lifetime. Callbacks registered
    with on_first_available run once, the first time the runtime is found.
    """

    def __init__(self, runtime: ContainerRuntime):
        self._runtime = runtime
        self._available: Optional[bool] = None
        self._lock = asyncio.Lock()
        self._callbacks: List[AvailabilityCallback] = []
        self._announced = False

    @property
    def cached_result(self) -> Optional[bool]:
        """Last probe result, or None if the runtime has not been probed."""
        return self._available

    def on_first_available(self, callback: AvailabilityCallback) -> None:
        self._callbacks.append(callback)

    async def is_available(self) -> bool:
        if self._available is not None:
            return self._available

        async with self._lock:
            # Another caller may have finished probing while we waited
            if self._available is not None:
                return self._available

            try:
                available = await self._runtime.ping()
            except Exception as e:
                logger.warning("Container runtime probe failed", error=str(e))
                available = False

            self._available = available
            if not available:
                logger.warning(
                    "Container runtime unavailable, sandboxes will run in simulation mode"
                )
                return False

        if not self._announced:
            self._announced = True
            logger.info("Container runtime available")
            await self._run_callbacks()
        return True

    def reset(self) -> None:
        """Forget the cached result so the next call probes again."""
        self._available = None

    async def _run_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                await callback()
            except Exception as e:
                logger.error("Runtime availability callback failed", error=str(e))
