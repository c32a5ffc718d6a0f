"""Host port allocation for sandbox port mappings."""

import random
from typing import Optional, Set

import structlog

from ...models.errors import ResourceExhaustedError

logger = structlog.get_logger(__name__)


class PortAllocator:
    """Hands out pseudo-random host ports from a fixed range without reuse.

    A port stays allocated until released, so two live sandboxes never get
    the same mapping.
    """

    def __init__(self, start: int, end: int, rng: Optional[random.Random] = None):
        if start > end:
            raise ValueError("Port range start must not exceed end")
        self._start = start
        self._end = end
        self._rng = rng or random.Random()
        self._allocated: Set[int] = set()

    @property
    def allocated(self) -> Set[int]:
        return set(self._allocated)

    def contains(self, port: int) -> bool:
        return self._start <= port <= self._end

    def allocate(self) -> int:
        size = self._end - self._start + 1
        if len(self._allocated) >= size:
            raise ResourceExhaustedError(
                "ports", f"All {size} sandbox ports are in use"
            )

        # Random probing is fast while the range is sparsely used
        for _ in range(32):
            port = self._rng.randint(self._start, self._end)
            if port not in self._allocated:
                self._allocated.add(port)
                return port

        free = [p for p in range(self._start, self._end + 1) if p not in self._allocated]
        port = self._rng.choice(free)
        self._allocated.add(port)
        return port

    def release(self, port: Optional[int]) -> None:
        if port is not None:
            self._allocated.discard(port)
