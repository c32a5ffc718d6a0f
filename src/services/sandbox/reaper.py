"""Age-based removal of playground sandboxes left behind by earlier processes.

The sweep works from the runtime's own container list, not the in-memory
registry, so it also recovers sandboxes orphaned by a restart.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog

from ..runtime.interfaces import ContainerRuntime

logger = structlog.get_logger(__name__)


@dataclass
class SweepReport:
    """Outcome of one orphan sweep."""

    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    volumes_removed: List[str] = field(default_factory=list)


class OrphanReaper:
    """Periodically force-removes sandboxes older than the maximum age."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        container_prefix: str,
        volume_prefix: str,
        max_age_seconds: float,
        interval_seconds: float,
        on_reaped: Optional[Callable[[str], None]] = None,
    ):
        """Initialize the reaper.

        Args:
            runtime: Container runtime to list and remove sandboxes with
            container_prefix: Naming prefix identifying playground containers
            volume_prefix: Naming prefix of the matching volumes
            max_age_seconds: Sandboxes strictly older than this are removed
            interval_seconds: Delay between periodic sweeps
            on_reaped: Called with the session id of every removed sandbox
        """
        self._runtime = runtime
        self._container_prefix = container_prefix
        self._volume_prefix = volume_prefix
        self._max_age = max_age_seconds
        self._interval = interval_seconds
        self._on_reaped = on_reaped
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def runtime(self) -> ContainerRuntime:
        return self._runtime

    @property
    def max_age_seconds(self) -> float:
        return self._max_age

    def volume_for(self, container_name: str) -> str:
        return self._volume_prefix + container_name[len(self._container_prefix):]

    async def start(self) -> None:
        """Start periodic sweeping; the first sweep runs immediately."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Orphan reaper started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Orphan reaper stopped")

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Orphan sweep failed", error=str(e))
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break

    async def sweep(
        self,
        now: Optional[datetime] = None,
        max_age_seconds: Optional[float] = None,
        dry_run: bool = False,
    ) -> SweepReport:
        """Remove every playground sandbox older than the maximum age.

        Args:
            now: Reference time for age computation (defaults to current UTC)
            max_age_seconds: Override of the configured maximum age
            dry_run: Report what would be removed without removing anything

        Returns:
            SweepReport listing removed, kept and failed container names
        """
        now = now or datetime.now(timezone.utc)
        max_age = self._max_age if max_age_seconds is None else max_age_seconds
        report = SweepReport()

        listings = await self._runtime.list_containers(self._container_prefix)
        for listing in listings:
            age = (now - listing.created_at).total_seconds()
            if age <= max_age:
                report.kept.append(listing.name)
                continue

            logger.info(
                "Removing expired sandbox",
                container=listing.name,
                age_minutes=int(age // 60),
                max_age_minutes=int(max_age // 60),
                dry_run=dry_run,
            )
            if dry_run:
                report.removed.append(listing.name)
                continue

            try:
                if not await self._runtime.remove(listing.name, force=True):
                    report.failed.append(listing.name)
                    logger.warning("Failed to remove sandbox", container=listing.name)
                    continue
                report.removed.append(listing.name)
                volume = self.volume_for(listing.name)
                if await self._runtime.remove_volume(volume):
                    report.volumes_removed.append(volume)
                if self._on_reaped is not None:
                    self._on_reaped(listing.name[len(self._container_prefix):])
            except Exception as e:
                report.failed.append(listing.name)
                logger.warning("Failed to reap sandbox", container=listing.name, error=str(e))

        if listings:
            logger.info(
                "Orphan sweep complete",
                removed=len(report.removed),
                kept=len(report.kept),
                failed=len(report.failed),
            )
        return report

    async def sweep_dangling_volumes(self, dry_run: bool = False) -> List[str]:
        """Remove playground volumes that no longer have a matching container.

        Returns:
            Names of the removed (or, with dry_run, removable) volumes
        """
        containers = await self._runtime.list_containers(self._container_prefix)
        live_volumes = {self.volume_for(c.name) for c in containers}
        removed: List[str] = []
        for volume in await self._runtime.list_volumes(self._volume_prefix):
            if volume in live_volumes:
                continue
            if dry_run:
                removed.append(volume)
                continue
            try:
                if await self._runtime.remove_volume(volume):
                    removed.append(volume)
            except Exception as e:
                logger.warning("Failed to remove dangling volume", volume=volume, error=str(e))
        if removed:
            logger.info("Removed dangling volumes", count=len(removed), dry_run=dry_run)
        return removed
