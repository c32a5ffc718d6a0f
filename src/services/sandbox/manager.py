"""Sandbox lifecycle management on top of a container runtime."""

import asyncio
from typing import Dict, Optional

import structlog

from ...config import Settings
from ...models.errors import (
    ContainerRuntimeError,
    ResourceExhaustedError,
    SessionNotFoundError,
)
from ...models.session import ProjectType, Session, SIMULATION_PREFIX
from ..runtime.interfaces import ContainerRuntime, ContainerSpec
from ..runtime.probe import RuntimeAvailabilityProbe
from .bootstrap import ProjectBootstrapper
from .ports import PortAllocator
from .registry import SessionRegistry
from .timeouts import TimeoutScheduler

logger = structlog.get_logger(__name__)


class ContainerLifecycleManager:
    """Creates and tears down one sandbox per session.

    Creation never raises for runtime problems: an unreachable runtime or a
    failed create call turns the session into a simulation session. Teardown
    is best-effort and only logs failures.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        runtime: ContainerRuntime,
        probe: RuntimeAvailabilityProbe,
        ports: PortAllocator,
        timeouts: TimeoutScheduler,
        bootstrapper: ProjectBootstrapper,
        settings: Settings,
    ):
        self._registry = registry
        self._runtime = runtime
        self._probe = probe
        self._ports = ports
        self._timeouts = timeouts
        self._bootstrapper = bootstrapper
        self._settings = settings
        self._inflight: Dict[str, asyncio.Future] = {}
        self._destroying: Dict[str, asyncio.Future] = {}

    def container_name(self, session_id: str) -> str:
        return f"{self._settings.container_prefix}{session_id}"

    def volume_name(self, session_id: str) -> str:
        return f"{self._settings.volume_prefix}{session_id}"

    def session_id_for_container(self, name: str) -> Optional[str]:
        """Recover a session id from a container name, if it follows the convention."""
        prefix = self._settings.container_prefix
        if not name.startswith(prefix) or len(name) == len(prefix):
            return None
        return name[len(prefix):]

    def _build_spec(self, session: Session) -> ContainerSpec:
        labels = {
            "com.playground-sandbox.managed": "true",
            "com.playground-sandbox.session-id": session.id,
            "com.playground-sandbox.project-type": session.project_type.value,
            "com.playground-sandbox.created-at": session.created_at.isoformat(),
        }
        return ContainerSpec(
            name=session.container_name,
            image=self._settings.sandbox_image,
            volume_name=session.volume_name,
            workspace_dir=self._settings.workspace_dir,
            memory_limit=self._settings.sandbox_memory_limit,
            cpus=self._settings.sandbox_cpus,
            host_port=session.exposed_port,
            container_port=self._settings.sandbox_internal_port,
            network=self._settings.sandbox_network,
            labels=labels,
        )

    async def create_sandbox(
        self, session_id: str, project_type: ProjectType = ProjectType.TYPESCRIPT
    ) -> str:
        """Create (or return) the sandbox for a session.

        A call for an id that is being torn down waits for the teardown and
        then creates a fresh sandbox. A concurrent call for an id whose
        creation is in flight waits for that creation instead of starting a
        second sandbox.

        Args:
            session_id: Caller-supplied session identifier
            project_type: Starter project variant to bootstrap

        Returns:
            The runtime container id, or a simulation marker

        Raises:
            SessionNotFoundError: The session was destroyed before its
                sandbox finished starting
        """
        while True:
            destroying = self._destroying.get(session_id)
            if destroying is not None:
                await asyncio.shield(destroying)
                continue
            inflight = self._inflight.get(session_id)
            if inflight is not None:
                container_ref = await asyncio.shield(inflight)
                if container_ref is not None:
                    return container_ref
                # That creation was destroyed before it finished
                continue
            existing = self._registry.get(session_id)
            if existing is not None:
                return existing.container_ref
            break

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[session_id] = future
        container_ref: Optional[str] = None
        try:
            container_ref = await self._create(session_id, ProjectType(project_type))
        finally:
            self._inflight.pop(session_id, None)
            future.set_result(container_ref)

        if container_ref is None:
            raise SessionNotFoundError(session_id)
        return container_ref

    def _is_live(self, session: Session) -> bool:
        return (
            self._registry.get(session.id) is session
            and session.id not in self._destroying
        )

    async def _create(self, session_id: str, project_type: ProjectType) -> Optional[str]:
        port: Optional[int] = None
        try:
            port = self._ports.allocate()
        except ResourceExhaustedError as e:
            logger.warning("No sandbox port available", session_id=session_id, error=e.message)

        session = Session(
            id=session_id,
            project_type=project_type,
            container_name=self.container_name(session_id),
            volume_name=self.volume_name(session_id),
            exposed_port=port,
        )
        # Register before the runtime call so early exec/write calls find the session
        self._registry.put(session)

        if not await self._probe.is_available():
            return self._finalize_simulation(session, "runtime unavailable")
        if port is None:
            return self._finalize_simulation(session, "no port available")

        # Leftover from a crashed earlier attempt with the same name
        try:
            await self._runtime.remove(session.container_name, force=True)
        except OSError as e:
            logger.debug("Stale sandbox cleanup failed", session_id=session_id, error=str(e))

        try:
            container_id = await self._runtime.create(self._build_spec(session))
        except (ContainerRuntimeError, OSError) as e:
            logger.error(
                "Failed to create sandbox container",
                session_id=session_id,
                error=str(e),
            )
            return self._finalize_simulation(session, "container creation failed")

        if not self._is_live(session):
            logger.warning(
                "Session destroyed during creation, removing new sandbox",
                session_id=session_id,
                container_id=container_id[:12],
            )
            await self._teardown_runtime(session)
            # The destroy left the port to us while the session was pending
            self._ports.release(session.exposed_port)
            return None

        session.container_ref = container_id
        logger.info(
            "Created sandbox",
            session_id=session_id,
            container_id=container_id[:12],
            project_type=project_type.value,
            exposed_port=port,
        )

        await self._bootstrapper.bootstrap(session_id, project_type)
        if not self._is_live(session):
            logger.info("Session destroyed during bootstrap", session_id=session_id)
            return None
        self._timeouts.schedule(session_id)
        return container_id

    def _finalize_simulation(self, session: Session, reason: str) -> Optional[str]:
        self._ports.release(session.exposed_port)
        session.exposed_port = None
        if not self._is_live(session):
            logger.info("Session destroyed during creation", session_id=session.id)
            return None
        session.container_ref = f"{SIMULATION_PREFIX}{session.id}"
        self._timeouts.schedule(session.id)
        logger.info("Sandbox running in simulation mode", session_id=session.id, reason=reason)
        return session.container_ref

    async def destroy_sandbox(self, session_id: str) -> None:
        """Tear down a session's sandbox and forget the session.

        No-op for unknown sessions. A call that arrives while a teardown is
        already running waits for it. Failures are logged, never raised.
        """
        destroying = self._destroying.get(session_id)
        if destroying is not None:
            await asyncio.shield(destroying)
            return

        session = self._registry.get(session_id)
        if session is None:
            return

        # A creation still in flight owns the port and releases it itself
        owns_port = not session.is_pending
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._destroying[session_id] = future
        try:
            self._timeouts.cancel(session)
            if not session.is_simulated:
                await self._teardown_runtime(session)
            if self._registry.get(session_id) is session:
                self._registry.delete(session_id)
            if owns_port:
                self._ports.release(session.exposed_port)
            logger.info("Cleaned up sandbox", session_id=session_id)
        finally:
            self._destroying.pop(session_id, None)
            future.set_result(None)

    async def _teardown_runtime(self, session: Session) -> None:
        try:
            if not await self._runtime.stop(session.container_name):
                logger.warning("Failed to stop sandbox", session_id=session.id)
            # Covers runtimes that do not honour --rm
            await self._runtime.remove(session.container_name, force=True)
            if not await self._runtime.remove_volume(session.volume_name):
                logger.warning(
                    "Failed to remove sandbox volume",
                    session_id=session.id,
                    volume=session.volume_name,
                )
        except Exception as e:
            logger.error("Sandbox teardown failed", session_id=session.id, error=str(e))

    async def destroy_all_sandboxes(self) -> None:
        """Tear down every tracked sandbox (shutdown hook)."""
        session_ids = self._registry.ids()
        if not session_ids:
            return
        logger.info("Destroying all sandboxes", count=len(session_ids))
        results = await asyncio.gather(
            *(self.destroy_sandbox(sid) for sid in session_ids),
            return_exceptions=True,
        )
        for sid, result in zip(session_ids, results):
            if isinstance(result, Exception):
                logger.error("Sandbox shutdown cleanup failed", session_id=sid, error=str(result))

    def forget(self, session_id: str) -> None:
        """Drop a session whose sandbox was removed outside this manager."""
        session = self._registry.delete(session_id)
        if session is None:
            return
        self._timeouts.cancel(session)
        self._ports.release(session.exposed_port)
        logger.info("Forgot reaped session", session_id=session_id)
