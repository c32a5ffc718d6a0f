"""Sandbox orchestrator - the single entry point for sandbox operations.

This module wires the session registry, the container runtime and the
sandbox services together and exposes the operations the API layer uses.

Usage:
    orchestrator = build_orchestrator(settings)
    await orchestrator.start()
    container_ref = await orchestrator.create_sandbox("s1", ProjectType.TYPESCRIPT)
    result = await orchestrator.exec("s1", "ls")
"""

import re
import shlex
from typing import List, Optional

import structlog

from ..config import Settings
from ..models.errors import ValidationError
from ..models.exec import ExecResult
from ..models.files import FileNode
from ..models.session import ProjectType, Session
from .runtime import ContainerRuntime, DockerCLIRuntime, RuntimeAvailabilityProbe
from .sandbox import (
    AsyncioScheduler,
    CommandExecutor,
    ContainerLifecycleManager,
    FileSyncer,
    OrphanReaper,
    PortAllocator,
    ProjectBootstrapper,
    Scheduler,
    SessionRegistry,
    TimeoutScheduler,
    get_session_registry,
)

logger = structlog.get_logger(__name__)

BACKGROUND_LOG = "/tmp/server.log"

# npm package spec: optional scope, name, optional version or range
_PACKAGE_PATTERN = re.compile(
    r"^(@[a-z0-9][a-z0-9._~-]*/)?[a-z0-9][a-z0-9._~-]*(@[A-Za-z0-9._~^*+<>=|-]+)?$"
)


def validate_package_spec(spec: str) -> str:
    """Check an npm package spec such as ``lodash`` or ``@types/node@^20``."""
    spec = spec.strip()
    if len(spec) > 214 or not _PACKAGE_PATTERN.match(spec):
        raise ValidationError(f"Invalid package name: {spec!r}")
    return spec


class SandboxOrchestrator:
    """Coordinates sandbox lifecycle, execution and file transfer per session."""

    def __init__(
        self,
        settings: Settings,
        registry: SessionRegistry,
        probe: RuntimeAvailabilityProbe,
        manager: ContainerLifecycleManager,
        executor: CommandExecutor,
        files: FileSyncer,
        timeouts: TimeoutScheduler,
        reaper: OrphanReaper,
    ):
        self.settings = settings
        self.registry = registry
        self.probe = probe
        self.manager = manager
        self.executor = executor
        self.files = files
        self.timeouts = timeouts
        self.reaper = reaper

    async def start(self) -> bool:
        """Probe the runtime; the first positive result starts the reaper.

        Returns:
            Whether the container runtime is available
        """
        available = await self.probe.is_available()
        logger.info("Sandbox orchestrator started", runtime_available=available)
        return available

    async def stop(self) -> None:
        """Stop background work and tear down every tracked sandbox."""
        await self.reaper.stop()
        await self.destroy_all_sandboxes()
        logger.info("Sandbox orchestrator stopped")

    async def create_sandbox(
        self, session_id: str, project_type: ProjectType = ProjectType.TYPESCRIPT
    ) -> str:
        return await self.manager.create_sandbox(session_id, project_type)

    async def exec(
        self,
        session_id: str,
        command: str,
        workdir: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ExecResult:
        return await self.executor.exec(session_id, command, workdir=workdir, timeout=timeout)

    async def run_shell(
        self, session_id: str, command: str, background: bool = False
    ) -> ExecResult:
        """Run a user shell command in the workspace.

        Background commands are detached with nohup and log to a file in
        /tmp, so long-running dev servers do not hold the exec open.
        """
        if background:
            command = (
                f"nohup sh -c {shlex.quote(command)} > {BACKGROUND_LOG} 2>&1 & "
                'echo "Process started in background (PID: $!)"'
            )
        return await self.executor.exec(
            session_id, command, workdir=self.settings.workspace_dir
        )

    async def install_packages(self, session_id: str, packages: List[str]) -> ExecResult:
        """Install npm packages into the workspace, creating package.json if needed.

        Raises:
            ValidationError: No packages, or an invalid package spec
        """
        if not packages:
            raise ValidationError("At least one package is required")
        specs = [validate_package_spec(p) for p in packages]
        command = "[ -f package.json ] || npm init -y > /dev/null; npm install " + " ".join(
            shlex.quote(s) for s in specs
        )
        logger.info("Installing packages", session_id=session_id, packages=specs)
        return await self.executor.exec(
            session_id,
            command,
            workdir=self.settings.workspace_dir,
            timeout=self.settings.bootstrap_timeout_seconds,
        )

    async def write_file(self, session_id: str, path: str, content: str) -> None:
        await self.files.write_file(session_id, path, content)

    async def sync_files(self, session_id: str, nodes: List[FileNode]) -> int:
        return await self.files.sync_files(session_id, nodes)

    async def list_files(self, session_id: str) -> List[FileNode]:
        return await self.files.list_files(session_id)

    def extend_session(self, session_id: str) -> bool:
        return self.timeouts.extend(session_id)

    async def destroy_sandbox(self, session_id: str) -> None:
        await self.manager.destroy_sandbox(session_id)

    async def destroy_all_sandboxes(self) -> None:
        await self.manager.destroy_all_sandboxes()

    def get_status(self, session_id: str) -> Optional[Session]:
        return self.registry.get(session_id)

    def get_idle_timeout_ms(self) -> int:
        return int(self.settings.get_idle_timeout_seconds() * 1000)


def build_orchestrator(
    settings: Settings,
    registry: Optional[SessionRegistry] = None,
    runtime: Optional[ContainerRuntime] = None,
    scheduler: Optional[Scheduler] = None,
) -> SandboxOrchestrator:
    """Assemble a SandboxOrchestrator and its collaborators.

    Args:
        settings: Application settings
        registry: Session registry (the process-wide one by default)
        runtime: Container runtime (the docker CLI by default)
        scheduler: Timer source for evictions (the event loop by default)
    """
    registry = registry if registry is not None else get_session_registry()
    runtime = runtime or DockerCLIRuntime(
        binary=settings.runtime_binary,
        command_timeout=settings.runtime_command_timeout_seconds,
    )
    scheduler = scheduler or AsyncioScheduler()

    probe = RuntimeAvailabilityProbe(runtime)
    ports = PortAllocator(settings.sandbox_port_range_start, settings.sandbox_port_range_end)
    timeouts = TimeoutScheduler(
        registry,
        scheduler,
        idle_timeout_seconds=settings.get_idle_timeout_seconds(),
        extension_seconds=settings.get_extension_seconds(),
    )
    executor = CommandExecutor(registry, runtime, settings)
    bootstrapper = ProjectBootstrapper(executor, settings)
    manager = ContainerLifecycleManager(
        registry, runtime, probe, ports, timeouts, bootstrapper, settings
    )
    files = FileSyncer(registry, executor, settings)
    reaper = OrphanReaper(
        runtime,
        container_prefix=settings.container_prefix,
        volume_prefix=settings.volume_prefix,
        max_age_seconds=settings.get_max_sandbox_age_seconds(),
        interval_seconds=settings.orphan_sweep_interval_minutes * 60.0,
        on_reaped=manager.forget,
    )

    timeouts.set_expiry_handler(manager.destroy_sandbox)
    probe.on_first_available(reaper.start)

    return SandboxOrchestrator(
        settings=settings,
        registry=registry,
        probe=probe,
        manager=manager,
        executor=executor,
        files=files,
        timeouts=timeouts,
        reaper=reaper,
    )
