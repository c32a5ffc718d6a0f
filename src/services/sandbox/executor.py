"""Command execution inside sandbox containers."""

from typing import Optional

import structlog

from ...config import Settings
from ...models.errors import SandboxExecutionError, SessionNotFoundError
from ...models.exec import ExecResult
from ..runtime.interfaces import ContainerRuntime
from .registry import SessionRegistry

logger = structlog.get_logger(__name__)

SIMULATION_OUTPUT = "[Simulation Mode] Executed: {command}"


class CommandExecutor:
    """Runs shell commands in a session's sandbox and captures the output.

    Simulation sessions get a canned successful result and never touch the
    runtime.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        runtime: ContainerRuntime,
        settings: Settings,
    ):
        self._registry = registry
        self._runtime = runtime
        self._settings = settings

    async def exec(
        self,
        session_id: str,
        command: str,
        workdir: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ExecResult:
        """Execute a shell command in the session's sandbox.

        Args:
            session_id: Session identifier
            command: Shell command, run through ``sh -c``
            workdir: Working directory inside the sandbox
            timeout: Seconds before the runtime client is killed

        Returns:
            ExecResult with captured stdout, stderr and exit code

        Raises:
            SessionNotFoundError: Unknown session id
            SandboxNotReadyError: Sandbox still being created after the wait window
            SandboxExecutionError: The runtime client could not be spawned
        """
        session = self._registry.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        session.touch()

        if session.is_pending:
            session = await self._registry.wait_until_ready(
                session_id,
                retries=self._settings.ready_wait_retries,
                backoff=self._settings.ready_wait_backoff_seconds,
            )

        if session.is_simulated:
            return ExecResult(
                stdout=SIMULATION_OUTPUT.format(command=command),
                stderr="",
                exit_code=0,
            )

        if timeout is None:
            timeout = self._settings.max_exec_seconds

        try:
            result = await self._runtime.exec(
                session.container_ref,
                ["sh", "-c", command],
                workdir=workdir,
                timeout=timeout,
            )
        except OSError as e:
            logger.error(
                "Failed to spawn command in sandbox",
                session_id=session_id,
                error=str(e),
            )
            raise SandboxExecutionError(f"Execution failed: {e}") from e

        if result.exit_code is None:
            result.exit_code = 0
        if result.timed_out:
            logger.warning(
                "Sandbox command timed out",
                session_id=session_id,
                timeout=timeout,
            )
        return result
