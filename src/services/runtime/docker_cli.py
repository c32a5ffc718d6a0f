"""Container runtime driven through the docker command-line client.

Every operation spawns the CLI with a fixed argument list via asyncio
subprocesses; results come back as stdout/stderr/exit code only.
"""

import asyncio
import os
import re
import signal
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import structlog

from ...models.errors import ContainerRuntimeError
from ...models.exec import ExecResult
from .interfaces import ContainerListing, ContainerRuntime, ContainerSpec

logger = structlog.get_logger(__name__)

# docker ps {{.CreatedAt}} looks like "2024-12-30 08:05:42 +0100 CET"
_CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S %z"

_MAX_OUTPUT_CHARS = 1024 * 1024


@dataclass
class CLIOutput:
    """Raw result of one CLI invocation."""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False


def parse_created_at(value: str) -> Optional[datetime]:
    """Parse the runtime's CreatedAt column, ignoring the zone abbreviation."""
    parts = value.strip().split()
    if len(parts) < 3:
        return None
    try:
        return datetime.strptime(" ".join(parts[:3]), _CREATED_AT_FORMAT)
    except ValueError:
        return None


def sanitize_output(output: bytes) -> str:
    """Decode command output, truncating oversized payloads."""
    text = output.decode("utf-8", errors="replace")
    if len(text) > _MAX_OUTPUT_CHARS:
        text = text[:_MAX_OUTPUT_CHARS] + "\n[Output truncated - size limit exceeded]"
    return re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", text)


class DockerCLIRuntime(ContainerRuntime):
    """ContainerRuntime implementation that shells out to the docker CLI."""

    def __init__(self, binary: str = "docker", command_timeout: float = 60.0):
        """Initialize the runtime client.

        Args:
            binary: Name or path of the runtime CLI
            command_timeout: Timeout for management commands (create/stop/rm/ls)
        """
        self._binary = binary
        self._command_timeout = command_timeout

    @property
    def binary(self) -> str:
        return self._binary

    async def _run(self, args: Sequence[str], timeout: Optional[float] = None) -> CLIOutput:
        """Run the CLI with args and capture its output.

        OSError from spawning propagates to the caller.
        """
        if timeout is None:
            timeout = self._command_timeout

        proc = await asyncio.create_subprocess_exec(
            self._binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,  # New process group for clean cleanup
        )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                proc.kill()
            await proc.wait()
            logger.warning(
                "Runtime command timed out",
                command=args[0] if args else "",
                timeout=timeout,
            )
            return CLIOutput(
                returncode=124,
                stdout="",
                stderr=f"Command timed out after {timeout} seconds",
                timed_out=True,
            )

        return CLIOutput(
            returncode=proc.returncode if proc.returncode is not None else 0,
            stdout=sanitize_output(stdout_bytes) if stdout_bytes else "",
            stderr=sanitize_output(stderr_bytes) if stderr_bytes else "",
        )

    async def ping(self) -> bool:
        try:
            result = await self._run(["info", "--format", "{{.ServerVersion}}"])
        except OSError as e:
            logger.debug("Runtime client not runnable", binary=self._binary, error=str(e))
            return False
        return result.returncode == 0

    def build_create_args(self, spec: ContainerSpec) -> List[str]:
        """Build the argument list for starting a sandbox container."""
        args = [
            "run",
            "-d",  # Detached
            "--name", spec.name,
            "--rm",  # Auto-remove when stopped
            "-m", spec.memory_limit,
            "--cpus", str(spec.cpus),
            "-v", f"{spec.volume_name}:{spec.workspace_dir}",
            "-w", spec.workspace_dir,
        ]
        if spec.network:
            args.extend(["--network", spec.network])
        if spec.host_port is not None and spec.container_port is not None:
            args.extend(["-p", f"{spec.host_port}:{spec.container_port}"])
        for key, value in sorted(spec.labels.items()):
            args.extend(["--label", f"{key}={value}"])
        args.append(spec.image)
        args.extend(spec.command)
        return args

    async def create(self, spec: ContainerSpec) -> str:
        result = await self._run(self.build_create_args(spec))
        container_id = result.stdout.strip()
        if result.returncode != 0 or not container_id:
            raise ContainerRuntimeError(
                "run", returncode=result.returncode, stderr=result.stderr
            )
        # Pull progress may precede the id on stdout
        return container_id.splitlines()[-1].strip()

    async def exec(
        self,
        container: str,
        argv: Sequence[str],
        workdir: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ExecResult:
        args = ["exec"]
        if workdir:
            args.extend(["-w", workdir])
        args.append(container)
        args.extend(argv)
        result = await self._run(args, timeout=timeout)
        return ExecResult(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.returncode,
            timed_out=result.timed_out,
        )

    async def stop(self, name: str) -> bool:
        result = await self._run(["stop", name])
        # 1 = container already stopped or gone
        return result.returncode in (0, 1)

    async def remove(self, name: str, force: bool = True) -> bool:
        args = ["rm"]
        if force:
            args.append("-f")
        args.append(name)
        result = await self._run(args)
        return result.returncode == 0

    async def remove_volume(self, name: str) -> bool:
        result = await self._run(["volume", "rm", name])
        if result.returncode != 0:
            logger.debug("Volume removal failed", volume=name, stderr=result.stderr.strip())
        return result.returncode == 0

    async def list_containers(self, prefix: str) -> List[ContainerListing]:
        result = await self._run(
            [
                "ps",
                "-a",
                "--filter", f"name={prefix}",
                "--format", "{{.Names}}\t{{.CreatedAt}}",
            ]
        )
        if result.returncode != 0:
            raise ContainerRuntimeError(
                "ps", returncode=result.returncode, stderr=result.stderr
            )

        listings: List[ContainerListing] = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, _, created = line.partition("\t")
            name = name.strip()
            # The name filter is a substring match; keep exact prefix matches only
            if not name.startswith(prefix):
                continue
            created_at = parse_created_at(created)
            if created_at is None:
                logger.warning(
                    "Could not parse container creation time, skipping",
                    container=name,
                    created_at=created,
                )
                continue
            listings.append(ContainerListing(name=name, created_at=created_at))
        return listings

    async def list_volumes(self, prefix: str) -> List[str]:
        result = await self._run(["volume", "ls", "-q", "--filter", f"name={prefix}"])
        if result.returncode != 0:
            raise ContainerRuntimeError(
                "volume ls", returncode=result.returncode, stderr=result.stderr
            )
        return [
            line.strip()
            for line in result.stdout.splitlines()
            if line.strip().startswith(prefix)
        ]
