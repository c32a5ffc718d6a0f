"""Container runtime abstraction.

Orchestration code talks to the runtime only through ContainerRuntime so the
CLI-backed implementation can be swapped for a fake in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ...models.exec import ExecResult


@dataclass
class ContainerSpec:
    """Everything the runtime needs to start one sandbox container."""

    name: str
    image: str
    volume_name: str
    workspace_dir: str
    memory_limit: str
    cpus: float
    host_port: Optional[int] = None
    container_port: Optional[int] = None
    network: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    command: List[str] = field(default_factory=lambda: ["sleep", "infinity"])


@dataclass
class ContainerListing:
    """A container discovered by name prefix."""

    name: str
    created_at: datetime


class ContainerRuntime(ABC):
    """Operations the orchestrator issues against a container runtime."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the runtime is reachable."""

    @abstractmethod
    async def create(self, spec: ContainerSpec) -> str:
        """Start a detached container and return its runtime identifier.

        Raises:
            ContainerRuntimeError: the runtime rejected the request
            OSError: the runtime client could not be spawned
        """

    @abstractmethod
    async def exec(
        self,
        container: str,
        argv: Sequence[str],
        workdir: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ExecResult:
        """Run argv inside a container and capture its output.

        Raises:
            OSError: the runtime client could not be spawned
        """

    @abstractmethod
    async def stop(self, name: str) -> bool:
        """Stop a container. Already-stopped containers count as success."""

    @abstractmethod
    async def remove(self, name: str, force: bool = True) -> bool:
        """Remove a container."""

    @abstractmethod
    async def remove_volume(self, name: str) -> bool:
        """Remove a named volume."""

    @abstractmethod
    async def list_containers(self, prefix: str) -> List[ContainerListing]:
        """List containers (running or not) whose name starts with prefix."""

    @abstractmethod
    async def list_volumes(self, prefix: str) -> List[str]:
        """List volume names starting with prefix."""
