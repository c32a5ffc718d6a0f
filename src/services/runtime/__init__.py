"""Container runtime access.

- interfaces.py: ContainerRuntime abstraction and its value types
- docker_cli.py: subprocess-backed docker CLI implementation
- probe.py: memoized runtime availability probe
"""

from .interfaces import ContainerListing, ContainerRuntime, ContainerSpec
from .docker_cli import DockerCLIRuntime
from .probe import RuntimeAvailabilityProbe

__all__ = [
    "ContainerListing",
    "ContainerRuntime",
    "ContainerSpec",
    "DockerCLIRuntime",
    "RuntimeAvailabilityProbe",
]
