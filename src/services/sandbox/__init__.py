"""Sandbox session management on top of a container runtime.

This package provides the per-session sandbox lifecycle:
- registry.py: process-wide session registry
- ports.py: host port allocation for sandbox previews
- manager.py: sandbox creation, simulation fallback and teardown
- executor.py: command execution in sandboxes
- files.py: workspace listing and file writes
- timeouts.py: idle eviction and the one-time extension
- reaper.py: age-based removal of orphaned sandboxes
- bootstrap.py: starter project generation
"""

from .registry import SessionRegistry, get_session_registry
from .ports import PortAllocator
from .manager import ContainerLifecycleManager
from .executor import CommandExecutor
from .files import FileSyncer
from .timeouts import AsyncioScheduler, Scheduler, ScheduledCall, TimeoutScheduler
from .reaper import OrphanReaper, SweepReport
from .bootstrap import ProjectBootstrapper

__all__ = [
    "SessionRegistry",
    "get_session_registry",
    "PortAllocator",
    "ContainerLifecycleManager",
    "CommandExecutor",
    "FileSyncer",
    "AsyncioScheduler",
    "Scheduler",
    "ScheduledCall",
    "TimeoutScheduler",
    "OrphanReaper",
    "SweepReport",
    "ProjectBootstrapper",
]
