"""Pytest configuration and shared fixtures."""

import asyncio
import base64
import os
import shlex
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import pytest
import pytest_asyncio

# Set test environment before importing config
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from src.config import Settings
from src.models.exec import ExecResult
from src.services.orchestrator import SandboxOrchestrator, build_orchestrator
from src.services.runtime.interfaces import (
    ContainerListing,
    ContainerRuntime,
    ContainerSpec,
)
from src.services.sandbox.registry import SessionRegistry
from src.services.sandbox.timeouts import Callback, ScheduledCall, Scheduler

ExecHandler = Callable[[str, Sequence[str], Optional[str]], ExecResult]


class FakeRuntime(ContainerRuntime):
    """In-memory ContainerRuntime recording every call."""

    def __init__(self, available: bool = True):
        self.available = available
        self.containers: Dict[str, ContainerSpec] = {}
        self.created_at: Dict[str, datetime] = {}
        self.volumes: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []
        self.exec_calls: List[Tuple[str, List[str], Optional[str]]] = []
        self.create_error: Optional[Exception] = None
        self.create_gate: Optional[asyncio.Event] = None
        self.exec_error: Optional[Exception] = None
        self.exec_handler: Optional[ExecHandler] = None
        self.stop_gate: Optional[asyncio.Event] = None
        self.stop_result = True
        self._next_id = 0

    def add_orphan(self, name: str, age: timedelta, volume: Optional[str] = None) -> None:
        self.containers[name] = ContainerSpec(
            name=name,
            image="node:20-alpine",
            volume_name=volume or "",
            workspace_dir="/workspace",
            memory_limit="512m",
            cpus=0.5,
        )
        self.created_at[name] = datetime.now(timezone.utc) - age
        if volume:
            self.volumes.add(volume)

    async def ping(self) -> bool:
        self.calls.append(("ping", ""))
        return self.available

    async def create(self, spec: ContainerSpec) -> str:
        self.calls.append(("create", spec.name))
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_error is not None:
            raise self.create_error
        self._next_id += 1
        container_id = f"{self._next_id:04d}cafe0000deadbeef"
        self.containers[spec.name] = spec
        self.created_at[spec.name] = datetime.now(timezone.utc)
        self.volumes.add(spec.volume_name)
        return container_id

    async def exec(
        self,
        container: str,
        argv: Sequence[str],
        workdir: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ExecResult:
        self.exec_calls.append((container, list(argv), workdir))
        if self.exec_error is not None:
            raise self.exec_error
        if self.exec_handler is not None:
            return self.exec_handler(container, argv, workdir)
        return ExecResult(stdout="", stderr="", exit_code=0)

    async def stop(self, name: str) -> bool:
        self.calls.append(("stop", name))
        if self.stop_gate is not None:
            await self.stop_gate.wait()
        self.containers.pop(name, None)
        return self.stop_result

    async def remove(self, name: str, force: bool = True) -> bool:
        self.calls.append(("remove", name))
        return self.containers.pop(name, None) is not None

    async def remove_volume(self, name: str) -> bool:
        self.calls.append(("remove_volume", name))
        if name in self.volumes:
            self.volumes.discard(name)
            return True
        return False

    async def list_containers(self, prefix: str) -> List[ContainerListing]:
        self.calls.append(("list_containers", prefix))
        return [
            ContainerListing(name=name, created_at=self.created_at[name])
            for name in self.containers
            if name.startswith(prefix)
        ]

    async def list_volumes(self, prefix: str) -> List[str]:
        return sorted(v for v in self.volumes if v.startswith(prefix))

    def ops(self, op: str) -> List[str]:
        return [arg for name, arg in self.calls if name == op]


class _ManualCall(ScheduledCall):
    def __init__(self, when: float, callback: Callback):
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Scheduler driven by advance() instead of wall-clock time."""

    def __init__(self):
        self.now = 0.0
        self.calls: List[_ManualCall] = []

    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        call = _ManualCall(self.now + delay, callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[_ManualCall]:
        return [c for c in self.calls if not c.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move time forward, running every callback that falls due in order."""
        target = self.now + seconds
        while True:
            due = sorted(
                (c for c in self.calls if not c.cancelled and c.when <= target),
                key=lambda c: c.when,
            )
            if not due:
                break
            call = due[0]
            self.calls.remove(call)
            self.now = max(self.now, call.when)
            await call.callback()
        self.now = target


def workspace_shell(files: Dict[str, str]) -> ExecHandler:
    """Exec handler answering the listing, read and write commands from a dict."""

    def handler(container: str, argv: Sequence[str], workdir: Optional[str]) -> ExecResult:
        command = argv[-1]
        if command.startswith("{ find "):
            dirs = set()
            for path in files:
                parts = path.split("/")[:-1]
                for i in range(1, len(parts) + 1):
                    dirs.add("/".join(parts[:i]))
            lines = [f"./{d}/" for d in sorted(dirs)] + [f"./{p}" for p in sorted(files)]
            return ExecResult(stdout="\n".join(lines) + "\n", stderr="", exit_code=0)
        if command.startswith("head -c "):
            path = shlex.split(command)[-1]
            if path not in files:
                return ExecResult(stdout="", stderr="No such file", exit_code=1)
            return ExecResult(stdout=files[path], stderr="", exit_code=0)
        if "base64 -d >" in command:
            tokens = shlex.split(command)
            encoded = tokens[tokens.index("printf") + 2]
            files[tokens[-1]] = base64.b64decode(encoded).decode("utf-8")
            return ExecResult(stdout="", stderr="", exit_code=0)
        return ExecResult(stdout="", stderr="", exit_code=0)

    return handler


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short waits and bootstrap disabled."""
    return Settings(
        environment="test",
        ready_wait_retries=5,
        ready_wait_backoff_seconds=0.01,
        bootstrap_enabled=False,
        sandbox_port_range_start=20000,
        sandbox_port_range_end=20099,
    )


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest_asyncio.fixture
async def orchestrator(test_settings, registry, fake_runtime, manual_scheduler):
    """Fully wired orchestrator over the fake runtime and manual clock."""
    orch: SandboxOrchestrator = build_orchestrator(
        test_settings,
        registry=registry,
        runtime=fake_runtime,
        scheduler=manual_scheduler,
    )
    yield orch
    await orch.reaper.stop()


@pytest.fixture
def workspace_files(fake_runtime) -> Dict[str, str]:
    """Workspace contents of every fake sandbox, keyed by relative path."""
    files: Dict[str, str] = {}
    fake_runtime.exec_handler = workspace_shell(files)
    return files
