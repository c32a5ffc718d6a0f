"""Data models for the playground sandbox orchestrator."""

from .session import (
    PENDING_CONTAINER_REF,
    SIMULATION_PREFIX,
    ProjectType,
    Session,
    CreateSandboxRequest,
    CreateSandboxResponse,
    SessionRequest,
    SessionStatusResponse,
)
from .exec import (
    ExecResult,
    ShellRequest,
    ShellResponse,
    InstallRequest,
    InstallResponse,
)
from .files import (
    FileNode,
    FileListResponse,
    WriteFileRequest,
    SyncFilesRequest,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    PlaygroundException,
    ValidationError,
    SessionNotFoundError,
    SandboxNotReadyError,
    FileWriteError,
    SandboxExecutionError,
    ContainerRuntimeError,
    ResourceExhaustedError,
)

__all__ = [
    # Session models
    "PENDING_CONTAINER_REF",
    "SIMULATION_PREFIX",
    "ProjectType",
    "Session",
    "CreateSandboxRequest",
    "CreateSandboxResponse",
    "SessionRequest",
    "SessionStatusResponse",
    # Exec models
    "ExecResult",
    "ShellRequest",
    "ShellResponse",
    "InstallRequest",
    "InstallResponse",
    # File models
    "FileNode",
    "FileListResponse",
    "WriteFileRequest",
    "SyncFilesRequest",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "PlaygroundException",
    "ValidationError",
    "SessionNotFoundError",
    "SandboxNotReadyError",
    "FileWriteError",
    "SandboxExecutionError",
    "ContainerRuntimeError",
    "ResourceExhaustedError",
]
