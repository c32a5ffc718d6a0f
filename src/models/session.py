"""Session data models for the playground sandbox orchestrator."""

# Standard library imports
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

# Third-party imports
from pydantic import BaseModel, Field

# Container ref held while the runtime create call is in flight
PENDING_CONTAINER_REF = "pending"

# Prefix of container refs for sessions without a real sandbox
SIMULATION_PREFIX = "simulation-"


class ProjectType(str, Enum):
    """Starter project variants the scaffolding tool can generate."""

    TYPESCRIPT = "ts"
    JAVASCRIPT = "js"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """Runtime-only record of one sandbox session.

    ``container_ref`` moves from PENDING_CONTAINER_REF to either a real
    runtime identifier or a simulation marker exactly once.
    ``eviction_handle`` is the pending teardown for this session, if any.
    """

    id: str
    project_type: ProjectType
    container_name: str
    volume_name: str
    container_ref: str = PENDING_CONTAINER_REF
    exposed_port: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    last_accessed: datetime = field(default_factory=_utcnow)
    is_extended: bool = False
    eviction_handle: Optional[Any] = None
    expires_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.container_ref == PENDING_CONTAINER_REF

    @property
    def is_simulated(self) -> bool:
        return self.container_ref.startswith(SIMULATION_PREFIX)

    def touch(self) -> None:
        self.last_accessed = _utcnow()

    def mark_evicting_in(self, seconds: float) -> None:
        self.expires_at = _utcnow() + timedelta(seconds=seconds)

    def to_response(self) -> "SessionStatusResponse":
        return SessionStatusResponse(
            session_id=self.id,
            container_id=self.container_ref,
            project_type=self.project_type,
            exposed_port=self.exposed_port,
            created_at=self.created_at,
            last_accessed=self.last_accessed,
            expires_at=self.expires_at,
            is_extended=self.is_extended,
            simulated=self.is_simulated,
            pending=self.is_pending,
        )


class CreateSandboxRequest(BaseModel):
    """Request model for creating a sandbox."""

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)
    project_type: ProjectType = Field(default=ProjectType.TYPESCRIPT, alias="projectType")

    model_config = {"populate_by_name": True}


class SessionRequest(BaseModel):
    """Request model for operations that only need a session id."""

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)

    model_config = {"populate_by_name": True}


class CreateSandboxResponse(BaseModel):
    """Response model for sandbox creation."""

    success: bool = True
    container_id: str = Field(..., serialization_alias="containerId")
    existing: bool = False
    simulated: bool = False
    exposed_port: Optional[int] = Field(default=None, serialization_alias="exposedPort")
    timeout: int = Field(..., description="Idle timeout in milliseconds")
    message: str = "Container created successfully"


class SessionStatusResponse(BaseModel):
    """Response model for session status."""

    exists: bool = True
    session_id: str = Field(..., serialization_alias="sessionId")
    container_id: str = Field(..., serialization_alias="containerId")
    project_type: ProjectType = Field(..., serialization_alias="projectType")
    exposed_port: Optional[int] = Field(default=None, serialization_alias="exposedPort")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    last_accessed: datetime = Field(..., serialization_alias="lastAccessed")
    expires_at: Optional[datetime] = Field(default=None, serialization_alias="expiresAt")
    is_extended: bool = Field(default=False, serialization_alias="isExtended")
    simulated: bool = False
    pending: bool = False
