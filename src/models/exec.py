"""Command execution models."""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, Field


@dataclass
class ExecResult:
    """Captured output of a command run inside a sandbox."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class ShellRequest(BaseModel):
    """Request model for running a shell command in a sandbox."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    command: str = Field(..., min_length=1, max_length=10000)
    background: bool = Field(default=False)

    model_config = {"populate_by_name": True}


class ShellResponse(BaseModel):
    """Response model for shell commands."""

    success: bool
    output: str
    error: str
    exit_code: int = Field(..., serialization_alias="exitCode")
    background: bool = False


class InstallRequest(BaseModel):
    """Request model for installing npm packages in a sandbox."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    packages: List[str] = Field(..., min_length=1, max_length=50)

    model_config = {"populate_by_name": True}


class InstallResponse(BaseModel):
    """Response model for package installation."""

    success: bool
    output: str
    error: str
