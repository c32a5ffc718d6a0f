"""Sandbox (container runtime) configuration."""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class SandboxConfig(BaseSettings):
    """Container runtime and sandbox naming settings."""

    runtime_binary: str = Field(default="docker", alias="runtime_binary")
    sandbox_image: str = Field(default="node:20-alpine", alias="sandbox_image")
    container_prefix: str = Field(
        default="playground-sandbox-", alias="container_prefix"
    )
    volume_prefix: str = Field(default="playground-vol-", alias="volume_prefix")
    workspace_dir: str = Field(default="/workspace", alias="workspace_dir")
    sandbox_network: Optional[str] = Field(default=None, alias="sandbox_network")
    runtime_command_timeout_seconds: int = Field(
        default=60, ge=1, le=600, alias="runtime_command_timeout_seconds"
    )
    max_exec_seconds: int = Field(default=120, ge=1, le=3600, alias="max_exec_seconds")
    list_max_depth: int = Field(default=4, ge=1, le=10, alias="list_max_depth")
    list_excluded_dirs: List[str] = Field(
        default_factory=lambda: ["node_modules", "dist", "build", "coverage"],
        alias="list_excluded_dirs",
    )
    max_file_read_bytes: int = Field(
        default=512 * 1024, ge=1024, alias="max_file_read_bytes"
    )
    ready_wait_retries: int = Field(default=20, ge=0, le=600, alias="ready_wait_retries")
    ready_wait_backoff_seconds: float = Field(
        default=0.5, ge=0, le=10, alias="ready_wait_backoff_seconds"
    )

    class Config:
        env_prefix = ""
        extra = "ignore"
