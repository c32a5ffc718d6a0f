"""Configuration management for the playground sandbox orchestrator.

This module provides a unified Settings class with flat field access while
organizing settings into logical groups.

Usage:
    from src.config import settings

    # Access grouped settings
    settings.sandbox.runtime_binary
    settings.timeouts.get_max_sandbox_age_minutes()

    # Or use flat access
    settings.runtime_binary
    settings.session_idle_timeout_minutes
"""

import re
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Import grouped configurations
from .api import APIConfig
from .logging import LoggingConfig
from .resources import ResourcesConfig
from .sandbox import SandboxConfig
from .timeouts import TimeoutsConfig

_MEMORY_LIMIT_PATTERN = re.compile(r"^\d+[bkmg]?$", re.IGNORECASE)


class Settings(BaseSettings):
    """Application settings with environment variable support.

    This class provides both:
    1. Grouped access via nested configs (settings.sandbox.runtime_binary)
    2. Flat access (settings.runtime_binary)
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Deployment environment. The session registry only survives module
    # reloads outside production.
    environment: str = Field(default="development")

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)
    enable_cors: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=list)
    enable_docs: bool = Field(default=True)
    preview_host: str = Field(
        default="localhost",
        description="Host on which sandbox ports are published",
    )

    # Container runtime Configuration
    runtime_binary: str = Field(
        default="docker",
        description="Container runtime CLI invoked for every sandbox operation",
    )
    sandbox_image: str = Field(default="node:20-alpine")
    container_prefix: str = Field(default="playground-sandbox-", min_length=1)
    volume_prefix: str = Field(default="playground-vol-", min_length=1)
    workspace_dir: str = Field(default="/workspace")
    sandbox_network: Optional[str] = Field(
        default=None,
        description="Network passed to the runtime (runtime default when unset)",
    )
    runtime_command_timeout_seconds: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Timeout for create/stop/remove/list runtime calls",
    )

    # Resource Limits
    sandbox_memory_limit: str = Field(default="512m")
    sandbox_cpus: float = Field(default=0.5, gt=0, le=16)
    sandbox_internal_port: int = Field(default=3000, ge=1, le=65535)
    sandbox_port_range_start: int = Field(default=10000, ge=1024, le=65535)
    sandbox_port_range_end: int = Field(default=19999, ge=1024, le=65535)

    # Command execution and file sync
    max_exec_seconds: int = Field(default=120, ge=1, le=3600)
    list_max_depth: int = Field(default=4, ge=1, le=10)
    list_excluded_dirs: List[str] = Field(
        default_factory=lambda: ["node_modules", "dist", "build", "coverage"]
    )
    max_file_read_bytes: int = Field(default=512 * 1024, ge=1024)
    ready_wait_retries: int = Field(
        default=20,
        ge=0,
        le=600,
        description="Polls while waiting for a session to exist or become ready",
    )
    ready_wait_backoff_seconds: float = Field(default=0.5, ge=0, le=10)

    # Session Lifecycle
    session_idle_timeout_minutes: int = Field(default=30, ge=1, le=1440)
    session_extension_minutes: int = Field(default=10, ge=1, le=1440)
    orphan_sweep_interval_minutes: int = Field(default=5, ge=1, le=60)

    # Project bootstrap
    bootstrap_enabled: bool = Field(default=True)
    bootstrap_command: str = Field(
        default="npx --yes servcraft init . --yes --{variant} --db none",
        description="Scaffolding command run in the workspace; {variant} is the project type",
    )
    bootstrap_timeout_seconds: int = Field(default=300, ge=10, le=1800)
    bootstrap_log_truncate_chars: int = Field(default=500, ge=0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    enable_access_logs: bool = Field(default=True)

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator("sandbox_memory_limit")
    @classmethod
    def validate_memory_limit(cls, v: str) -> str:
        """Ensure the memory limit uses the runtime's size syntax (e.g. 512m)."""
        if not _MEMORY_LIMIT_PATTERN.match(v):
            raise ValueError("sandbox_memory_limit must look like 512m, 1g or 1048576")
        return v.lower()

    @field_validator("bootstrap_command")
    @classmethod
    def validate_bootstrap_command(cls, v: str) -> str:
        """Ensure the bootstrap command can select the project variant."""
        if "{variant}" not in v:
            raise ValueError("bootstrap_command must contain a {variant} placeholder")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v.lower()

    @model_validator(mode="after")
    def validate_port_range(self) -> "Settings":
        """Ensure the sandbox port range is ordered."""
        if self.sandbox_port_range_start > self.sandbox_port_range_end:
            raise ValueError(
                "sandbox_port_range_start must not exceed sandbox_port_range_end"
            )
        return self

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def api(self) -> APIConfig:
        """Access API configuration group."""
        return APIConfig(
            api_host=self.api_host,
            api_port=self.api_port,
            api_debug=self.api_debug,
            api_reload=self.api_reload,
            enable_cors=self.enable_cors,
            cors_origins=self.cors_origins,
            enable_docs=self.enable_docs,
            preview_host=self.preview_host,
        )

    @property
    def sandbox(self) -> SandboxConfig:
        """Access container runtime configuration group."""
        return SandboxConfig(
            runtime_binary=self.runtime_binary,
            sandbox_image=self.sandbox_image,
            container_prefix=self.container_prefix,
            volume_prefix=self.volume_prefix,
            workspace_dir=self.workspace_dir,
            sandbox_network=self.sandbox_network,
            runtime_command_timeout_seconds=self.runtime_command_timeout_seconds,
            max_exec_seconds=self.max_exec_seconds,
            list_max_depth=self.list_max_depth,
            list_excluded_dirs=self.list_excluded_dirs,
            max_file_read_bytes=self.max_file_read_bytes,
            ready_wait_retries=self.ready_wait_retries,
            ready_wait_backoff_seconds=self.ready_wait_backoff_seconds,
        )

    @property
    def resources(self) -> ResourcesConfig:
        """Access resources configuration group."""
        return ResourcesConfig(
            sandbox_memory_limit=self.sandbox_memory_limit,
            sandbox_cpus=self.sandbox_cpus,
            sandbox_internal_port=self.sandbox_internal_port,
            sandbox_port_range_start=self.sandbox_port_range_start,
            sandbox_port_range_end=self.sandbox_port_range_end,
        )

    @property
    def timeouts(self) -> TimeoutsConfig:
        """Access session timeout configuration group."""
        return TimeoutsConfig(
            session_idle_timeout_minutes=self.session_idle_timeout_minutes,
            session_extension_minutes=self.session_extension_minutes,
            orphan_sweep_interval_minutes=self.orphan_sweep_interval_minutes,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            enable_access_logs=self.enable_access_logs,
        )

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    def get_idle_timeout_seconds(self) -> float:
        return self.session_idle_timeout_minutes * 60.0

    def get_extension_seconds(self) -> float:
        return self.session_extension_minutes * 60.0

    def get_max_sandbox_age_seconds(self) -> float:
        """Age after which the orphan sweep removes a sandbox."""
        return self.timeouts.get_max_sandbox_age_minutes() * 60.0


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    # Grouped configs
    "APIConfig",
    "LoggingConfig",
    "ResourcesConfig",
    "SandboxConfig",
    "TimeoutsConfig",
]
