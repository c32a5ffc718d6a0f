"""Resource limits configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ResourcesConfig(BaseSettings):
    """Resource limits requested for each sandbox."""

    # Container limits
    sandbox_memory_limit: str = Field(default="512m")
    sandbox_cpus: float = Field(default=0.5, gt=0, le=16)

    # Port mapping
    sandbox_internal_port: int = Field(default=3000, ge=1, le=65535)
    sandbox_port_range_start: int = Field(default=10000, ge=1024, le=65535)
    sandbox_port_range_end: int = Field(default=19999, ge=1024, le=65535)

    class Config:
        env_prefix = ""
        extra = "ignore"
