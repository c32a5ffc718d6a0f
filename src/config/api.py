"""API server configuration."""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """HTTP server settings."""

    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)
    enable_cors: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=list)
    enable_docs: bool = Field(default=True)
    preview_host: str = Field(default="localhost")

    class Config:
        env_prefix = ""
        extra = "ignore"
