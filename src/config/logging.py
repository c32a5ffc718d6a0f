"""Logging configuration."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class LoggingConfig(BaseSettings):
    """Log level and output format."""

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    enable_access_logs: bool = Field(default=True)

    class Config:
        env_prefix = ""
        extra = "ignore"
