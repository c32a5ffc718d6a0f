"""Session timeout and reaping configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class TimeoutsConfig(BaseSettings):
    """Idle eviction, extension window and orphan sweep settings."""

    session_idle_timeout_minutes: int = Field(default=30, ge=1, le=1440)
    session_extension_minutes: int = Field(default=10, ge=1, le=1440)
    orphan_sweep_interval_minutes: int = Field(default=5, ge=1, le=60)

    def get_max_sandbox_age_minutes(self) -> int:
        """Age after which a sandbox is considered orphaned."""
        return self.session_idle_timeout_minutes + self.session_extension_minutes

    class Config:
        env_prefix = ""
        extra = "ignore"
