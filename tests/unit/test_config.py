"""Unit tests for settings."""

import pytest
from pydantic import ValidationError

from src.config import Settings


class TestSettings:
    """Test defaults, validators and grouped views."""

    def test_defaults_match_sandbox_policy(self):
        settings = Settings()
        assert settings.sandbox_image == "node:20-alpine"
        assert settings.sandbox_memory_limit == "512m"
        assert settings.sandbox_cpus == 0.5
        assert settings.get_idle_timeout_seconds() == 30 * 60
        assert settings.get_extension_seconds() == 10 * 60

    def test_max_sandbox_age_is_idle_plus_extension(self):
        settings = Settings(session_idle_timeout_minutes=20, session_extension_minutes=5)
        assert settings.timeouts.get_max_sandbox_age_minutes() == 25
        assert settings.get_max_sandbox_age_seconds() == 25 * 60

    def test_grouped_views(self):
        settings = Settings(container_prefix="pg-", sandbox_cpus=1.5)
        assert settings.sandbox.container_prefix == "pg-"
        assert settings.resources.sandbox_cpus == 1.5

    def test_memory_limit_validation(self):
        assert Settings(sandbox_memory_limit="1G").sandbox_memory_limit == "1g"
        with pytest.raises(ValidationError):
            Settings(sandbox_memory_limit="lots")

    def test_bootstrap_command_needs_variant_placeholder(self):
        with pytest.raises(ValidationError):
            Settings(bootstrap_command="npx servcraft init . --yes")

    def test_port_range_must_be_ordered(self):
        with pytest.raises(ValidationError):
            Settings(sandbox_port_range_start=20000, sandbox_port_range_end=10000)

    def test_is_production(self):
        assert Settings(environment="production").is_production is True
        assert Settings(environment="development").is_production is False
