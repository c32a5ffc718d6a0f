"""API endpoints for the playground sandbox orchestrator."""

from . import health, playground, preview

__all__ = ["health", "playground", "preview"]
