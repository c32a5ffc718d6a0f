"""Dependency injection for the playground sandbox API."""

from .services import OrchestratorDep, get_orchestrator

__all__ = ["OrchestratorDep", "get_orchestrator"]
