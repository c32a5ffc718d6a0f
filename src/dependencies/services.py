"""Service dependency injection for the playground sandbox API."""

# Standard library imports
from functools import lru_cache
from typing import Annotated

# Third-party imports
from fastapi import Depends
import structlog

# Local application imports
from ..config import settings
from ..services.orchestrator import SandboxOrchestrator, build_orchestrator

logger = structlog.get_logger(__name__)


@lru_cache()
def get_orchestrator() -> SandboxOrchestrator:
    """Get the process-wide sandbox orchestrator."""
    orchestrator = build_orchestrator(settings)
    logger.info("Sandbox orchestrator initialized")
    return orchestrator


# Type aliases for dependency injection
OrchestratorDep = Annotated[SandboxOrchestrator, Depends(get_orchestrator)]
