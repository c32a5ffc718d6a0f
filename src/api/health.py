"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
import structlog

from ..dependencies.services import OrchestratorDep

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/health", summary="Basic health check")
async def basic_health_check():
    """Liveness check that never touches the container runtime."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "playground-sandbox-api",
    }


@router.get("/health/runtime", summary="Container runtime status")
async def runtime_health_check(orchestrator: OrchestratorDep, recheck: bool = False):
    """Report whether sandboxes are real or simulated.

    ``recheck=true`` drops a cached result and probes the runtime again.
    """
    if recheck:
        orchestrator.probe.reset()
    available = await orchestrator.probe.is_available()
    return {
        "status": "healthy" if available else "degraded",
        "runtime_available": available,
        "mode": "container" if available else "simulation",
        "active_sessions": len(orchestrator.registry),
        "reaper_running": orchestrator.reaper.running,
    }
