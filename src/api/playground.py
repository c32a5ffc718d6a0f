"""Playground sandbox endpoints consumed by the editor UI."""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from ..dependencies.services import OrchestratorDep
from ..models.errors import SessionNotFoundError
from ..models.exec import InstallRequest, InstallResponse, ShellRequest, ShellResponse
from ..models.files import FileListResponse, SyncFilesRequest, WriteFileRequest
from ..models.session import (
    CreateSandboxRequest,
    CreateSandboxResponse,
    SessionRequest,
    SessionStatusResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/playground", tags=["playground"])


@router.post("/container", response_model=CreateSandboxResponse)
async def create_container(request: CreateSandboxRequest, orchestrator: OrchestratorDep):
    """Create the sandbox for a session, or return the one already running."""
    existing = orchestrator.get_status(request.session_id)
    timeout_ms = orchestrator.get_idle_timeout_ms()
    if existing is not None and not existing.is_pending:
        return CreateSandboxResponse(
            container_id=existing.container_ref,
            existing=True,
            simulated=existing.is_simulated,
            exposed_port=existing.exposed_port,
            timeout=timeout_ms,
            message="Container already exists",
        )

    container_ref = await orchestrator.create_sandbox(
        request.session_id, request.project_type
    )
    session = orchestrator.get_status(request.session_id)
    return CreateSandboxResponse(
        container_id=container_ref,
        simulated=session.is_simulated if session else False,
        exposed_port=session.exposed_port if session else None,
        timeout=timeout_ms,
    )


@router.get("/container", response_model=SessionStatusResponse)
async def get_container(
    orchestrator: OrchestratorDep, session_id: str = Query(..., alias="sessionId")
):
    session = orchestrator.get_status(session_id)
    if session is None:
        return JSONResponse(status_code=404, content={"exists": False})
    return session.to_response()


@router.delete("/container")
async def delete_container(
    orchestrator: OrchestratorDep, session_id: str = Query(..., alias="sessionId")
):
    await orchestrator.destroy_sandbox(session_id)
    return {"success": True, "message": "Container destroyed"}


@router.post("/container/extend")
async def extend_container(request: SessionRequest, orchestrator: OrchestratorDep):
    """Grant the one-time timeout extension."""
    extended = orchestrator.extend_session(request.session_id)
    session = orchestrator.get_status(request.session_id)
    return {
        "extended": extended,
        "expiresAt": session.expires_at.isoformat() if session and session.expires_at else None,
    }


@router.post("/shell", response_model=ShellResponse)
async def run_shell(request: ShellRequest, orchestrator: OrchestratorDep):
    result = await orchestrator.run_shell(
        request.session_id, request.command, background=request.background
    )
    return ShellResponse(
        success=result.ok,
        output=result.stdout,
        error=result.stderr,
        exit_code=result.exit_code,
        background=request.background,
    )


@router.post("/install", response_model=InstallResponse)
async def install_packages(request: InstallRequest, orchestrator: OrchestratorDep):
    result = await orchestrator.install_packages(request.session_id, request.packages)
    return InstallResponse(success=result.ok, output=result.stdout, error=result.stderr)


@router.get("/files", response_model=FileListResponse)
async def list_files(
    orchestrator: OrchestratorDep, session_id: str = Query(..., alias="sessionId")
):
    files = await orchestrator.list_files(session_id)
    return FileListResponse(files=files)


@router.put("/files")
async def write_file(request: WriteFileRequest, orchestrator: OrchestratorDep):
    await orchestrator.write_file(request.session_id, request.path, request.content)
    return {"success": True}


@router.post("/sync")
async def sync_files(request: SyncFilesRequest, orchestrator: OrchestratorDep):
    """Push a whole file tree from the editor into the sandbox."""
    if orchestrator.get_status(request.session_id) is None:
        raise SessionNotFoundError(request.session_id)
    written = await orchestrator.sync_files(request.session_id, request.files)
    logger.info("Synced files", session_id=request.session_id, count=written)
    return {"success": True, "written": written}
