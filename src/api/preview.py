"""Reverse proxy from the API to a sandbox's published port."""

from typing import Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, Response
import structlog

from ..config import settings
from ..dependencies.services import OrchestratorDep

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/playground/preview", tags=["preview"])

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Hop-by-hop headers are never forwarded
_HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "content-encoding",
}

_NOT_FOUND_PAGE = (
    "<html><body><h1>Session not found</h1>"
    "<p>Session may have expired.</p></body></html>"
)
_NOT_READY_PAGE = (
    "<html><body><h1>Service not ready</h1>"
    "<p>Server is starting. Refresh in a few seconds.</p></body></html>"
)

_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=5.0))
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _forward_headers(headers) -> dict:
    return {k: v for k, v in headers.items() if k.lower() not in _HOP_BY_HOP}


@router.api_route("/{session_id}", methods=PROXY_METHODS, include_in_schema=False)
@router.api_route("/{session_id}/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_preview(
    session_id: str, request: Request, orchestrator: OrchestratorDep, path: str = ""
):
    """Forward a request to the dev server running inside the sandbox."""
    session = orchestrator.get_status(session_id)
    if session is None or session.exposed_port is None:
        return HTMLResponse(_NOT_FOUND_PAGE, status_code=404)

    url = f"http://{settings.preview_host}:{session.exposed_port}/{path}"
    body = await request.body() if request.method not in ("GET", "HEAD") else None

    logger.debug("Proxying preview request", session_id=session_id, method=request.method, path=path)
    try:
        upstream = await get_http_client().request(
            request.method,
            url,
            params=request.query_params,
            headers=_forward_headers(request.headers),
            content=body,
        )
    except httpx.HTTPError as e:
        logger.info("Preview upstream not reachable", session_id=session_id, error=str(e))
        return HTMLResponse(_NOT_READY_PAGE, status_code=503)

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=_forward_headers(upstream.headers),
    )
