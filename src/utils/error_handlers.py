"""Exception handlers that turn service errors into JSON error responses."""

import uuid
from typing import Any, Dict

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..models.errors import (
    PlaygroundException,
    ErrorResponse,
    ErrorType,
    ErrorDetail,
)

logger = structlog.get_logger(__name__)


def generate_request_id() -> str:
    """Short id echoed in the response body and the log line."""
    return uuid.uuid4().hex[:12]


def _request_fields(request: Request) -> Dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "client_ip": request.client.host if request.client else "unknown",
    }


def _respond(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def playground_exception_handler(
    request: Request, exc: PlaygroundException
) -> JSONResponse:
    """Map a PlaygroundException to its status code.

    Session and validation errors are the caller's problem and log at warning;
    5xx errors come from the runtime or the sandbox and log at error.
    """
    exc.request_id = exc.request_id or generate_request_id()
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request failed",
        error_type=ErrorType(exc.error_type).value,
        status_code=exc.status_code,
        error=exc.message,
        request_id=exc.request_id,
        **_request_fields(request),
    )
    return _respond(exc.status_code, exc.to_response())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies and query strings as 422."""
    request_id = generate_request_id()
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        request_id=request_id,
        fields=[d.field for d in details],
        **_request_fields(request),
    )
    return _respond(
        422,
        ErrorResponse(
            error="Request validation failed",
            error_type=ErrorType.VALIDATION,
            details=details,
            request_id=request_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = generate_request_id()
    logger.exception(
        "Unhandled error",
        request_id=request_id,
        exception_type=type(exc).__name__,
        **_request_fields(request),
    )
    # Internal details stay in the log
    return _respond(
        500,
        ErrorResponse(
            error="An unexpected error occurred",
            error_type=ErrorType.INTERNAL_SERVER,
            request_id=request_id,
        ),
    )
