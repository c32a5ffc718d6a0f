"""Error models and exception classes for the playground sandbox orchestrator."""

import time
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration."""

    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    RESOURCE_CONFLICT = "resource_conflict"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    EXECUTION_FAILED = "execution_failed"
    INTERNAL_SERVER = "internal_server"
    EXTERNAL_SERVICE = "external_service"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    model_config = ConfigDict(use_enum_values=True)

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    request_id: Optional[str] = Field(
        None, description="Request identifier for tracking"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")


# Custom Exception Classes


class PlaygroundException(Exception):
    """Base exception for the sandbox orchestrator."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        self.request_id = request_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
            request_id=self.request_id,
        )


class ValidationError(PlaygroundException):
    """Request validation errors."""

    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.VALIDATION, status_code=400, **kwargs
        )


class SessionNotFoundError(PlaygroundException):
    """Raised when an operation targets an unknown session id."""

    def __init__(self, session_id: str, **kwargs):
        self.session_id = session_id
        super().__init__(
            message=f"Session not found: {session_id}",
            error_type=ErrorType.RESOURCE_NOT_FOUND,
            status_code=404,
            **kwargs,
        )


class SandboxNotReadyError(PlaygroundException):
    """Raised when a sandbox is still being created after the wait window."""

    def __init__(self, session_id: str, **kwargs):
        self.session_id = session_id
        super().__init__(
            message=f"Sandbox for session {session_id} is not ready yet",
            error_type=ErrorType.RESOURCE_CONFLICT,
            status_code=409,
            **kwargs,
        )


class FileWriteError(PlaygroundException):
    """Raised when writing a file into a sandbox fails."""

    def __init__(self, path: str, reason: str = "", **kwargs):
        self.path = path
        message = f"Failed to write {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_type=ErrorType.EXECUTION_FAILED,
            status_code=500,
            **kwargs,
        )


class SandboxExecutionError(PlaygroundException):
    """Raised when a command cannot be spawned against a sandbox."""

    def __init__(self, message: str = "Sandbox execution failed", **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.EXTERNAL_SERVICE,
            status_code=502,
            **kwargs,
        )


class ContainerRuntimeError(PlaygroundException):
    """Raised when the container runtime reports a failure."""

    def __init__(
        self,
        operation: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        **kwargs,
    ):
        self.operation = operation
        self.returncode = returncode
        self.stderr = stderr
        message = f"Container runtime '{operation}' failed"
        if returncode is not None:
            message = f"{message} with exit code {returncode}"
        if stderr:
            message = f"{message}: {stderr.strip()[:200]}"
        super().__init__(
            message=message,
            error_type=ErrorType.EXTERNAL_SERVICE,
            status_code=502,
            **kwargs,
        )


class ResourceExhaustedError(PlaygroundException):
    """Raised when a bounded resource (e.g. host ports) is used up."""

    def __init__(self, resource: str, message: str = None, **kwargs):
        error_message = message or f"No {resource} available"
        super().__init__(
            message=error_message,
            error_type=ErrorType.RESOURCE_EXHAUSTED,
            status_code=503,
            **kwargs,
        )
