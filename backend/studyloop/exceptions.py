"""
Structured exceptions and error responses for StudyLoop.

Provides consistent error handling across the engine and the API with:
- Custom exception classes
- Structured error response format
- FastAPI exception handlers
"""

from typing import Any, Dict, Optional, List
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


# =============================================================================
# Error Response Schema
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail of a single error."""
    loc: Optional[List[str]] = None  # Location of error (e.g., ["body", "daily_units"])
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Structured error response format."""
    error: str  # Error code (e.g., "not_found", "invalid_plan")
    message: str  # Human-readable message
    details: Optional[List[ErrorDetail]] = None
    request_id: Optional[str] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class StudyLoopException(Exception):
    """Base exception for all StudyLoop errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundError(StudyLoopException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} with ID {resource_id} not found",
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


class InvalidPlanError(StudyLoopException):
    """Pacing or date inputs cannot produce a workload plan."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = None
        if field:
            details = [{
                "loc": ["body", field],
                "msg": message,
                "type": "invalid_plan",
            }]
        super().__init__(
            message=message,
            error_code="invalid_plan",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )
        self.field = field


class StoreError(StudyLoopException):
    """Persistence-layer failure. The driver error is kept as __cause__."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Task store failed during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(
            message=message,
            error_code="store_error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.operation = operation
        self.cause = cause


class DuplicateFinalizationError(StudyLoopException):
    """A final-check task already exists for this parent."""

    def __init__(self, parent_task_id: str):
        super().__init__(
            message=f"Task {parent_task_id} already has a final-check task",
            error_code="duplicate_finalization",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.parent_task_id = parent_task_id


class ValidationError(StudyLoopException):
    """Request validation error."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            message=message,
            error_code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def studyloop_exception_handler(request: Request, exc: StudyLoopException) -> JSONResponse:
    """Handle StudyLoopException and return structured response."""
    body = ErrorResponse(
        error=exc.error_code,
        message=exc.message,
        details=[ErrorDetail(**d) for d in exc.details] if exc.details else None,
        request_id=request.headers.get("x-request-id"),
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    import logging
    logger = logging.getLogger("studyloop.error")
    logger.exception(f"Unhandled exception: {exc}")

    body = ErrorResponse(
        error="internal_error",
        message="An unexpected error occurred",
        request_id=request.headers.get("x-request-id"),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(),
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(StudyLoopException, studyloop_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
