"""
RFC-7807 compliant error handling for the Leadhub backend.
Provides structured error responses with trace correlation, plus the
business-rule error kinds raised by the assignment workflow.
"""
import traceback
from typing import Any, Dict, Optional
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from leadhub.obs.logging import get_logger, log_error

logger = get_logger(__name__)


class ProblemDetail:
    """RFC-7807 Problem Details for HTTP APIs."""

    def __init__(
        self,
        type: str,
        title: str,
        detail: str,
        status: int,
        instance: Optional[str] = None,
        trace_id: Optional[str] = None,
        **kwargs
    ):
        self.type = type
        self.title = title
        self.detail = detail
        self.status = status
        self.instance = instance
        self.trace_id = trace_id
        self.extensions = kwargs

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "type": self.type,
            "title": self.title,
            "detail": self.detail,
            "status": self.status,
        }

        if self.instance:
            result["instance"] = self.instance

        if self.trace_id:
            result["trace_id"] = self.trace_id

        result.update(self.extensions)

        return result


def create_problem_detail(
    error: Exception,
    request: Request,
    status_code: int = 500,
    error_type: str = "about:blank",
    title: str = "Internal Server Error",
    detail: Optional[str] = None
) -> ProblemDetail:
    """Create a ProblemDetail from an exception."""
    trace_id = getattr(request.state, 'trace_id', None)

    if detail is None:
        detail = str(error)

    return ProblemDetail(
        type=error_type,
        title=title,
        detail=detail,
        status=status_code,
        instance=request.url.path,
        trace_id=trace_id,
    )


# Custom exception classes for specific error types
class BusinessLogicError(Exception):
    """Raised when business logic validation fails."""
    pass


class WorkflowError(BusinessLogicError):
    """
    Base class for lead workflow rejections.

    Every rejection carries a stable ``error_code`` and a human readable
    message the dashboard can render as-is. None of them are retryable
    except ``Unavailable``.
    """

    error_code = "WORKFLOW_ERROR"
    status_code = 422
    title = "Business Logic Error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidTransition(WorkflowError):
    """Requested status change is not in the transition table."""

    error_code = "INVALID_TRANSITION"
    status_code = 409
    title = "Invalid Transition"

    def __init__(self, current: str, requested: str, message: Optional[str] = None, **details: Any):
        self.current = current
        self.requested = requested
        super().__init__(
            message or f"Cannot {requested} while status is {current}",
            current=current,
            requested=requested,
            **details,
        )


class ExclusivityViolation(WorkflowError):
    error_code = "EXCLUSIVITY_VIOLATION"
    status_code = 409
    title = "Exclusivity Violation"


class DuplicateAssignment(WorkflowError):
    error_code = "DUPLICATE_ASSIGNMENT"
    status_code = 409
    title = "Duplicate Assignment"


class AssignmentLimitReached(WorkflowError):
    error_code = "ASSIGNMENT_LIMIT_REACHED"
    status_code = 409
    title = "Assignment Limit Reached"


class InvalidCancellationRequest(WorkflowError):
    error_code = "INVALID_CANCELLATION_REQUEST"
    status_code = 400
    title = "Invalid Cancellation Request"


class NotFound(WorkflowError):
    error_code = "NOT_FOUND"
    status_code = 404
    title = "Not Found"


class ValidationError(WorkflowError):
    error_code = "VALIDATION_ERROR"
    status_code = 400
    title = "Validation Error"


class Unavailable(WorkflowError):
    """Transient infrastructure failure (store, settings, lock)."""

    error_code = "UNAVAILABLE"
    status_code = 503
    title = "Service Unavailable"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC-7807 format."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=exc.status_code,
        error_type="https://tools.ietf.org/html/rfc7231#section-6.5",
        title="HTTP Error",
        detail=exc.detail
    )

    log_error(
        logger=logger,
        error=exc,
        trace_id=problem.trace_id,
        user_id=getattr(request.state, 'user_id', None),
        route=request.url.path,
        method=request.method,
        status=exc.status_code,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(problem.to_dict())
    )


async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Handle workflow rejections; these are expected, so no stack trace."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=exc.status_code,
        error_type=f"urn:leadhub:error:{exc.error_code.lower()}",
        title=exc.title,
        detail=exc.message,
    )
    problem.extensions["error_code"] = exc.error_code
    if exc.details:
        problem.extensions["details"] = exc.details

    logger.warning(
        f"Workflow rejection: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "trace_id": problem.trace_id,
            "user_id": getattr(request.state, 'user_id', None),
            "route": request.url.path,
            "method": request.method,
            "status": exc.status_code,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(problem.to_dict())
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with RFC-7807 format."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=422,
        error_type="https://tools.ietf.org/html/rfc4918#section-11.2",
        title="Validation Error",
        detail="Request validation failed"
    )

    problem.extensions["error_code"] = "REQUEST_VALIDATION_FAILED"
    problem.extensions["validation_errors"] = exc.errors()

    logger.warning(
        "Request validation failed",
        extra={
            "trace_id": problem.trace_id,
            "route": request.url.path,
            "method": request.method,
            "status": 422,
        },
    )

    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(problem.to_dict())
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions with RFC-7807 format."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=500,
        error_type="https://tools.ietf.org/html/rfc7231#section-6.6.1",
        title="Internal Server Error",
        detail="An unexpected error occurred"
    )

    log_error(
        logger=logger,
        error=exc,
        trace_id=problem.trace_id,
        user_id=getattr(request.state, 'user_id', None),
        route=request.url.path,
        method=request.method,
        status=500,
        stack_trace=traceback.format_exc(),
    )

    return JSONResponse(
        status_code=500,
        content=jsonable_encoder(problem.to_dict())
    )


def register_error_handlers(app):
    """Register all error handlers with the FastAPI app."""
    app.add_exception_handler(WorkflowError, workflow_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # General exceptions (catch-all)
    app.add_exception_handler(Exception, general_exception_handler)

    return app
