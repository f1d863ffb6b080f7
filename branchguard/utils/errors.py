"""
Error taxonomy and exception handlers for the BranchGuard API.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import structlog
import traceback
from datetime import datetime, timezone

logger = structlog.get_logger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BranchGuardError(Exception):
    """Base exception for BranchGuard."""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.status_code = status_code
        self.timestamp = _utcnow_iso()
        super().__init__(self.message)


class ValidationError(BranchGuardError):
    """Input validation errors (bad pattern, reviewer bounds, ...)."""

    def __init__(self, message: str, field: str = None, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={**(details or {}), "field": field} if field else details,
            status_code=400
        )


class AuthenticationError(BranchGuardError):
    """Missing or unknown credentials."""

    def __init__(self, message: str = "Authentication failed", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            details=details,
            status_code=401
        )


class AuthorizationError(BranchGuardError):
    """Caller's permission level is below what the operation needs."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        required: Optional[str] = None,
        actual: Optional[str] = None,
    ):
        details = {}
        if required:
            details["required"] = required
        if actual:
            details["actual"] = actual
        super().__init__(
            message=message,
            error_code="AUTHORIZATION_ERROR",
            details=details,
            status_code=403
        )


class NotFoundError(BranchGuardError):
    """Missing entity. Also used for cross-repository lookups."""

    def __init__(self, resource: str, resource_id: str = None):
        super().__init__(
            message=f"{resource} not found",
            error_code="NOT_FOUND",
            details={"resource": resource, "id": resource_id} if resource_id else {"resource": resource},
            status_code=404
        )


class ConflictError(BranchGuardError):
    """Uniqueness violation."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            details=details,
            status_code=409
        )


HTTP_CODE_MAP = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
}


def create_error_response(error: BranchGuardError) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=error.status_code,
        content={
            "error": {
                "code": error.error_code,
                "message": error.message,
                "details": error.details,
                "timestamp": error.timestamp
            }
        }
    )


async def branchguard_exception_handler(request: Request, exc: BranchGuardError) -> JSONResponse:
    """Global exception handler for BranchGuard exceptions."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        path=request.url.path,
        method=request.method
    )
    return create_error_response(exc)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException with the same envelope as domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": HTTP_CODE_MAP.get(exc.status_code, "HTTP_ERROR"),
                "message": str(exc.detail),
                "details": {},
                "timestamp": _utcnow_iso()
            }
        },
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unexpected errors."""
    error_id = _utcnow_iso()

    logger.error(
        "Unexpected error occurred",
        error_id=error_id,
        error_type=type(exc).__name__,
        message=str(exc),
        traceback=traceback.format_exc(),
        path=request.url.path,
        method=request.method
    )

    # Don't expose internal error details
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
                "details": {"error_id": error_id},
                "timestamp": _utcnow_iso()
            }
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle FastAPI request validation errors."""
    logger.warning(
        "Validation error occurred",
        errors=jsonable_errors(exc),
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Input validation failed",
                "details": {"validation_errors": jsonable_errors(exc)},
                "timestamp": _utcnow_iso()
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic v2 may put exception objects under "ctx"
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
