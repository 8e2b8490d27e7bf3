"""Centralized exception handling with sanitized error responses."""

import logging
import traceback
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from safevalley.config import settings

logger = logging.getLogger("api.errors")


# =============================================================================
# Custom Exception Classes
# =============================================================================

class APIException(Exception):
    """Base exception for API errors with safe messages."""

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "An error occurred",
        error_code: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.detail = detail  # Safe message for client
        self.error_code = error_code or "INTERNAL_ERROR"
        self.internal_message = internal_message  # Full message for logs
        super().__init__(self.detail)


class ValidationFailedException(APIException):
    """A submission or edit violated one or more field rules.

    ``errors`` holds every violation as ``{"field": ..., "message": ...}``.
    """

    def __init__(self, errors: List[Dict[str, str]], detail: str = "Invalid report data"):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="VALIDATION_FAILED",
        )
        self.errors = list(errors)

    @property
    def messages(self) -> List[str]:
        return [error["message"] for error in self.errors]


class ResourceNotFoundException(APIException):
    """Resource not found."""

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        super().__init__(
            status_code=404,
            detail=f"{resource} not found",
            error_code="NOT_FOUND",
            internal_message=f"{resource} {resource_id} not found" if resource_id else None,
        )
        self.resource_id = resource_id


class PreconditionFailedException(APIException):
    """Transition attempted from a state that forbids it."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=409,
            detail=detail,
            error_code="PRECONDITION_FAILED",
        )


class StoreUnavailableException(APIException):
    """The report store could not be reached or refused the write."""

    def __init__(self, internal_message: Optional[str] = None):
        super().__init__(
            status_code=503,
            detail="The report service is temporarily unavailable. Please try again later.",
            error_code="STORE_UNAVAILABLE",
            internal_message=internal_message,
        )


class AuthenticationException(APIException):
    """Authentication failure."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=401,
            detail=detail,
            error_code="AUTHENTICATION_REQUIRED",
        )


class AuthorizationException(APIException):
    """Authorization/permission failure."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=403,
            detail=detail,
            error_code="PERMISSION_DENIED",
        )


class RateLimitException(APIException):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=429,
            detail="Rate limit exceeded. Please try again later.",
            error_code="RATE_LIMIT_EXCEEDED",
        )
        self.retry_after = retry_after


# =============================================================================
# Error Response Formatting
# =============================================================================

def create_error_response(
    error_code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create a standardized error response."""
    response = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if request_id:
        response["error"]["request_id"] = request_id

    if details:
        response["error"]["details"] = details

    return response


def get_request_id(request: Request) -> str:
    """Get request ID from request state or generate new one."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid4())[:8]


# =============================================================================
# Exception Handlers
# =============================================================================

async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    request_id = get_request_id(request)

    log_message = f"[{request_id}] {exc.error_code}: {exc.detail}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
    else:
        logger.warning(log_message)

    details = None
    if isinstance(exc, ValidationFailedException):
        # Clients render every violated rule at once
        details = {"errors": exc.errors}

    headers = {}
    if isinstance(exc, RateLimitException):
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, AuthenticationException):
        headers["WWW-Authenticate"] = "ApiKey"

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            error_code=exc.error_code,
            message=exc.detail,
            request_id=request_id,
            details=details,
        ),
        headers=headers,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle standard HTTP exceptions."""
    request_id = get_request_id(request)

    error_code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_FAILED",
        429: "RATE_LIMITED",
        503: "SERVICE_UNAVAILABLE",
    }
    error_code = error_code_map.get(exc.status_code, "ERROR")
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"[{request_id}] HTTP {exc.status_code}: {detail}")
        detail = "An internal error occurred. Please try again later."
    else:
        logger.info(f"[{request_id}] HTTP {exc.status_code}: {detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(error_code, detail, request_id),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request-shape errors raised by FastAPI before reaching a route."""
    request_id = get_request_id(request)

    field_errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        field_errors.append({"field": field, "message": error["msg"]})

    logger.info(f"[{request_id}] Validation error: {len(field_errors)} field(s)")

    return JSONResponse(
        status_code=422,
        content=create_error_response(
            error_code="VALIDATION_FAILED",
            message="Invalid request data",
            request_id=request_id,
            details={"errors": field_errors},
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with full sanitization."""
    request_id = get_request_id(request)

    logger.error(
        f"[{request_id}] Unhandled exception: {type(exc).__name__}: {str(exc)}"
    )
    if settings.debug:
        logger.error(traceback.format_exc())

    return JSONResponse(
        status_code=500,
        content=create_error_response(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred. Please try again later.",
            request_id=request_id,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
