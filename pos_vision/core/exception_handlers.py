"""Global exception handlers for consistent error responses.

Every error leaves the service as ``{"error": {code, message, request_id,
details?}}``:
- ValidationAppError → 400
- AuthenticationAppError → 403
- UpstreamRateLimitAppError → 429 (with Retry-After when known)
- LLMAppError → 500
- anything else → generic 500 without implementation details
"""

import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from pos_vision.core.errors import (
    AppError,
    AuthenticationAppError,
    LLMAppError,
    UpstreamRateLimitAppError,
)
from pos_vision.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, UpstreamRateLimitAppError):
        return 429
    if isinstance(exc, LLMAppError):
        return 500
    return 400


def retry_after_header(exc: AppError) -> dict[str, str]:
    """Build a Retry-After header for upstream rate limiting, if known."""
    if isinstance(exc, UpstreamRateLimitAppError) and exc.retry_after is not None:
        return {"Retry-After": str(max(0, math.ceil(exc.retry_after)))}
    return {}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error with its mapped status code.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=retry_after_header(exc) or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the error type and path; the client only sees a generic message.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register the domain and fallback handlers on a FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
