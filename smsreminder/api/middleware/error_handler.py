"""
Error handling middleware.

Standardizes all API error responses to include:
- error_code: machine-readable identifier
- message: human-readable description
- hint: suggested recovery action
"""

import traceback
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from smsreminder.application.dto.responses import ErrorResponse
from smsreminder.config import get_logger
from smsreminder.core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    RateLimitBackendError,
    RateLimitError,
    ReminderNotFoundError,
    ReminderServiceError,
    SchedulingInfrastructureError,
    SignatureVerificationError,
    StaleStateError,
    StorageError,
    TranscriptionError,
    ValidationError,
)

logger = get_logger(__name__)


# Map exceptions to HTTP status codes; first match wins
EXCEPTION_STATUS_MAP: dict[type[Exception], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    RateLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    RateLimitBackendError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SignatureVerificationError: status.HTTP_401_UNAUTHORIZED,
    ReminderNotFoundError: status.HTTP_404_NOT_FOUND,
    StaleStateError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    SchedulingInfrastructureError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    TranscriptionError: status.HTTP_502_BAD_GATEWAY,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Hint messages per error code
HINT_MAP: dict[str, str] = {
    "VALIDATION_ERROR": "Check the request body against the API schema.",
    "RATE_LIMITED": "Too many requests from this client. Wait for Retry-After seconds.",
    "RATE_LIMITER_UNAVAILABLE": "The rate limiter backend is offline. Retry later.",
    "REMINDER_NOT_FOUND": "Check the reminder ID and try GET /api/reminders to list reminders.",
    "STALE_STATE": "The reminder changed state. Fetch it again before retrying.",
    "INVALID_TRANSITION": "Only scheduled reminders can be changed.",
    "INVALID_SIGNATURE": "Callbacks must carry a valid Upstash-Signature header.",
    "SCHEDULING_FAILED": "The reminder could not be scheduled. Check server logs.",
    "TRANSCRIPTION_FAILED": "Speech recognition failed. Retry or type the message instead.",
    "TRANSCRIPTION_UNAVAILABLE": "Speech recognition is not configured on this server.",
    "DATABASE_ERROR": "A database operation failed. Check server logs.",
}

# Default hints by HTTP status code
STATUS_HINTS: dict[int, str] = {
    400: "Check the request parameters and body.",
    401: "Authentication failed.",
    404: "The requested resource was not found. Verify the ID.",
    409: "The resource is not in a state that allows this operation.",
    429: "Too many requests. Retry later.",
    500: "An internal error occurred. Check server logs.",
    502: "An upstream provider failed. Retry later.",
    503: "The service is temporarily unavailable. Retry later.",
}


def _get_hint(error_code: str, status_code: int) -> str:
    """Resolve hint from error code, falling back to status-based hint."""
    return HINT_MAP.get(error_code) or STATUS_HINTS.get(status_code, "")


def status_for_exception(exc: Exception) -> int:
    """HTTP status for an exception, 500 when unmapped."""
    if isinstance(exc, TranscriptionError) and exc.unavailable:
        return status.HTTP_503_SERVICE_UNAVAILABLE

    for exc_type, code in EXCEPTION_STATUS_MAP.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def build_error_response(
    request: Request,
    exc: Exception,
    status_code: int | None = None,
) -> JSONResponse:
    """Convert an exception to a standardized JSON response."""
    status_code = status_code or status_for_exception(exc)

    if isinstance(exc, ReminderServiceError):
        error_code = exc.code
    else:
        error_code = exc.__class__.__name__

    request_id = getattr(request.state, "request_id", None)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "request_error",
        request_id=request_id,
        path=request.url.path,
        status=status_code,
        error_type=error_code,
        error=str(exc),
        traceback=traceback.format_exc() if status_code >= 500 else None,
    )

    error_response = ErrorResponse(
        error_code=error_code,
        message=str(exc),
        hint=_get_hint(error_code, status_code),
        path=request.url.path,
    )
    headers = {}

    if isinstance(exc, ValidationError):
        error_response.errors = exc.errors
    if isinstance(exc, RateLimitError):
        error_response.retry_after = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", by_alias=True),
        headers=headers or None,
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Converts exceptions that escape the route handlers to standardized
    JSON error responses.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Handle request with error catching."""
        try:
            return await call_next(request)

        except Exception as e:
            return build_error_response(request, e)


def setup_exception_handlers(app: FastAPI) -> None:
    """Set up FastAPI exception handlers."""
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException

    @app.exception_handler(ReminderServiceError)
    async def service_exception_handler(
        request: Request,
        exc: ReminderServiceError,
    ) -> JSONResponse:
        """Handle domain errors raised by handlers and dependencies."""
        return build_error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        errors: dict[str, str] = {}
        for error in exc.errors():
            loc = [str(part) for part in error["loc"] if part != "body"]
            errors[".".join(loc) or "body"] = error["msg"]

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                error_code="VALIDATION_ERROR",
                message="Request validation failed",
                hint=HINT_MAP["VALIDATION_ERROR"],
                detail="; ".join(f"{k}: {v}" for k, v in errors.items()),
                errors=errors,
                path=request.url.path,
            ).model_dump(mode="json", by_alias=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request,
        exc: HTTPException,
    ) -> JSONResponse:
        """Handle HTTP exceptions with standardized format."""
        error_code = _infer_error_code(exc.status_code)

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error_code=error_code,
                message=exc.detail or "An error occurred",
                hint=_get_hint(error_code, exc.status_code),
                path=request.url.path,
            ).model_dump(mode="json", by_alias=True),
            headers=getattr(exc, "headers", None),
        )


def _infer_error_code(status_code: int) -> str:
    """Infer a machine-readable error code from an HTTP status."""
    return {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        413: "PAYLOAD_TOO_LARGE",
        429: "RATE_LIMITED",
    }.get(status_code, "HTTP_ERROR")
