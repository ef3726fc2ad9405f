"""API middleware."""

from smsreminder.api.middleware.error_handler import ErrorHandlerMiddleware
from smsreminder.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware", "ErrorHandlerMiddleware"]
