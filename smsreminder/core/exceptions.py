"""
Domain exceptions for the reminder service.

Provides specific exception types for different error scenarios.
"""

from typing import Any


class ReminderServiceError(Exception):
    """Base exception for all reminder service errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Validation Exceptions
class ValidationError(ReminderServiceError):
    """
    Input validation failed.

    Carries every failed field check, not only the first one.
    """

    def __init__(self, errors: dict[str, str]):
        summary = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        super().__init__(
            f"Validation failed: {summary}",
            code="VALIDATION_ERROR",
            details={"errors": dict(errors)},
        )
        self.errors = dict(errors)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: message})


# Rate Limiting Exceptions
class RateLimitError(ReminderServiceError):
    """Client exceeded its intake quota."""

    def __init__(self, bucket: str, retry_after: int):
        super().__init__(
            f"Rate limit exceeded for {bucket}, retry in {retry_after}s",
            code="RATE_LIMITED",
            details={"bucket": bucket, "retry_after": retry_after},
        )
        self.bucket = bucket
        self.retry_after = retry_after


class RateLimitBackendError(ReminderServiceError):
    """Rate limit store unreachable while running fail-closed."""

    def __init__(self, reason: str):
        super().__init__(
            f"Rate limiter unavailable: {reason}",
            code="RATE_LIMITER_UNAVAILABLE",
            details={"reason": reason},
        )


# Storage Exceptions
class StorageError(ReminderServiceError):
    """Base exception for storage operations."""

    pass


class ReminderNotFoundError(StorageError):
    """Reminder not found in storage."""

    def __init__(self, reminder_id: str):
        super().__init__(
            f"Reminder not found: {reminder_id}",
            code="REMINDER_NOT_FOUND",
            details={"reminder_id": reminder_id},
        )


class StaleStateError(StorageError):
    """Compare-and-transition lost: the stored status no longer matches."""

    def __init__(self, reminder_id: str, expected: str, actual: str | None = None):
        super().__init__(
            f"Reminder {reminder_id} is not {expected}"
            + (f" (currently {actual})" if actual else ""),
            code="STALE_STATE",
            details={"reminder_id": reminder_id, "expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class InvalidTransitionError(StorageError):
    """Requested status change is not allowed by the state machine."""

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Transition {from_status} -> {to_status} is not allowed",
            code="INVALID_TRANSITION",
            details={"from": from_status, "to": to_status},
        )


class DatabaseError(StorageError):
    """Database operation failed."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Database error during {operation}: {error}",
            code="DATABASE_ERROR",
            details={"operation": operation, "error": error},
        )


# Delivery Exceptions
class DeliveryError(ReminderServiceError):
    """Base exception for SMS delivery outcomes."""

    retryable: bool = False


class TransientDeliveryError(DeliveryError):
    """Delivery failed for a reason worth retrying."""

    retryable = True

    def __init__(self, reminder_id: str, reason: str):
        super().__init__(
            f"Delivery of {reminder_id} failed, will retry: {reason}",
            code="TRANSIENT_DELIVERY_ERROR",
            details={"reminder_id": reminder_id, "reason": reason},
        )


class TerminalDeliveryError(DeliveryError):
    """Delivery failed permanently."""

    def __init__(self, reminder_id: str, reason: str):
        super().__init__(
            f"Delivery of {reminder_id} failed permanently: {reason}",
            code="TERMINAL_DELIVERY_ERROR",
            details={"reminder_id": reminder_id, "reason": reason},
        )


# Scheduling Exceptions
class SchedulingInfrastructureError(ReminderServiceError):
    """Job scheduler or reminder store unreachable."""

    def __init__(self, operation: str, reason: str, reminder_id: str | None = None):
        super().__init__(
            f"Failed to {operation}: {reason}",
            code="SCHEDULING_FAILED",
            details={"operation": operation, "reason": reason, "reminder_id": reminder_id},
        )
        self.reminder_id = reminder_id


class SignatureVerificationError(ReminderServiceError):
    """Scheduler callback signature is missing or invalid."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid callback signature: {reason}",
            code="INVALID_SIGNATURE",
            details={"reason": reason},
        )


# Transcription Exceptions
class TranscriptionError(ReminderServiceError):
    """Speech-to-text call failed."""

    def __init__(self, reason: str, unavailable: bool = False):
        super().__init__(
            f"Transcription failed: {reason}",
            code="TRANSCRIPTION_UNAVAILABLE" if unavailable else "TRANSCRIPTION_FAILED",
            details={"reason": reason},
        )
        self.unavailable = unavailable


class ConfigurationError(ReminderServiceError):
    """Configuration error."""

    pass
