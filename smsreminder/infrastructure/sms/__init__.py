"""SMS channel implementations."""

from smsreminder.infrastructure.sms.twilio import (
    RETRYABLE_ERROR_CODES,
    TwilioSMSChannel,
    is_retryable,
)

__all__ = ["TwilioSMSChannel", "RETRYABLE_ERROR_CODES", "is_retryable"]
