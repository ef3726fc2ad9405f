"""Core interfaces (ports) for dependency injection."""

from smsreminder.core.interfaces.delivery import (
    EnqueueResult,
    IDeliveryChannel,
    IJobScheduler,
    ISignatureVerifier,
    SendResult,
)
from smsreminder.core.interfaces.rate_limit import (
    IRateLimiter,
    RateLimitBucket,
    RateLimitDecision,
)
from smsreminder.core.interfaces.storage import IReminderStore
from smsreminder.core.interfaces.transcription import ITranscriber, Transcription

__all__ = [
    # Storage interfaces
    "IReminderStore",
    # Delivery interfaces
    "IDeliveryChannel",
    "IJobScheduler",
    "ISignatureVerifier",
    "SendResult",
    "EnqueueResult",
    # Rate limiting
    "IRateLimiter",
    "RateLimitBucket",
    "RateLimitDecision",
    # Transcription
    "ITranscriber",
    "Transcription",
]
