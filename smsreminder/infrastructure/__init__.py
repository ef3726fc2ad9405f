"""Infrastructure layer implementations."""

from smsreminder.infrastructure import rate_limit, scheduler, sms, storage, transcription

__all__ = ["storage", "rate_limit", "sms", "scheduler", "transcription"]
