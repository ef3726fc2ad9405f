"""
Abstract interfaces for outbound delivery and job scheduling.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class SendResult:
    """Outcome of one SMS send attempt."""

    success: bool
    channel_message_id: str | None = None
    error: str | None = None
    retryable: bool = False
    error_code: int | None = None

    @classmethod
    def sent(cls, channel_message_id: str) -> "SendResult":
        return cls(success=True, channel_message_id=channel_message_id)

    @classmethod
    def failed(
        cls, error: str, retryable: bool, error_code: int | None = None
    ) -> "SendResult":
        return cls(success=False, error=error, retryable=retryable, error_code=error_code)


@dataclass
class EnqueueResult:
    """Outcome of scheduling a delayed callback."""

    success: bool
    job_id: str | None = None
    error: str | None = None
    delay_seconds: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class IDeliveryChannel(ABC):
    """
    Abstract interface for the SMS transport.

    Implementations: TwilioSMSChannel
    """

    @abstractmethod
    async def send(self, recipient: str, body: str) -> SendResult:
        """
        Send a message.

        Never raises for transport failures; they are classified into
        a retryable or terminal SendResult.
        """
        pass


class IJobScheduler(ABC):
    """
    Abstract interface for the delayed job primitive.

    The scheduler delivers at least once and retries on non-2xx callback
    responses, up to max_attempts.

    Implementations: QStashJobScheduler
    """

    @abstractmethod
    async def enqueue(
        self,
        target_url: str | None,
        payload: dict[str, Any],
        fire_at: datetime,
        max_attempts: int,
    ) -> EnqueueResult:
        """Arrange a POST of payload to target_url at fire_at."""
        pass


class ISignatureVerifier(ABC):
    """Verifies that a callback request originated from the scheduler."""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether verification is configured."""
        pass

    @abstractmethod
    def verify(self, signature: str | None, body: bytes, url: str | None = None) -> None:
        """
        Verify a callback signature.

        Raises:
            SignatureVerificationError: if the signature is missing or invalid
        """
        pass
