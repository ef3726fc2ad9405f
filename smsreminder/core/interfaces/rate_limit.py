"""
Abstract interface for intake rate limiting.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class RateLimitBucket(str, Enum):
    """Intake classes with independent quotas."""

    SCHEDULE = "schedule"
    TRANSCRIBE = "transcribe"


@dataclass
class RateLimitDecision:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: datetime
    degraded: bool = False

    def retry_after(self, now: datetime) -> int:
        """Seconds until the window frees a slot, at least 1."""
        return max(1, int((self.reset_at - now).total_seconds() + 0.999))


class IRateLimiter(ABC):
    """
    Abstract interface for the shared sliding-window limiter.

    Implementations: RedisRateLimiter
    """

    @abstractmethod
    async def allow(self, identity: str, bucket: RateLimitBucket) -> RateLimitDecision:
        """Record an action for (bucket, identity) and decide if it is allowed."""
        pass

    async def close(self) -> None:
        """Release backend connections."""
        return None
