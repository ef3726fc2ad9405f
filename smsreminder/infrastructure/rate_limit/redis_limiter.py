"""
Sliding-window rate limiter backed by Redis.

Each (bucket, identity) pair owns a sorted set of hit timestamps. One
MULTI/EXEC transaction trims hits older than the window, records this
hit and counts, so concurrent processes see a consistent window.
"""

import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from smsreminder.config import get_logger
from smsreminder.config.settings import RateLimitSettings
from smsreminder.core.exceptions import RateLimitBackendError
from smsreminder.core.interfaces.rate_limit import (
    IRateLimiter,
    RateLimitBucket,
    RateLimitDecision,
)

logger = get_logger(__name__)


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=UTC)


class RedisRateLimiter(IRateLimiter):
    """
    Redis sliding-window limiter.

    With no client the limiter is disabled and allows everything. When
    Redis errors out, fail_open decides between allowing the call and
    raising RateLimitBackendError.
    """

    def __init__(
        self,
        client: aioredis.Redis | None,
        max_requests: int = 10,
        window_seconds: int = 3600,
        key_prefix: str = "sms-reminder",
        fail_open: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self.fail_open = fail_open
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> "RedisRateLimiter":
        """Build the limiter, disabled when no Redis URL is configured."""
        client = None
        if settings.redis_url:
            client = aioredis.from_url(
                settings.redis_url,
                socket_timeout=settings.timeout,
                socket_connect_timeout=settings.timeout,
                decode_responses=True,
            )
        else:
            logger.warning("rate_limiter_disabled", reason="RATE_LIMIT_REDIS_URL not set")

        return cls(
            client,
            max_requests=settings.max_requests,
            window_seconds=settings.window_seconds,
            key_prefix=settings.key_prefix,
            fail_open=settings.fail_open,
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def _key(self, identity: str, bucket: RateLimitBucket) -> str:
        return f"{self.key_prefix}:{bucket.value}:{identity}"

    async def allow(self, identity: str, bucket: RateLimitBucket) -> RateLimitDecision:
        """Record one action and decide whether it fits in the window."""
        now = self._clock()

        if self._client is None:
            return RateLimitDecision(
                allowed=True,
                remaining=self.max_requests,
                reset_at=_to_datetime(now),
            )

        key = self._key(identity, bucket)
        member = f"{now:.6f}:{uuid.uuid4().hex[:8]}"

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now - self.window_seconds)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.expire(key, self.window_seconds)
                _, _, count, oldest, _ = await pipe.execute()

            allowed = count <= self.max_requests
            if not allowed:
                # Rejected calls do not consume quota
                await self._client.zrem(key, member)

        except (RedisError, OSError) as e:
            return self._backend_unavailable(identity, bucket, now, e)

        oldest_score = oldest[0][1] if oldest else now
        decision = RateLimitDecision(
            allowed=allowed,
            remaining=max(0, self.max_requests - count),
            reset_at=_to_datetime(oldest_score + self.window_seconds),
        )

        if not allowed:
            logger.info(
                "rate_limit_exceeded",
                bucket=bucket.value,
                identity=identity,
                reset_at=decision.reset_at.isoformat(),
            )
        return decision

    def _backend_unavailable(
        self,
        identity: str,
        bucket: RateLimitBucket,
        now: float,
        error: Exception,
    ) -> RateLimitDecision:
        logger.warning(
            "rate_limit_backend_unavailable",
            bucket=bucket.value,
            identity=identity,
            fail_open=self.fail_open,
            error=str(error),
        )
        if not self.fail_open:
            raise RateLimitBackendError(str(error)) from error

        return RateLimitDecision(
            allowed=True,
            remaining=self.max_requests,
            reset_at=_to_datetime(now + self.window_seconds),
            degraded=True,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
